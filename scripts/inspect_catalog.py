"""CLI for sanity-checking a catalog snapshot directory.

Loads the five snapshot files the same way the API does, builds the index
and prints what survived ingestion. Records that were skipped are reported
through the log.
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from storefront.core.dataset import DATA_DIR, read_snapshot
from storefront.core.index import CatalogIndex


def main() -> None:
    parser = argparse.ArgumentParser(description="Inspect a course catalog snapshot")
    parser.add_argument("data_dir", type=Path, nargs="?", default=DATA_DIR, help="Directory holding the JSON snapshots")
    parser.add_argument("--verbose", action="store_true", help="Log every skipped record")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)

    if not args.data_dir.is_dir():
        raise SystemExit(f"{args.data_dir} is not a directory")

    snapshot = read_snapshot(args.data_dir)
    index = CatalogIndex.from_snapshot(snapshot)

    print(f"Loaded {len(index.courses)} of {len(snapshot.courses)} course records from {args.data_dir}.")
    print(json.dumps(index.get_stats().model_dump(), ensure_ascii=False, indent=2))
    print(json.dumps(index.get_price_range().model_dump(by_alias=True), ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
