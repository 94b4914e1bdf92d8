"""Baseline evaluation harness for keyword search."""

from __future__ import annotations

import json
from pathlib import Path

from storefront.core.index import get_catalog_index

GOLD_PATH = Path(__file__).resolve().parents[1] / "data" / "golden_queries.json"


def main() -> None:
    if not GOLD_PATH.exists():
        raise SystemExit("Missing golden_queries.json. Populate it before running evaluation.")

    dataset = json.loads(GOLD_PATH.read_text(encoding="utf-8"))
    index = get_catalog_index()
    hits = 0
    total = 0
    for item in dataset:
        if "query" not in item:
            continue
        total += 1
        results = index.search(item["query"])
        top = results[0].id if results else None
        hit = top == item.get("expected_id")
        hits += hit
        print(f"Query: {item['query']} -> {len(results)} results, top={top} {'HIT' if hit else 'MISS'}")

    if total:
        print(f"Top-1 accuracy: {hits}/{total} ({hits / total:.0%})")


if __name__ == "__main__":
    main()
