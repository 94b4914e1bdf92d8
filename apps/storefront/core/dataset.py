"""Utility helpers for loading the course catalog snapshots into memory."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

_POSSIBLE_DIRS = [
    Path(__file__).resolve().parents[3] / "data",
    Path(__file__).resolve().parents[2] / "data",
]

COURSES_FILE = "courses.json"
INSTRUCTORS_FILE = "instructors.json"
REVIEWS_FILE = "course_reviews.json"
USERS_FILE = "users.json"
CATEGORIES_FILE = "categories.json"


def _find_data_dir() -> Path:
    override = os.environ.get("CATALOG_DATA_DIR")
    if override:
        return Path(override)
    for p in _POSSIBLE_DIRS:
        if p.exists():
            return p
    # fall back to the first path; each missing snapshot is logged on load
    return _POSSIBLE_DIRS[0]


DATA_DIR = _find_data_dir()


@dataclass(frozen=True)
class CatalogSnapshot:
    """Raw records for the five catalog collections, as read from disk."""

    courses: List[Dict[str, Any]] = field(default_factory=list)
    instructors: List[Dict[str, Any]] = field(default_factory=list)
    reviews: List[Dict[str, Any]] = field(default_factory=list)
    users: List[Dict[str, Any]] = field(default_factory=list)
    main_categories: List[Dict[str, Any]] = field(default_factory=list)
    categories: List[Dict[str, Any]] = field(default_factory=list)


def _read_records(path: Path) -> List[Dict[str, Any]]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:
        logging.exception("Failed to load catalog snapshot %s: %s", path, exc)
        return []
    if not isinstance(data, list):
        logging.error("Catalog snapshot %s is not a JSON array; treating it as empty", path)
        return []
    return data


def _read_taxonomy(path: Path) -> tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    """Return (main tier, all categories) from the categories snapshot.

    The snapshot is normally an object with ``mainCategories`` and
    ``allCategories``. A bare array is accepted too, in which case nodes
    flagged ``featured`` form the main tier.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:
        logging.exception("Failed to load catalog snapshot %s: %s", path, exc)
        return [], []
    if isinstance(data, list):
        return [c for c in data if isinstance(c, dict) and c.get("featured")], data
    if isinstance(data, dict):
        all_categories = data.get("allCategories") or []
        main_categories = data.get("mainCategories") or []
        if isinstance(all_categories, list) and isinstance(main_categories, list):
            return main_categories, all_categories
    logging.error("Catalog snapshot %s has an unexpected shape; treating it as empty", path)
    return [], []


def read_snapshot(data_dir: Path) -> CatalogSnapshot:
    """Read every snapshot file under ``data_dir``.

    A missing or malformed file never aborts the load: the failure is logged
    and that collection comes back empty.
    """
    main_categories, categories = _read_taxonomy(data_dir / CATEGORIES_FILE)
    return CatalogSnapshot(
        courses=_read_records(data_dir / COURSES_FILE),
        instructors=_read_records(data_dir / INSTRUCTORS_FILE),
        reviews=_read_records(data_dir / REVIEWS_FILE),
        users=_read_records(data_dir / USERS_FILE),
        main_categories=main_categories,
        categories=categories,
    )


@lru_cache(maxsize=1)
def load_snapshot(data_dir: Optional[Path] = None) -> CatalogSnapshot:
    return read_snapshot(Path(data_dir) if data_dir else DATA_DIR)
