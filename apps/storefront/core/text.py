"""Text normalization and the lexical relevance score used by catalog search."""

from __future__ import annotations

import re
import unicodedata
from typing import List, Optional

_COMBINING_MARKS = re.compile(r"[\u0300-\u036f]")
_NON_SLUG = re.compile(r"[^a-z0-9]+")
_WHITESPACE = re.compile(r"\s+")

# Weights for search_score. UI ordering depends on these exact values.
EXACT_TITLE_WEIGHT = 15
TITLE_CONTAINS_WEIGHT = 10
DESCRIPTION_CONTAINS_WEIGHT = 4
WORD_PREFIX_WEIGHT = 5
WORD_CONTAINS_WEIGHT = 3
TERM_IN_TITLE_WEIGHT = 4
TERM_IN_DESCRIPTION_WEIGHT = 2
MIN_TERM_LENGTH = 2


def normalize_text(text: Optional[str]) -> str:
    """Lowercase, strip diacritics (NFD + combining mark removal) and trim."""
    decomposed = unicodedata.normalize("NFD", (text or "").lower())
    return _COMBINING_MARKS.sub("", decomposed).strip()


def collation_key(text: Optional[str]) -> str:
    # đ has no NFD decomposition, so fold it by hand to sort next to d.
    return normalize_text(text).replace("đ", "d")


def create_slug(text: str) -> str:
    """Build a URL-safe slug: lowercase ascii words joined by hyphens."""
    slug = collation_key(text)
    slug = _NON_SLUG.sub("-", slug)
    return slug.strip("-")


def split_terms(normalized_query: str) -> List[str]:
    return [term for term in _WHITESPACE.split(normalized_query) if term]


def search_score(title: str, description: str, query: str, terms: List[str]) -> int:
    """Score a course against an already-normalized query.

    Every rule that matches contributes its weight; a course can match
    several rules at once.
    """
    title = normalize_text(title)
    description = normalize_text(description)
    score = 0

    if title == query:
        score += EXACT_TITLE_WEIGHT
    if query in title:
        score += TITLE_CONTAINS_WEIGHT
    if query in description:
        score += DESCRIPTION_CONTAINS_WEIGHT

    for word in _WHITESPACE.split(title):
        if word.startswith(query):
            score += WORD_PREFIX_WEIGHT
        elif query in word:
            score += WORD_CONTAINS_WEIGHT

    for term in terms:
        if len(term) < MIN_TERM_LENGTH:
            continue
        if term in title:
            score += TERM_IN_TITLE_WEIGHT
        if term in description:
            score += TERM_IN_DESCRIPTION_WEIGHT

    return score
