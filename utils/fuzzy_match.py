"""
Fuzzy string matching utilities.

Two flavours are provided:
  - best_match: thefuzz token_sort_ratio (0-100) against a candidate dict.
    Used for advisory header suggestions in column_mapper.
  - string_similarity: normalized Levenshtein similarity (0.0-1.0) on
    lowercased strings.  Used by tag_deduplicator for near-duplicate tags.
"""

import logging

from rapidfuzz.distance import Levenshtein
from thefuzz import fuzz

logger = logging.getLogger(__name__)


def best_match(
    value: str,
    candidates: dict[str, str],
    threshold: int = 80,
) -> tuple[str | None, int]:
    """
    Find the best fuzzy match for *value* among *candidates* keys.

    Uses token_sort_ratio which handles word reordering well (e.g.
    "brand name" vs "name brand").

    Args:
        value: The string to match (will be lowercased internally).
        candidates: Dict of candidate_key (lowercase) → canonical_value.
        threshold: Minimum score (0-100) to accept a match.

    Returns:
        (canonical_value, score) if a match is found at or above threshold,
        or (None, 0) if no match qualifies.
    """
    if not value or not candidates:
        return None, 0

    value_lower = value.strip().lower()

    best_canonical: str | None = None
    best_score: int = 0

    for candidate_key, canonical_value in candidates.items():
        score = fuzz.token_sort_ratio(value_lower, candidate_key)
        if score > best_score:
            best_score = score
            best_canonical = canonical_value

    if best_score >= threshold:
        logger.debug(
            f"Fuzzy matched '{value}' → '{best_canonical}' (score={best_score})"
        )
        return best_canonical, best_score

    logger.debug(
        f"No fuzzy match for '{value}' above threshold {threshold} "
        f"(best was '{best_canonical}' at {best_score})"
    )
    return None, 0


def edit_distance(first: str, second: str) -> int:
    """Levenshtein distance (unit-cost insert/delete/substitute)."""
    return Levenshtein.distance(first, second)


def string_similarity(first: str, second: str) -> float:
    """
    Case-insensitive normalized Levenshtein similarity.

        similarity = 1 - distance(lower(a), lower(b)) / max(len(a), len(b))

    Two empty strings are identical (1.0).

    Args:
        first: First string.
        second: Second string.

    Returns:
        Similarity between 0.0 (nothing in common) and 1.0 (equal ignoring
        case).
    """
    longest = max(len(first), len(second))
    if longest == 0:
        return 1.0
    distance = edit_distance(first.lower(), second.lower())
    return 1 - distance / longest
