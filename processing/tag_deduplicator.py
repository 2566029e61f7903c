"""
Tag deduplicator — groups near-duplicate free-text tags so the user can pick
one canonical label per group.

Grouping is a greedy single pass over the distinct tags in enumeration order:
the first ungrouped tag becomes a primary and pulls in every later ungrouped
tag whose similarity to it reaches the threshold.  The result depends on
order and is only a suggestion; nothing is rewritten until the user chooses.

Public API:
    collect_tags(records) → list[str]
    find_similar_groups(tags, threshold) → list[TagMergeGroup]
    build_tag_mappings(groups, choices) → dict[str, str]
    apply_tag_mappings(records, mappings) → list[Store]
"""

import logging
from dataclasses import dataclass, replace
from typing import Iterable

from config.schema import DEFAULT_TAG_SIMILARITY_THRESHOLD
from processing.models import Store
from utils.fuzzy_match import string_similarity

logger = logging.getLogger(__name__)

# Absorbs float rounding when a similarity lands exactly on the threshold.
_THRESHOLD_TOLERANCE: float = 1e-9


@dataclass(frozen=True)
class TagMergeGroup:
    """A primary tag and the variants judged similar to it."""

    primary: str
    variants: tuple[str, ...]

    @property
    def members(self) -> tuple[str, ...]:
        return (self.primary,) + self.variants


def collect_tags(records: Iterable[Store]) -> list[str]:
    """Distinct tags across *records*, in first-seen order."""
    seen: dict[str, None] = {}
    for record in records:
        for tag in record.tags:
            seen.setdefault(tag, None)
    return list(seen)


def find_similar_groups(
    tags: Iterable[str],
    threshold: float = DEFAULT_TAG_SIMILARITY_THRESHOLD,
) -> list[TagMergeGroup]:
    """
    Group tags whose similarity to a group's primary is at least *threshold*.

    Args:
        tags: Tags in enumeration order; repeats are ignored.
        threshold: Minimum string_similarity (0.0-1.0) to join a group.

    Returns:
        Groups with at least one variant, in primary order.  Singletons are
        not returned.
    """
    distinct = list(dict.fromkeys(tags))
    grouped: set[int] = set()
    groups: list[TagMergeGroup] = []

    for index, primary in enumerate(distinct):
        if index in grouped:
            continue
        grouped.add(index)
        variants: list[str] = []
        for other_index in range(index + 1, len(distinct)):
            if other_index in grouped:
                continue
            candidate = distinct[other_index]
            similarity = string_similarity(primary, candidate)
            if similarity >= threshold - _THRESHOLD_TOLERANCE:
                grouped.add(other_index)
                variants.append(candidate)
                logger.debug(f"Tag '{candidate}' grouped under '{primary}' ({similarity:.2f})")
        if variants:
            groups.append(TagMergeGroup(primary=primary, variants=tuple(variants)))

    logger.info(f"Tag grouping: {len(groups)} groups from {len(distinct)} distinct tags")
    return groups


def build_tag_mappings(
    groups: list[TagMergeGroup],
    choices: dict[int, str] | None = None,
) -> dict[str, str]:
    """
    Turn the user's per-group choices into a tag → canonical tag mapping.

    Args:
        groups: Groups as returned by find_similar_groups.
        choices: group index → chosen label.  Groups without a choice use
                 their primary.

    Returns:
        Mapping for every member whose label changes.

    Raises:
        ValueError: A choice is not a member of its group, or refers to a
                    group index that does not exist.
    """
    choices = choices or {}
    unknown = [index for index in choices if not 0 <= index < len(groups)]
    if unknown:
        raise ValueError(f"No tag group with index {unknown[0]}")

    mappings: dict[str, str] = {}
    for index, group in enumerate(groups):
        canonical = choices.get(index, group.primary)
        if canonical not in group.members:
            raise ValueError(
                f"'{canonical}' is not one of the tags in group {index}: {list(group.members)}"
            )
        for member in group.members:
            if member != canonical:
                mappings[member] = canonical
    return mappings


def apply_tag_mappings(records: Iterable[Store], mappings: dict[str, str]) -> list[Store]:
    """
    Rewrite tags on every record, de-duplicating within a record.

    Records whose tags do not change are returned as the same object.
    """
    updated: list[Store] = []
    changed = 0
    for record in records:
        new_tags = tuple(dict.fromkeys(mappings.get(tag, tag) for tag in record.tags))
        if new_tags != record.tags:
            record = replace(record, tags=new_tags)
            changed += 1
        updated.append(record)

    if mappings:
        logger.info(f"Applied {len(mappings)} tag mappings to {changed} records")
    return updated
