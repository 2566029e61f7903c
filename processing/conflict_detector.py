"""
Duplicate detector — finds incoming records that name a brand already in the
target collection, and applies the user's resolution to each one.

Two records collide when their name keys (utils.text_formatter.name_key) are
equal and non-empty.  Detection folds the batch sequentially: a record that
does not collide joins the key index, so a later row in the same file with
the same key collides with it instead of slipping through as a second copy.

Resolution actions:
  - merge:     keep the existing record and fill its gaps from the incoming
               one; tags become the ordered union, existing first,
               capped at max_tags.
  - overwrite: replace every field the incoming record provides; the
               existing id and extra keys are kept.
  - skip:      drop the incoming record and emit nothing.

Public API:
    detect_collisions(incoming, existing) → CollisionReport
    find_existing_match(incoming, existing) → Store | None
    resolve_collision(collision, action, max_tags) → Store | None
    merge_records(existing, incoming, max_tags) → Store
    overwrite_record(existing, incoming) → Store
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Iterable, Literal

from config.normalization_rules import UNKNOWN_PRICE_BUCKET
from config.schema import LIMITS
from processing.models import Store
from utils.text_formatter import name_key

logger = logging.getLogger(__name__)

ResolutionAction = Literal["merge", "overwrite", "skip"]
RESOLUTION_ACTIONS: tuple[str, ...] = ("merge", "overwrite", "skip")

# Fields filled by a merge only when the existing value is blank.
_MERGE_FILL_FIELDS: tuple[str, ...] = ("website", "instagram_name", "price_range")

# Fields an overwrite replaces when the incoming record has a value.
_OVERWRITE_FIELDS: tuple[str, ...] = (
    "store_name",
    "website",
    "instagram_name",
    "country",
    "city",
    "description",
    "tags",
    "price_range",
    "rating",
    "sustainability",
    "image_url",
)


# ═══════════════════════════════════════════════════════════════════════════
# Data classes
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Collision:
    """An incoming record whose name key matches a record already present."""

    incoming: Store
    existing: Store
    name_key: str


@dataclass
class CollisionReport:
    """Output of the detect_collisions() function."""

    collisions: list[Collision] = field(default_factory=list)
    non_conflicting: list[Store] = field(default_factory=list)

    @property
    def has_collisions(self) -> bool:
        return bool(self.collisions)


# ═══════════════════════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════════════════════

def detect_collisions(
    incoming: Iterable[Store],
    existing: Iterable[Store],
) -> CollisionReport:
    """
    Split incoming records into collisions and pass-through records.

    Args:
        incoming: Normalized records in file order.
        existing: Records already in the target collection.

    Returns:
        CollisionReport.  Both lists keep input order.  A collision's
        ``existing`` side is the first record (collection first, then earlier
        pass-through batch records) that holds the key.
    """
    report = CollisionReport()
    key_index = _build_key_index(existing)

    for record in incoming:
        key = name_key(record.store_name)
        match = key_index.get(key) if key else None
        if match is not None:
            report.collisions.append(Collision(incoming=record, existing=match, name_key=key))
            logger.debug(f"Collision on '{key}': '{record.store_name}' vs '{match.store_name}'")
            continue
        report.non_conflicting.append(record)
        if key:
            key_index[key] = record

    logger.info(
        f"Duplicate detection complete: {len(report.collisions)} collisions, "
        f"{len(report.non_conflicting)} new records"
    )
    return report


def find_existing_match(incoming: Store, existing: Iterable[Store]) -> Store | None:
    """First existing record with the same non-empty name key, or None."""
    key = name_key(incoming.store_name)
    if not key:
        return None
    for record in existing:
        if name_key(record.store_name) == key:
            return record
    return None


def resolve_collision(
    collision: Collision,
    action: str,
    max_tags: int = LIMITS["MAX_TAGS_PER_STORE"],
) -> Store | None:
    """
    Apply a resolution action to one collision.

    Args:
        collision: The collision to resolve.
        action: "merge", "overwrite" or "skip".
        max_tags: Tag cap applied to a merged record.

    Returns:
        The record to keep in place of ``collision.existing``, or None for
        skip (the existing record stays as it was and nothing new is emitted).

    Raises:
        ValueError: Unknown action.
    """
    if action == "merge":
        return merge_records(collision.existing, collision.incoming, max_tags)
    if action == "overwrite":
        return overwrite_record(collision.existing, collision.incoming)
    if action == "skip":
        return None
    raise ValueError(
        f"Unknown resolution action '{action}'. Expected one of {RESOLUTION_ACTIONS}"
    )


def merge_records(
    existing: Store,
    incoming: Store,
    max_tags: int = LIMITS["MAX_TAGS_PER_STORE"],
) -> Store:
    """
    Non-destructive merge: nothing already present on *existing* is lost.

    Tags are the ordered union (existing first), cut to the first *max_tags*
    entries.  website, instagram_name and price_range take the incoming value
    only where the existing one is blank; every other field, id included,
    stays as it is.
    """
    tags = list(dict.fromkeys(existing.tags + incoming.tags))
    if len(tags) > max_tags:
        logger.debug(
            f"Merged tags for '{existing.store_name}' capped at {max_tags} "
            f"({len(tags) - max_tags} dropped)"
        )
        tags = tags[:max_tags]

    updates: dict = {"tags": tuple(tags)}
    for field_name in _MERGE_FILL_FIELDS:
        if _is_blank(field_name, getattr(existing, field_name)):
            incoming_value = getattr(incoming, field_name)
            if not _is_blank(field_name, incoming_value):
                updates[field_name] = incoming_value
    return replace(existing, **updates)


def overwrite_record(existing: Store, incoming: Store) -> Store:
    """Replace every field *incoming* provides; keep the existing id and extra."""
    updates = {
        field_name: getattr(incoming, field_name)
        for field_name in _OVERWRITE_FIELDS
        if not _is_blank(field_name, getattr(incoming, field_name))
    }
    return replace(existing, **updates)


# ═══════════════════════════════════════════════════════════════════════════
# Internal helpers
# ═══════════════════════════════════════════════════════════════════════════

def _build_key_index(records: Iterable[Store]) -> dict[str, Store]:
    """name key → first record holding it; empty keys are never indexed."""
    index: dict[str, Store] = {}
    for record in records:
        key = name_key(record.store_name)
        if key and key not in index:
            index[key] = record
    return index


def _is_blank(field_name: str, value) -> bool:
    if field_name == "price_range":
        return value in ("", UNKNOWN_PRICE_BUCKET)
    if field_name == "rating":
        return not value
    return value in ("", ())
