"""
Merger — combines the final import records with the stored collection.

Supports two modes:
  1. append:  upsert by id.  Records whose id is already in the collection
     replace it in place (merge/overwrite results); everything else is
     appended in order.
  2. replace: the import records become the collection's stores.

Collection-level keys (name, owner, folios…) are kept in both modes.

Public API:
    merge_into_collection(collection, records, mode) → MergeResult
"""

import logging
from dataclasses import dataclass, replace
from typing import Literal

from processing.models import Collection, Store

logger = logging.getLogger(__name__)

WriteMode = Literal["append", "replace"]
WRITE_MODES: tuple[str, ...] = ("append", "replace")


@dataclass
class MergeResult:
    """Output of the merge_into_collection() function."""

    collection: Collection
    added: int = 0
    updated: int = 0

    @property
    def total_stores(self) -> int:
        return len(self.collection.stores)


def merge_into_collection(
    collection: Collection,
    records: list[Store],
    mode: str = "append",
) -> MergeResult:
    """
    Build the collection that will be written at commit.

    Args:
        collection: Collection as currently stored.
        records: Final import records (new and resolved).
        mode: "append" or "replace".

    Returns:
        MergeResult with the new Collection and add/update counts.

    Raises:
        ValueError: Unknown mode.
    """
    if mode not in WRITE_MODES:
        raise ValueError(f"Unknown write mode '{mode}'. Expected one of {WRITE_MODES}")

    if mode == "replace":
        logger.info(
            f"Replacing {len(collection.stores)} stores in collection "
            f"'{collection.id}' with {len(records)} imported stores"
        )
        return MergeResult(
            collection=replace(collection, stores=tuple(records)),
            added=len(records),
        )

    incoming_by_id = {record.id: record for record in records}
    stored_ids = {store.id for store in collection.stores}

    stores: list[Store] = []
    updated = 0
    for store in collection.stores:
        if store.id in incoming_by_id:
            stores.append(incoming_by_id[store.id])
            updated += 1
        else:
            stores.append(store)

    added = 0
    for record in records:
        if record.id not in stored_ids:
            stores.append(record)
            added += 1

    logger.info(
        f"Appending to collection '{collection.id}': {added} added, "
        f"{updated} updated, {len(stores)} total"
    )
    return MergeResult(
        collection=replace(collection, stores=tuple(stores)),
        added=added,
        updated=updated,
    )
