"""
Non-interactive entry points.

  - run_bulk_import(): drives an ImportSession end to end with the proposed
    mapping, one collision action for every collision, and either no tag
    cleaning or the primary of every tag group.
  - add_single_store(): the manual "add one store" path.  Validates the
    input, checks collection capacity, and detects an exact name collision
    before writing.

Public API:
    run_bulk_import(raw_text, source_kind, store, collection_id, ...) → ImportSession
    add_single_store(store, collection_id, incoming, action, config) → AddStoreResult
"""

import logging
from dataclasses import dataclass, field, replace

from config.schema import DEFAULT_SCHEMA_CONFIG, SchemaConfig
from output.collection_store import CollectionStore
from processing.conflict_detector import (
    RESOLUTION_ACTIONS,
    Collision,
    find_existing_match,
    resolve_collision,
)
from processing.import_session import ImportSession, ImportState
from processing.models import Store
from processing.normalizer import IdFactory
from processing.quality_checker import validate_store_input
from utils.text_formatter import name_key, title_case
from utils.url_normalizer import normalize_instagram_handle, normalize_url

logger = logging.getLogger(__name__)


@dataclass
class AddStoreResult:
    """Outcome of add_single_store()."""

    saved: bool = False
    store: Store | None = None
    collision: Collision | None = None
    errors: list[str] = field(default_factory=list)


def run_bulk_import(
    raw_text: str,
    source_kind: str,
    store: CollectionStore,
    collection_id: str,
    mode: str = "append",
    collision_action: str = "skip",
    clean_tags: bool = False,
    config: SchemaConfig = DEFAULT_SCHEMA_CONFIG,
    id_factory: IdFactory | None = None,
) -> ImportSession:
    """
    Import a file without user interaction.

    Args:
        raw_text: File contents.
        source_kind: "csv" or "json".
        store: Storage collaborator.
        collection_id: Target collection.
        mode: "append" or "replace".
        collision_action: Applied to every collision.
        clean_tags: Merge every tag group under its primary when True.
        config: Schema configuration.
        id_factory: Record id generator.

    Returns:
        The finished session.  Its state is COMMITTED, or ABORTED with
        ``error`` set when the file could not be parsed, or MAPPING_REVIEW
        with ``error`` set when no row produced a record.

    Raises:
        ValueError: Unknown collision action or mode.
    """
    if collision_action not in RESOLUTION_ACTIONS:
        raise ValueError(
            f"Unknown resolution action '{collision_action}'. Expected one of {RESOLUTION_ACTIONS}"
        )

    session = ImportSession(store, collection_id, mode, config, id_factory)
    if session.start(raw_text, source_kind) == ImportState.ABORTED:
        return session

    session.confirm_mapping()
    if session.state == ImportState.MAPPING_REVIEW:
        return session

    while session.state == ImportState.COLLISION_REVIEW:
        session.resolve(collision_action)

    if session.state == ImportState.TAG_REVIEW:
        if clean_tags:
            session.apply_tag_choices()
        else:
            session.skip_tag_cleaning()

    logger.info(f"Bulk import into '{collection_id}' finished: {session.summary}")
    return session


def add_single_store(
    store: CollectionStore,
    collection_id: str,
    incoming: Store,
    action: str | None = None,
    config: SchemaConfig = DEFAULT_SCHEMA_CONFIG,
) -> AddStoreResult:
    """
    Add one manually entered store to a collection.

    When the name collides with a store already in the collection and no
    *action* is given, nothing is written and the collision is returned so
    the caller can ask the user.  Otherwise the collection is written once.

    Args:
        store: Storage collaborator.
        collection_id: Target collection.
        incoming: The new store (name and website are normalized here).
        action: "merge", "overwrite" or "skip" for a collision.
        config: Limits.

    Returns:
        AddStoreResult.

    Raises:
        ValueError: Unknown action.
    """
    if action is not None and action not in RESOLUTION_ACTIONS:
        raise ValueError(
            f"Unknown resolution action '{action}'. Expected one of {RESOLUTION_ACTIONS}"
        )

    validation = validate_store_input(incoming.store_name, incoming.website, incoming.tags, config)
    if not validation.is_valid:
        return AddStoreResult(errors=validation.errors)

    candidate = replace(
        incoming,
        store_name=title_case(incoming.store_name.strip()),
        website=normalize_url(incoming.website),
        instagram_name=normalize_instagram_handle(incoming.instagram_name),
    )

    collection = store.load(collection_id)
    existing = find_existing_match(candidate, collection.stores)

    if existing is None:
        if len(collection.stores) >= config.max_stores_per_collection:
            message = f"Collection limit reached ({config.max_stores_per_collection} stores)."
            logger.warning(f"Cannot add '{candidate.store_name}' to '{collection_id}': {message}")
            return AddStoreResult(errors=[message])
        store.save(replace(collection, stores=collection.stores + (candidate,)))
        logger.info(f"Added '{candidate.store_name}' to collection '{collection_id}'")
        return AddStoreResult(saved=True, store=candidate)

    collision = Collision(incoming=candidate, existing=existing, name_key=name_key(candidate.store_name))
    if action is None:
        logger.info(f"'{candidate.store_name}' already exists in '{collection_id}' — awaiting decision")
        return AddStoreResult(collision=collision)

    resolved = resolve_collision(collision, action, config.max_tags)
    if resolved is None:
        logger.info(f"Skipped adding '{candidate.store_name}' to '{collection_id}'")
        return AddStoreResult(store=existing, collision=collision)

    stores = tuple(resolved if s.id == existing.id else s for s in collection.stores)
    store.save(replace(collection, stores=stores))
    logger.info(f"Updated '{existing.store_name}' in '{collection_id}' with {action}")
    return AddStoreResult(saved=True, store=resolved, collision=collision)
