"""
Import session — the interactive import as an explicit state machine.

    PARSING → MAPPING_REVIEW → COLLISION_REVIEW → TAG_REVIEW → COMMITTED
        any non-terminal state → ABORTED

  - start():            parse the text; a FormatError aborts the session.
  - confirm_mapping():  normalize with the (possibly edited) mapping and run
                        duplicate detection.
  - resolve():          one action per collision, in order.  Each resolution
                        updates the working set, so a later collision on the
                        same key sees the already-merged record.
  - apply_tag_choices() / skip_tag_cleaning():  last step before commit.
  - abort():            nothing is ever written.

The collection is written exactly once, at commit, through the injected
CollectionStore.  Methods called in the wrong state raise
InvalidTransitionError and leave the session unchanged.

Public API:
    ImportSession(store, collection_id, mode, config, id_factory)
    ImportState, ImportSummary, InvalidTransitionError, InvalidMappingError
"""

import logging
from dataclasses import dataclass
from enum import Enum

from config.schema import DEFAULT_SCHEMA_CONFIG, SchemaConfig
from output.collection_store import CollectionStore
from processing.column_mapper import FieldMapping, generate_mapping, validate_mapping
from processing.conflict_detector import (
    RESOLUTION_ACTIONS,
    Collision,
    detect_collisions,
    resolve_collision,
)
from processing.file_reader import FormatError, RawTable, parse
from processing.merger import WRITE_MODES, merge_into_collection
from processing.models import Collection, Store
from processing.normalizer import IdFactory, NormalizationResult, normalize
from processing.quality_checker import QualityReport, check_quality
from processing.tag_deduplicator import (
    TagMergeGroup,
    apply_tag_mappings,
    build_tag_mappings,
    collect_tags,
    find_similar_groups,
)
from utils.text_formatter import name_key

logger = logging.getLogger(__name__)

NO_VALID_STORES_MESSAGE = "No valid stores found with current mapping."


class ImportState(Enum):
    PARSING = "parsing"
    MAPPING_REVIEW = "mapping_review"
    COLLISION_REVIEW = "collision_review"
    TAG_REVIEW = "tag_review"
    COMMITTED = "committed"
    ABORTED = "aborted"


_TERMINAL_STATES = (ImportState.COMMITTED, ImportState.ABORTED)


class InvalidTransitionError(RuntimeError):
    """A session method was called in a state that does not allow it."""


class InvalidMappingError(ValueError):
    """A reviewed mapping refers to unknown fields or headers."""

    def __init__(self, problems: list[str]):
        self.problems = problems
        super().__init__("; ".join(problems))


@dataclass
class ImportSummary:
    """Counts shown after (or during) an import."""

    rows_read: int = 0
    skipped_rows: int = 0
    new_records: int = 0
    merged: int = 0
    overwritten: int = 0
    skipped_collisions: int = 0
    tags_canonicalized: int = 0
    added: int = 0
    updated: int = 0


class ImportSession:
    """
    One import of one file into one collection.

    Args:
        store: Storage collaborator; loaded at start, saved once at commit.
        collection_id: Target collection.
        mode: "append" (upsert into the collection) or "replace" (the import
              becomes the collection).  In replace mode records are only
              checked for duplicates within the file, since the stored
              records are about to be discarded.
        config: Schema configuration.
        id_factory: Record id generator, injectable for tests.
    """

    def __init__(
        self,
        store: CollectionStore,
        collection_id: str,
        mode: str = "append",
        config: SchemaConfig = DEFAULT_SCHEMA_CONFIG,
        id_factory: IdFactory | None = None,
    ):
        if mode not in WRITE_MODES:
            raise ValueError(f"Unknown write mode '{mode}'. Expected one of {WRITE_MODES}")

        self.store = store
        self.collection_id = collection_id
        self.mode = mode
        self.config = config
        self.id_factory = id_factory

        self.state = ImportState.PARSING
        self.error: str | None = None
        self.raw_table: RawTable | None = None
        self.mapping: FieldMapping = {}
        self.normalization: NormalizationResult | None = None

        self._snapshot: Collection | None = None
        self._collisions: list[Collision] = []
        self._collision_index = 0
        self._final: dict[str, Store] = {}
        self._current_by_key: dict[str, Store] = {}
        self._tag_groups: list[TagMergeGroup] | None = None
        self._summary = ImportSummary()

    # ─────────────────────────────────────────────────────────────────────
    # Parsing and mapping
    # ─────────────────────────────────────────────────────────────────────

    def start(self, raw_text: str, source_kind: str) -> ImportState:
        """Parse the file and propose a mapping."""
        self._require(ImportState.PARSING)

        try:
            self.raw_table = parse(raw_text, source_kind)
        except FormatError as exc:
            self.error = str(exc)
            self.state = ImportState.ABORTED
            logger.warning(f"Import into '{self.collection_id}' aborted: {exc}")
            return self.state

        self.mapping = generate_mapping(self.raw_table.headers, self.config)
        self._snapshot = self.store.load(self.collection_id)
        self._summary.rows_read = self.raw_table.row_count
        self.state = ImportState.MAPPING_REVIEW
        return self.state

    def confirm_mapping(self, mapping: FieldMapping | None = None) -> ImportState:
        """
        Normalize with the reviewed mapping and look for duplicates.

        Args:
            mapping: The user's mapping.  None keeps the proposed one.

        Raises:
            InvalidMappingError: The mapping names unknown fields, headers
                                 missing from the file, or a header twice.
        """
        self._require(ImportState.MAPPING_REVIEW)

        if mapping is not None:
            problems = validate_mapping(mapping, self.raw_table.headers, self.config)
            if problems:
                raise InvalidMappingError(problems)
            self.mapping = dict(mapping)

        result = normalize(self.raw_table, self.mapping, self.config, self.id_factory)
        if self.raw_table.row_count > 0 and not result.records:
            self.error = NO_VALID_STORES_MESSAGE
            logger.warning(f"Import into '{self.collection_id}': {NO_VALID_STORES_MESSAGE}")
            return self.state

        self.error = None
        self.normalization = result
        self._summary.skipped_rows = result.skipped_count

        existing = self._snapshot.stores if self.mode == "append" else ()
        report = detect_collisions(result.records, existing)

        self._collisions = report.collisions
        self._collision_index = 0
        self._final = {record.id: record for record in report.non_conflicting}
        self._current_by_key = {}
        for record in list(existing) + report.non_conflicting:
            key = name_key(record.store_name)
            if key:
                self._current_by_key.setdefault(key, record)
        self._summary.new_records = len(report.non_conflicting)

        self.state = ImportState.COLLISION_REVIEW
        self._advance_after_collisions()
        return self.state

    # ─────────────────────────────────────────────────────────────────────
    # Collision review
    # ─────────────────────────────────────────────────────────────────────

    @property
    def pending_collisions(self) -> int:
        return len(self._collisions) - self._collision_index

    @property
    def current_collision(self) -> Collision | None:
        """The collision awaiting a decision, with its existing side up to date."""
        if self.state != ImportState.COLLISION_REVIEW:
            return None
        collision = self._collisions[self._collision_index]
        existing = self._current_by_key.get(collision.name_key, collision.existing)
        return Collision(
            incoming=collision.incoming,
            existing=existing,
            name_key=collision.name_key,
        )

    def resolve(self, action: str) -> ImportState:
        """
        Resolve the current collision with "merge", "overwrite" or "skip".

        Raises:
            ValueError: Unknown action (the collision stays pending).
        """
        self._require(ImportState.COLLISION_REVIEW)
        if action not in RESOLUTION_ACTIONS:
            raise ValueError(
                f"Unknown resolution action '{action}'. Expected one of {RESOLUTION_ACTIONS}"
            )

        collision = self.current_collision
        resolved = resolve_collision(collision, action, self.config.max_tags)
        logger.debug(f"Collision '{collision.name_key}' resolved with {action}")

        if resolved is None:
            self._summary.skipped_collisions += 1
        else:
            self._final[resolved.id] = resolved
            self._current_by_key[collision.name_key] = resolved
            if action == "merge":
                self._summary.merged += 1
            else:
                self._summary.overwritten += 1

        self._collision_index += 1
        self._advance_after_collisions()
        return self.state

    # ─────────────────────────────────────────────────────────────────────
    # Tag review
    # ─────────────────────────────────────────────────────────────────────

    @property
    def tag_groups(self) -> list[TagMergeGroup]:
        if self._tag_groups is None:
            return []
        return list(self._tag_groups)

    def apply_tag_choices(self, choices: dict[int, str] | None = None) -> ImportState:
        """
        Canonicalize tags and commit.

        Args:
            choices: group index → chosen label; groups left out keep their
                     primary.

        Raises:
            ValueError: A choice that is not a member of its group.
        """
        self._require(ImportState.TAG_REVIEW)
        mappings = build_tag_mappings(self._tag_groups, choices)
        records = apply_tag_mappings(self._final.values(), mappings)
        self._final = {record.id: record for record in records}
        self._summary.tags_canonicalized = len(mappings)
        return self._commit()

    def skip_tag_cleaning(self) -> ImportState:
        """Commit with tags as imported."""
        self._require(ImportState.TAG_REVIEW)
        return self._commit()

    # ─────────────────────────────────────────────────────────────────────
    # Abort and results
    # ─────────────────────────────────────────────────────────────────────

    def abort(self) -> ImportState:
        """Cancel the import.  No storage write has happened or will happen."""
        if self.state in _TERMINAL_STATES:
            raise InvalidTransitionError(f"Cannot abort an import that is {self.state.value}")
        logger.info(f"Import into '{self.collection_id}' cancelled in {self.state.value}")
        self.state = ImportState.ABORTED
        return self.state

    @property
    def final_records(self) -> list[Store]:
        """Records that will be (or were) written: new and resolved."""
        return list(self._final.values())

    @property
    def summary(self) -> ImportSummary:
        return self._summary

    @property
    def quality_report(self) -> QualityReport | None:
        if self.normalization is None:
            return None
        existing_count = len(self._snapshot.stores) if self.mode == "append" else 0
        return check_quality(
            self.normalization.records,
            self.normalization.skipped_rows,
            self.normalization.changes_log,
            existing_count,
            self.config,
        )

    # ─────────────────────────────────────────────────────────────────────
    # Internal helpers
    # ─────────────────────────────────────────────────────────────────────

    def _require(self, expected: ImportState) -> None:
        if self.state != expected:
            raise InvalidTransitionError(
                f"Expected state {expected.value}, session is {self.state.value}"
            )

    def _advance_after_collisions(self) -> None:
        if self._collision_index < len(self._collisions):
            return
        self._tag_groups = find_similar_groups(
            collect_tags(self._final.values()),
            self.config.tag_similarity_threshold,
        )
        self.state = ImportState.TAG_REVIEW
        if not self._tag_groups:
            self._commit()

    def _commit(self) -> ImportState:
        try:
            collection = self.store.load(self.collection_id)
            result = merge_into_collection(collection, self.final_records, self.mode)
            self.store.save(result.collection)
        except Exception as exc:
            self.error = str(exc)
            self.state = ImportState.ABORTED
            logger.error(f"Saving collection '{self.collection_id}' failed: {exc}")
            raise

        self._summary.added = result.added
        self._summary.updated = result.updated
        self.state = ImportState.COMMITTED
        logger.info(
            f"Import into '{self.collection_id}' committed ({self.mode}): "
            f"{result.added} added, {result.updated} updated, "
            f"{result.total_stores} stores in collection"
        )
        return self.state
