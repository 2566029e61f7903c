"""
Record normalizer — applies a FieldMapping to every RawTable row and builds
canonical Store records.

Per row:
  1. store_name from the mapped column; when empty, derived from the website
     host ("https://www.everlane.com/shop" → "Everlane").  A row with neither
     name nor website is skipped (not an error).
  2. Title-cased and clamped to the maximum name length.
  3. website gets an https:// scheme when missing; Instagram values are
     reduced to a bare handle.
  4. description: first character upper-cased, nothing else changed.
  5. tags split on | ; , — trimmed, empties and exact repeats dropped,
     capped at the configured maximum (extra tags silently dropped).
  6. price_range mapped to a bucket id, "unknown" for unmatched text,
     "" when the cell is empty.
  7. A fresh unique id.

Truncations never raise; they are recorded in changes_log for the
quality report but never block a row.

Public API:
    normalize(raw_table, mapping, config, id_factory) → NormalizationResult
    normalize_rows(raw_table, mapping, config, id_factory) → list[Store | None]
    get_price_bucket(value, buckets) → str
    get_price_label(bucket_id, buckets) → str
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Callable

import pandas as pd

from config.normalization_rules import (
    PRICE_BUCKETS,
    TAG_SEPARATOR_PATTERN,
    UNKNOWN_PRICE_BUCKET,
    PriceBucket,
)
from config.schema import DEFAULT_SCHEMA_CONFIG, SchemaConfig
from processing.column_mapper import FieldMapping
from processing.file_reader import RawTable
from processing.models import Store
from utils.text_formatter import sentence_case, title_case
from utils.url_normalizer import (
    extract_name_from_url,
    normalize_instagram_handle,
    normalize_url,
)

logger = logging.getLogger(__name__)

IdFactory = Callable[[], str]


# ═══════════════════════════════════════════════════════════════════════════
# Data classes
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class SkippedRow:
    """A row dropped because it had neither a name nor a website."""

    row_index: int
    reason: str
    values: dict[str, str] = field(default_factory=dict)


@dataclass
class NormalizationResult:
    """Output of the normalize() function."""

    records: list[Store] = field(default_factory=list)
    skipped_rows: list[SkippedRow] = field(default_factory=list)
    changes_log: list[dict] = field(default_factory=list)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped_rows)


# ═══════════════════════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════════════════════

def normalize(
    raw_table: RawTable,
    mapping: FieldMapping,
    config: SchemaConfig = DEFAULT_SCHEMA_CONFIG,
    id_factory: IdFactory | None = None,
) -> NormalizationResult:
    """
    Normalize every row of a RawTable into Store records.

    Args:
        raw_table: Parsed import data.
        mapping: schema field → header of raw_table.
        config: Limits, price buckets and placeholder names.
        id_factory: Produces record ids.  Defaults to uuid4 strings.

    Returns:
        NormalizationResult with the usable records, the skipped rows, and a
        log of every silent truncation.
    """
    result = NormalizationResult()
    make_id = id_factory or _new_id

    for row_index, row in enumerate(raw_table.rows):
        record, changes = _normalize_row(row_index, row, mapping, config, make_id)
        result.changes_log.extend(changes)
        if record is None:
            result.skipped_rows.append(SkippedRow(
                row_index=row_index,
                reason="Row has neither a store name nor a website",
                values=dict(row),
            ))
            continue
        result.records.append(record)

    if result.skipped_rows:
        logger.warning(
            f"Skipped {result.skipped_count} rows without a store name or website"
        )

    logger.info(
        f"Normalization complete: {len(result.records)} records from "
        f"{raw_table.row_count} rows, {result.skipped_count} skipped, "
        f"{len(result.changes_log)} values adjusted"
    )

    return result


def normalize_rows(
    raw_table: RawTable,
    mapping: FieldMapping,
    config: SchemaConfig = DEFAULT_SCHEMA_CONFIG,
    id_factory: IdFactory | None = None,
) -> list[Store | None]:
    """Normalize row by row; None marks a skipped row at its position."""
    make_id = id_factory or _new_id
    return [
        _normalize_row(row_index, row, mapping, config, make_id)[0]
        for row_index, row in enumerate(raw_table.rows)
    ]


def get_price_bucket(
    value: str,
    buckets: tuple[PriceBucket, ...] = PRICE_BUCKETS,
) -> str:
    """
    Map free-text price input to a bucket id.

    Matching is case-insensitive against the bucket id, its label and its
    synonyms ("premium" → "high", "$$" → "mid").

    Returns:
        The bucket id, "" for empty input, or "unknown" when nothing matches.
    """
    if not value or not value.strip():
        return ""
    normalized = value.strip().lower()
    for bucket in buckets:
        if normalized == bucket.id or normalized == bucket.label.lower():
            return bucket.id
        if normalized in (synonym.lower() for synonym in bucket.synonyms):
            return bucket.id
    return UNKNOWN_PRICE_BUCKET


def get_price_label(
    bucket_id: str,
    buckets: tuple[PriceBucket, ...] = PRICE_BUCKETS,
) -> str:
    """Display label for a bucket id ("high" → "$$$"); unknown ids pass through."""
    for bucket in buckets:
        if bucket.id == bucket_id:
            return bucket.label
    return bucket_id


def split_tags(cell: str, max_tags: int) -> tuple[list[str], int]:
    """
    Split a tags cell on | ; , and cap the result.

    Returns:
        (tags in input order, number of tags dropped by the cap)
    """
    if not cell:
        return [], 0
    pieces = [piece.strip() for piece in TAG_SEPARATOR_PATTERN.split(cell)]
    unique = list(dict.fromkeys(piece for piece in pieces if piece))
    dropped = max(len(unique) - max_tags, 0)
    return unique[:max_tags], dropped


# ═══════════════════════════════════════════════════════════════════════════
# Internal helpers
# ═══════════════════════════════════════════════════════════════════════════

def _new_id() -> str:
    return str(uuid.uuid4())


def _normalize_row(
    row_index: int,
    row: dict[str, str],
    mapping: FieldMapping,
    config: SchemaConfig,
    make_id: IdFactory,
) -> tuple[Store | None, list[dict]]:
    """
    Build one Store from one raw row.

    Returns:
        (record or None when the row is unusable, change-log entries)
    """
    changes: list[dict] = []

    def value_of(schema_field: str) -> str:
        header = mapping.get(schema_field)
        if not header:
            return ""
        raw_value = row.get(header, "")
        if raw_value is None or pd.isna(raw_value):
            return ""
        return str(raw_value).strip()

    # Step 1: name, falling back to the website host
    store_name = value_of("store_name")
    website = normalize_url(value_of("website"))

    if not store_name and website:
        store_name = extract_name_from_url(website, config.unparseable_url_name)
        changes.append(_change(row_index, "store_name", "(blank)", store_name,
                               "derived from website"))

    if not store_name and not website:
        logger.debug(f"Row {row_index}: no store name or website — skipped")
        return None, changes

    # Step 2: title case and length clamp
    store_name = title_case(store_name)
    if len(store_name) > config.max_name_length:
        clamped = store_name[:config.max_name_length]
        changes.append(_change(row_index, "store_name", store_name, clamped,
                               f"truncated to {config.max_name_length} characters"))
        logger.debug(f"Row {row_index}: name truncated to {config.max_name_length} chars")
        store_name = clamped

    # Step 3: tags
    tags, dropped = split_tags(value_of("tags"), config.max_tags)
    if dropped:
        changes.append(_change(row_index, "tags", f"{len(tags) + dropped} tags",
                               f"{len(tags)} tags", f"capped at {config.max_tags}"))
        logger.debug(f"Row {row_index}: dropped {dropped} tags over the cap")

    # Step 4: price bucket
    raw_price = value_of("price_range")
    price_range = get_price_bucket(raw_price, config.price_buckets)
    if price_range == UNKNOWN_PRICE_BUCKET:
        changes.append(_change(row_index, "price_range", raw_price,
                               UNKNOWN_PRICE_BUCKET, "no matching price bucket"))

    record = Store(
        id=make_id(),
        store_name=store_name or config.default_store_name,
        website=website,
        instagram_name=normalize_instagram_handle(value_of("instagram_name")),
        country=value_of("country"),
        city=value_of("city"),
        description=sentence_case(value_of("description")),
        tags=tuple(tags),
        price_range=price_range,
    )
    return record, changes


def _change(row_index: int, schema_field: str, original: str, normalized: str,
            method: str) -> dict:
    return {
        "row": row_index,
        "field": schema_field,
        "original": original,
        "normalized": normalized,
        "method": method,
    }
