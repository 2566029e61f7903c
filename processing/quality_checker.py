"""
Quality checker — summarizes an import batch and validates manual entries.

The import report covers:
  1. Totals: records, skipped rows, values adjusted during normalization.
  2. Blank statistics per schema field (pandas).
  3. Price values that matched no bucket.
  4. Name keys that appear more than once within the batch.
  5. Capacity: whether the collection would exceed its store limit, and
     whether the file exceeded the advisory import row limit.

Manual entries (one store typed into a form) go through
validate_store_input() before they reach the pipeline.

Public API:
    check_quality(records, skipped_rows, changes_log, existing_count, config)
        → QualityReport
    validate_store_input(store_name, website, tags, config) → ValidationResult
"""

import logging
from dataclasses import dataclass, field
from urllib.parse import urlparse

import pandas as pd

from config.normalization_rules import UNKNOWN_PRICE_BUCKET
from config.schema import DEFAULT_SCHEMA_CONFIG, SchemaConfig
from processing.models import Store
from utils.text_formatter import name_key
from utils.url_normalizer import normalize_url

logger = logging.getLogger(__name__)

# Fields reported in the blank statistics, in display order.
_REPORTED_FIELDS: tuple[str, ...] = (
    "store_name",
    "website",
    "instagram_name",
    "country",
    "city",
    "tags",
    "description",
    "price_range",
)


# ═══════════════════════════════════════════════════════════════════════════
# Data classes
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class QualityReport:
    """Quality report for one import batch."""

    total_records: int = 0
    total_rows: int = 0
    skipped_rows: list = field(default_factory=list)
    normalization_log: list[dict] = field(default_factory=list)
    blank_counts: dict[str, int] = field(default_factory=dict)
    blank_percentages: dict[str, float] = field(default_factory=dict)
    unknown_prices: list[dict] = field(default_factory=list)
    duplicate_name_keys: dict[str, int] = field(default_factory=dict)
    existing_count: int = 0
    exceeds_capacity: bool = False
    exceeds_import_limit: bool = False
    is_clean: bool = True


@dataclass
class ValidationResult:
    """Outcome of validate_store_input()."""

    errors: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


# ═══════════════════════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════════════════════

def check_quality(
    records: list[Store],
    skipped_rows: list | None = None,
    changes_log: list[dict] | None = None,
    existing_count: int = 0,
    config: SchemaConfig = DEFAULT_SCHEMA_CONFIG,
) -> QualityReport:
    """
    Build the quality report shown before the user commits an import.

    Args:
        records: Normalized records of the batch.
        skipped_rows: SkippedRow entries from the normalizer.
        changes_log: Normalizer change log (truncations, unknown prices).
        existing_count: Stores already in the target collection.
        config: Limits to check against.

    Returns:
        QualityReport.  ``is_clean`` is False when any row was skipped, any
        price was unrecognized, any name repeats within the batch, or a
        limit would be exceeded.
    """
    report = QualityReport()
    report.total_records = len(records)
    report.skipped_rows = list(skipped_rows or [])
    report.total_rows = report.total_records + len(report.skipped_rows)
    report.normalization_log = list(changes_log or [])
    report.existing_count = existing_count

    dataframe = _records_to_dataframe(records)
    report.blank_counts, report.blank_percentages = _compute_blank_stats(dataframe)

    report.unknown_prices = [
        {"row": index, "store_name": record.store_name}
        for index, record in enumerate(records)
        if record.price_range == UNKNOWN_PRICE_BUCKET
    ]
    report.duplicate_name_keys = _find_duplicate_keys(records)

    report.exceeds_capacity = (
        existing_count + len(records) > config.max_stores_per_collection
    )
    report.exceeds_import_limit = report.total_rows > config.max_import_rows
    if report.exceeds_capacity:
        logger.warning(
            f"Import would bring the collection to {existing_count + len(records)} "
            f"stores (limit {config.max_stores_per_collection})"
        )
    if report.exceeds_import_limit:
        logger.warning(
            f"File has {report.total_rows} rows, above the recommended "
            f"{config.max_import_rows}"
        )

    report.is_clean = not (
        report.skipped_rows
        or report.unknown_prices
        or report.duplicate_name_keys
        or report.exceeds_capacity
        or report.exceeds_import_limit
    )

    logger.info(
        f"Quality check complete: {report.total_records} records, "
        f"clean={report.is_clean}, {len(report.skipped_rows)} skipped, "
        f"{len(report.unknown_prices)} unknown prices, "
        f"{len(report.duplicate_name_keys)} repeated names"
    )
    return report


def validate_store_input(
    store_name: str,
    website: str = "",
    tags: list[str] | tuple[str, ...] = (),
    config: SchemaConfig = DEFAULT_SCHEMA_CONFIG,
) -> ValidationResult:
    """
    Validate a single manually entered store.

    Rules: a name is required and at most ``max_name_length`` characters; a
    website, when given, must parse as a URL with a host; at most
    ``max_tags`` tags.
    """
    result = ValidationResult()

    name = (store_name or "").strip()
    if not name:
        result.errors.append("Store name is required.")
    elif len(name) > config.max_name_length:
        result.errors.append(
            f"Store name exceeds {config.max_name_length} characters."
        )

    if website and website.strip():
        if not _is_valid_url(normalize_url(website)):
            result.errors.append("Invalid website URL format.")

    if len(tags) > config.max_tags:
        result.errors.append(f"Too many tags (max {config.max_tags}).")

    if result.errors:
        logger.debug(f"Store input rejected: {result.errors}")
    return result


# ═══════════════════════════════════════════════════════════════════════════
# Internal helpers
# ═══════════════════════════════════════════════════════════════════════════

def _records_to_dataframe(records: list[Store]) -> pd.DataFrame:
    rows = [
        {
            "store_name": record.store_name,
            "website": record.website,
            "instagram_name": record.instagram_name,
            "country": record.country,
            "city": record.city,
            "tags": "|".join(record.tags),
            "description": record.description,
            "price_range": record.price_range,
        }
        for record in records
    ]
    dataframe = pd.DataFrame(rows, columns=list(_REPORTED_FIELDS))
    return dataframe.replace("", pd.NA)


def _compute_blank_stats(
    dataframe: pd.DataFrame,
) -> tuple[dict[str, int], dict[str, float]]:
    """
    Count blanks and compute blank percentages for each reported field.

    Returns:
        (blank_counts, blank_percentages) — both keyed by field name.
    """
    blank_counts: dict[str, int] = {}
    blank_percentages: dict[str, float] = {}
    total_rows = len(dataframe)

    for column in _REPORTED_FIELDS:
        blank_count = int(dataframe[column].isna().sum())
        blank_counts[column] = blank_count
        if total_rows > 0:
            blank_percentages[column] = round((blank_count / total_rows) * 100, 1)
        else:
            blank_percentages[column] = 0.0

    return blank_counts, blank_percentages


def _find_duplicate_keys(records: list[Store]) -> dict[str, int]:
    """name key → occurrence count, for keys seen more than once."""
    keys = pd.Series([name_key(record.store_name) for record in records], dtype=object)
    keys = keys[keys != ""]
    counts = keys.value_counts()
    return {str(key): int(count) for key, count in counts.items() if count > 1}


def _is_valid_url(url: str) -> bool:
    try:
        parsed = urlparse(url if not url.startswith("//") else f"https:{url}")
    except ValueError:
        return False
    host = parsed.hostname or ""
    return bool(host) and not any(char.isspace() for char in host)
