"""
Column mapper — maps import file headers to the target schema fields.

Mapping is exact-match only: for each schema field (in declared order) the
first header whose cleaned form equals one of the field's aliases, and which
no earlier field has claimed, is selected.  No fuzzy or substring matching is
applied automatically, since a wrong column silently corrupts every imported
record.

For interactive review, review_mapping() adds fuzzy suggestions for fields
that stayed unmapped.  They are shown to the user and never applied on their
own.

Public API:
    generate_mapping(headers, config) → FieldMapping
    validate_mapping(mapping, headers, config) → list[str]
    review_mapping(headers, mapping, config) → ColumnMappingResult
"""

import logging
from dataclasses import dataclass, field

from config.schema import DEFAULT_SCHEMA_CONFIG, SchemaConfig
from processing.file_reader import clean_header
from utils.fuzzy_match import best_match

logger = logging.getLogger(__name__)

# schema field → header in the RawTable
FieldMapping = dict[str, str]

# Minimum token_sort_ratio for an advisory header suggestion.
SUGGESTION_THRESHOLD: int = 80


# ═══════════════════════════════════════════════════════════════════════════
# Data class
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class ColumnMappingResult:
    """Mapping state shown on the review screen."""

    mapping: FieldMapping = field(default_factory=dict)
    """schema field → header (only mapped fields are present)."""

    unmapped_fields: list[str] = field(default_factory=list)
    """Schema fields without a source header."""

    unused_headers: list[str] = field(default_factory=list)
    """Headers in the file that no field uses."""

    suggestions: dict[str, tuple[str, int]] = field(default_factory=dict)
    """unmapped field → (suggested header, score 80-100).  Advisory only."""


# ═══════════════════════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════════════════════

def generate_mapping(
    headers: list[str],
    config: SchemaConfig = DEFAULT_SCHEMA_CONFIG,
) -> FieldMapping:
    """
    Map file headers to schema fields by exact alias match.

    Args:
        headers: Headers in file order (raw or already cleaned).
        config: Schema configuration holding the alias table.

    Returns:
        FieldMapping of field → header.  Fields with no matching header are
        absent.
    """
    mapping: FieldMapping = {}
    used_headers: set[str] = set()

    for schema_field in config.fields:
        aliases = config.column_aliases[schema_field]
        for header in headers:
            if header in used_headers:
                continue
            if clean_header(header) in aliases:
                mapping[schema_field] = header
                used_headers.add(header)
                logger.debug(f"Mapped '{header}' → {schema_field}")
                break

    logger.info(
        f"Column mapping complete: {len(mapping)}/{len(config.fields)} fields "
        f"mapped from {len(headers)} headers"
    )
    return mapping


def validate_mapping(
    mapping: FieldMapping,
    headers: list[str],
    config: SchemaConfig = DEFAULT_SCHEMA_CONFIG,
) -> list[str]:
    """
    Check a (possibly user-edited) mapping against the file's headers.

    Returns:
        Human-readable problems; an empty list means the mapping is valid.
    """
    problems: list[str] = []
    header_set = set(headers)
    seen: dict[str, str] = {}

    for schema_field, header in mapping.items():
        if schema_field not in config.column_aliases:
            problems.append(f"Unknown field '{schema_field}'")
            continue
        if header not in header_set:
            problems.append(f"Column '{header}' for {schema_field} is not in the file")
            continue
        if header in seen:
            problems.append(
                f"Column '{header}' is mapped to both {seen[header]} and {schema_field}"
            )
            continue
        seen[header] = schema_field

    return problems


def review_mapping(
    headers: list[str],
    mapping: FieldMapping | None = None,
    config: SchemaConfig = DEFAULT_SCHEMA_CONFIG,
) -> ColumnMappingResult:
    """
    Describe a mapping for the review screen, with fuzzy suggestions.

    Args:
        headers: Headers in file order.
        mapping: Mapping to describe.  Generated when None.
        config: Schema configuration.

    Returns:
        ColumnMappingResult.  ``mapping`` is a copy; suggestions only cover
        fields that are unmapped and only propose unused headers.
    """
    current = dict(mapping) if mapping is not None else generate_mapping(headers, config)
    used = set(current.values())

    result = ColumnMappingResult(mapping=current)
    result.unmapped_fields = [f for f in config.fields if f not in current]
    result.unused_headers = [h for h in headers if h not in used]

    candidates = {clean_header(h): h for h in result.unused_headers}
    claimed: set[str] = set()
    for schema_field in result.unmapped_fields:
        suggestion = _suggest_header(
            config.column_aliases[schema_field],
            {k: v for k, v in candidates.items() if v not in claimed},
        )
        if suggestion is not None:
            result.suggestions[schema_field] = suggestion
            claimed.add(suggestion[0])
            logger.info(
                f"Suggested '{suggestion[0]}' for {schema_field} "
                f"(score={suggestion[1]})"
            )

    return result


# ═══════════════════════════════════════════════════════════════════════════
# Internal helpers
# ═══════════════════════════════════════════════════════════════════════════

def _suggest_header(
    aliases: tuple[str, ...],
    candidates: dict[str, str],
) -> tuple[str, int] | None:
    """Best-scoring unused header across all aliases of one field."""
    best: tuple[str, int] | None = None
    for alias in aliases:
        header, score = best_match(alias, candidates, threshold=SUGGESTION_THRESHOLD)
        if header is not None and (best is None or score > best[1]):
            best = (header, score)
    return best
