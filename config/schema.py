"""
Target schema definitions for imported store records.

Defines the fixed set of schema fields, the per-collection limits, and the
immutable SchemaConfig that bundles alias and price tables so every pipeline
step receives its configuration explicitly instead of reading globals.

Variants for tests or other front ends are built with dataclasses.replace:

    config = dataclasses.replace(DEFAULT_SCHEMA_CONFIG, max_tags=5)
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from config.column_mapping import COLUMN_ALIASES
from config.normalization_rules import (
    DEFAULT_STORE_NAME,
    PRICE_BUCKETS,
    UNPARSEABLE_URL_NAME,
    PriceBucket,
)

# Schema fields in the order they claim headers during mapping.
SCHEMA_FIELDS: tuple[str, ...] = (
    "store_name",
    "website",
    "instagram_name",
    "country",
    "city",
    "tags",
    "description",
    "price_range",
)

# Hard and advisory limits shared by the import and manual-entry paths.
LIMITS: dict[str, int] = {
    "MAX_STORES_PER_COLLECTION": 2000,
    "MAX_IMPORT_ROWS": 500,
    "MAX_TAGS_PER_STORE": 20,
    "MAX_NAME_LENGTH": 100,
}

DEFAULT_TAG_SIMILARITY_THRESHOLD: float = 0.85


@dataclass(frozen=True)
class SchemaConfig:
    """Immutable configuration passed through the import pipeline."""

    column_aliases: Mapping[str, tuple[str, ...]]
    price_buckets: tuple[PriceBucket, ...] = PRICE_BUCKETS
    max_tags: int = LIMITS["MAX_TAGS_PER_STORE"]
    max_name_length: int = LIMITS["MAX_NAME_LENGTH"]
    max_stores_per_collection: int = LIMITS["MAX_STORES_PER_COLLECTION"]
    max_import_rows: int = LIMITS["MAX_IMPORT_ROWS"]
    tag_similarity_threshold: float = DEFAULT_TAG_SIMILARITY_THRESHOLD
    default_store_name: str = DEFAULT_STORE_NAME
    unparseable_url_name: str = UNPARSEABLE_URL_NAME

    @property
    def fields(self) -> tuple[str, ...]:
        """Schema fields in declared (mapping priority) order."""
        return tuple(self.column_aliases)


def build_schema_config(
    column_aliases: Mapping[str, list[str]] | None = None,
    **overrides,
) -> SchemaConfig:
    """
    Build a SchemaConfig with a read-only copy of the alias table.

    Args:
        column_aliases: field → aliases.  Defaults to COLUMN_ALIASES.
        **overrides: Any other SchemaConfig field.

    Returns:
        A new SchemaConfig.
    """
    aliases = column_aliases if column_aliases is not None else COLUMN_ALIASES
    frozen_aliases = MappingProxyType(
        {field_name: tuple(names) for field_name, names in aliases.items()}
    )
    return SchemaConfig(column_aliases=frozen_aliases, **overrides)


DEFAULT_SCHEMA_CONFIG: SchemaConfig = build_schema_config()
