"""
CSV export of store records.

The header row uses names from the import alias table, so an exported file
can be imported again without any manual mapping.

Public API:
    generate_csv(stores) → str
    export_normalized(raw_table, mapping, config) → str
"""

import logging

import pandas as pd

from config.schema import DEFAULT_SCHEMA_CONFIG, SchemaConfig
from processing.column_mapper import FieldMapping
from processing.file_reader import RawTable
from processing.models import Store
from processing.normalizer import normalize

logger = logging.getLogger(__name__)

# CSV header → Store attribute.
EXPORT_COLUMNS: dict[str, str] = {
    "store_name": "store_name",
    "website_url": "website",
    "instagram_url": "instagram_name",
    "description": "description",
    "country": "country",
    "city": "city",
    "tags": "tags",
}

_EXPORT_TAG_SEPARATOR = ","


def generate_csv(stores: list[Store]) -> str:
    """
    Render records as CSV text.

    Tags are joined with "," inside one quoted cell; every cell containing a
    delimiter, quote or newline is quoted by pandas.
    """
    rows = []
    for store in stores:
        row = {}
        for header, attribute in EXPORT_COLUMNS.items():
            value = getattr(store, attribute)
            if attribute == "tags":
                value = _EXPORT_TAG_SEPARATOR.join(value)
            row[header] = value
        rows.append(row)

    dataframe = pd.DataFrame(rows, columns=list(EXPORT_COLUMNS))
    csv_text = dataframe.to_csv(index=False, lineterminator="\n")
    logger.info(f"Exported {len(stores)} stores to CSV")
    return csv_text


def export_normalized(
    raw_table: RawTable,
    mapping: FieldMapping,
    config: SchemaConfig = DEFAULT_SCHEMA_CONFIG,
) -> str:
    """Normalize an import with *mapping* and render the result as CSV."""
    result = normalize(raw_table, mapping, config)
    return generate_csv(result.records)
