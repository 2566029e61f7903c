"""
Import file reader — turns raw CSV or JSON text into a RawTable.

CSV input:
  - The delimiter is auto-detected from the first line among , ; TAB |
    (any tie → comma).
  - A character-level state machine handles quoted fields containing the
    delimiter or newlines, doubled-quote escapes ("" → ") and \\n, \\r\\n or
    bare \\r line endings.  Blank physical lines are dropped.
  - At least a header row and one data row are required.

JSON input:
  - Must be an array of flat objects.  An empty array is accepted and yields
    an empty table (a valid zero-record import), not an error.

Headers are cleaned for alias matching (see clean_header); the literal
original header text is kept on the table for display.

Public API:
    parse(raw_text, source_kind) → RawTable
    read_import_file(file_path) → RawTable
    detect_source_kind(filename, mime_type) → "csv" | "json"
"""

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

import pandas as pd

from config.normalization_rules import JSON_LIST_JOINER

logger = logging.getLogger(__name__)

SourceKind = Literal["csv", "json"]

# Candidate delimiters in tie-break order.
CANDIDATE_DELIMITERS: tuple[str, ...] = (",", ";", "\t", "|")

# Characters of a newline-free file inspected for delimiter detection.
_DELIMITER_SAMPLE_SIZE: int = 1000

_BOM = "\ufeff"
_SPACER_RUN = re.compile(r"[\s\-.]+")
_NON_WORD = re.compile(r"[^\w]")


class FormatError(ValueError):
    """The import text cannot be interpreted as a table."""


# ═══════════════════════════════════════════════════════════════════════════
# Data class
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, eq=False)
class RawTable:
    """Parsed but un-normalized import data."""

    dataframe: pd.DataFrame = field(default_factory=pd.DataFrame)
    """One column per cleaned header, every cell a str ("" when missing)."""

    original_headers: dict[str, str] = field(default_factory=dict)
    """cleaned header → header text exactly as it appeared in the file."""

    source_kind: str = "csv"
    delimiter: str | None = None

    @property
    def headers(self) -> list[str]:
        return [str(column) for column in self.dataframe.columns]

    @property
    def rows(self) -> list[dict[str, str]]:
        return self.dataframe.to_dict(orient="records")

    @property
    def row_count(self) -> int:
        return len(self.dataframe)

    @property
    def is_empty(self) -> bool:
        return self.dataframe.empty


# ═══════════════════════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════════════════════

def parse(raw_text: str, source_kind: SourceKind) -> RawTable:
    """
    Parse raw import text into a RawTable.

    Args:
        raw_text: Full file contents.
        source_kind: "csv" or "json".

    Returns:
        RawTable with cleaned headers and string cells.

    Raises:
        FormatError: Malformed JSON, JSON that is not an array of objects,
                     CSV with fewer than two non-blank rows, or CSV that
                     ends inside a quoted cell.
        ValueError: Unsupported source_kind.
    """
    if source_kind == "json":
        table = _parse_json(raw_text)
    elif source_kind == "csv":
        table = _parse_csv(raw_text)
    else:
        raise ValueError(f"Unsupported source kind: '{source_kind}'")

    logger.info(
        f"Parsed {source_kind.upper()} input: {table.row_count} rows, "
        f"{len(table.headers)} columns"
    )
    return table


def read_import_file(file_path: Path) -> RawTable:
    """Read a .csv or .json file from disk and parse it."""
    source_kind = detect_source_kind(file_path.name)
    raw_text = file_path.read_text(encoding="utf-8")
    logger.info(f"Reading '{file_path.name}' as {source_kind.upper()}")
    return parse(raw_text, source_kind)


def detect_source_kind(filename: str, mime_type: str | None = None) -> SourceKind:
    """
    Decide whether an upload is CSV or JSON from its MIME type or extension.

    Raises:
        FormatError: Neither CSV nor JSON.
    """
    lowered = (filename or "").lower()
    if mime_type == "application/json" or lowered.endswith(".json"):
        return "json"
    if mime_type == "text/csv" or lowered.endswith(".csv"):
        return "csv"
    raise FormatError("Invalid file type. Please upload a CSV or JSON file.")


def clean_header(header: str) -> str:
    """
    Clean a header for alias matching.

    Steps: trim, strip a leading byte-order mark, strip a wrapping quote
    character at either end, lowercase, collapse whitespace/hyphen/dot runs
    to "_", drop any remaining non-word character.

    Examples:
        '\\ufeff"Store Name"' → "store_name"
        "Web-Site"            → "web_site"
        "Price (USD)"         → "price_usd"
    """
    cleaned = header.strip()
    cleaned = cleaned.lstrip(_BOM).strip()
    cleaned = re.sub(r"^[\"']|[\"']$", "", cleaned)
    cleaned = cleaned.lower()
    cleaned = _SPACER_RUN.sub("_", cleaned)
    cleaned = _NON_WORD.sub("", cleaned)
    return cleaned


def detect_delimiter(text: str) -> str:
    """
    Pick the delimiter that occurs most often in the first line.

    Returns "," when no candidate occurs or when the highest count is shared
    by more than one candidate.
    """
    first_line_end = text.find("\n")
    if first_line_end == -1:
        sample = text[:_DELIMITER_SAMPLE_SIZE]
    else:
        sample = text[:first_line_end]

    counts = {delimiter: sample.count(delimiter) for delimiter in CANDIDATE_DELIMITERS}
    highest = max(counts.values())
    if highest == 0:
        return ","

    winners = [d for d, count in counts.items() if count == highest]
    if len(winners) > 1:
        logger.debug(f"Delimiter tie between {winners!r} — falling back to ','")
        return ","
    return winners[0]


# ═══════════════════════════════════════════════════════════════════════════
# Internal helpers — CSV
# ═══════════════════════════════════════════════════════════════════════════

def _parse_csv(raw_text: str) -> RawTable:
    delimiter = detect_delimiter(raw_text)
    records = _split_records(raw_text, delimiter)
    records = [cells for cells in records if not _is_blank_record(cells)]

    if len(records) < 2:
        raise FormatError("The file is empty or missing data rows.")

    headers, original_headers = _build_headers(records[0])

    rows: list[dict[str, str]] = []
    for cells in records[1:]:
        rows.append({
            header: cells[position] if position < len(cells) else ""
            for position, header in enumerate(headers)
        })

    return RawTable(
        dataframe=_build_dataframe(headers, rows),
        original_headers=original_headers,
        source_kind="csv",
        delimiter=delimiter,
    )


def _split_records(text: str, delimiter: str) -> list[list[str]]:
    """
    Split CSV text into records of cells with a quote-aware state machine.

    A quote opens a quoted section only at the start of a cell; anywhere
    else outside quotes it is a literal character (5" heels).  A doubled
    quote inside quotes is a literal quote.  Delimiters and line breaks
    inside quotes are kept as cell content.  Cells are whitespace-trimmed.

    Raises:
        FormatError: The text ends inside a quoted section.
    """
    records: list[list[str]] = []
    current_record: list[str] = []
    current_cell: list[str] = []
    inside_quotes = False
    quote_line = 0
    line_number = 1

    position = 0
    length = len(text)
    while position < length:
        char = text[position]
        next_char = text[position + 1] if position + 1 < length else ""

        if char == '"' and inside_quotes:
            if next_char == '"':
                current_cell.append('"')
                position += 1
            else:
                inside_quotes = False
        elif char == '"' and not "".join(current_cell).strip():
            inside_quotes = True
            quote_line = line_number
            current_cell = []
        elif char == delimiter and not inside_quotes:
            current_record.append("".join(current_cell).strip())
            current_cell = []
        elif char in ("\n", "\r") and not inside_quotes:
            if char == "\r" and next_char == "\n":
                position += 1
            line_number += 1
            current_record.append("".join(current_cell).strip())
            records.append(current_record)
            current_record = []
            current_cell = []
        else:
            if char == "\n" or (char == "\r" and next_char != "\n"):
                line_number += 1
            current_cell.append(char)
        position += 1

    if inside_quotes:
        raise FormatError(f"Unclosed quote starting on line {quote_line}.")

    if current_cell or current_record:
        current_record.append("".join(current_cell).strip())
        records.append(current_record)

    return records


def _is_blank_record(cells: list[str]) -> bool:
    return len(cells) == 1 and cells[0] == ""


# ═══════════════════════════════════════════════════════════════════════════
# Internal helpers — JSON
# ═══════════════════════════════════════════════════════════════════════════

def _parse_json(raw_text: str) -> RawTable:
    try:
        data = json.loads(raw_text)
    except json.JSONDecodeError as exc:
        logger.error(f"Invalid JSON input: {exc}")
        raise FormatError("Invalid JSON format.") from exc

    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise FormatError("JSON must be an array of objects.")

    if not data:
        logger.warning("JSON input is an empty array — importing zero records")
        return RawTable(source_kind="json")

    # Union of keys in first-seen order
    raw_keys: list[str] = []
    seen: set[str] = set()
    for item in data:
        for key in item:
            key_text = str(key)
            if key_text not in seen:
                seen.add(key_text)
                raw_keys.append(key_text)

    headers, original_headers = _build_headers(raw_keys)
    header_for_key = dict(zip(raw_keys, headers))

    rows: list[dict[str, str]] = []
    for item in data:
        row = {header: "" for header in headers}
        for key, value in item.items():
            row[header_for_key[str(key)]] = _stringify_json_value(value)
        rows.append(row)

    return RawTable(
        dataframe=_build_dataframe(headers, rows),
        original_headers=original_headers,
        source_kind="json",
    )


def _stringify_json_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list):
        return JSON_LIST_JOINER.join(
            _stringify_json_value(item) for item in value if item is not None
        )
    if isinstance(value, dict):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


# ═══════════════════════════════════════════════════════════════════════════
# Internal helpers — shared
# ═══════════════════════════════════════════════════════════════════════════

def _build_headers(raw_headers: list[str]) -> tuple[list[str], dict[str, str]]:
    """
    Clean raw headers and make them unique.

    Blank headers become "_unnamed_<index>"; a repeated cleaned header gets
    "_2", "_3"… appended.

    Returns:
        (cleaned headers in order, cleaned → original header text)
    """
    headers: list[str] = []
    original_headers: dict[str, str] = {}

    for index, raw_header in enumerate(raw_headers):
        cleaned = clean_header(raw_header) or f"_unnamed_{index}"
        unique = cleaned
        suffix = 2
        while unique in original_headers:
            unique = f"{cleaned}_{suffix}"
            suffix += 1
        if unique != cleaned:
            logger.warning(
                f"Duplicate column '{raw_header}' renamed to '{unique}'"
            )
        headers.append(unique)
        original_headers[unique] = raw_header.strip().lstrip(_BOM)

    return headers, original_headers


def _build_dataframe(headers: list[str], rows: list[dict[str, str]]) -> pd.DataFrame:
    return pd.DataFrame(rows, columns=headers, dtype=object)
