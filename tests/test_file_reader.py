"""
Tests for processing/file_reader.py

Covers: CSV quoting and line endings, delimiter detection, header cleaning,
JSON input (including the empty-array case), error handling, and file-type
detection.
"""

import pytest

from processing.file_reader import (
    FormatError,
    RawTable,
    clean_header,
    detect_delimiter,
    detect_source_kind,
    parse,
    read_import_file,
)


# ═══════════════════════════════════════════════════════════════════════════
# CSV parsing
# ═══════════════════════════════════════════════════════════════════════════

class TestCsvParsing:
    def test_simple_table(self):
        table = parse("store_name,city\nGanni,Copenhagen\nToteme,Stockholm\n", "csv")
        assert table.headers == ["store_name", "city"]
        assert table.row_count == 2
        assert table.rows[1] == {"store_name": "Toteme", "city": "Stockholm"}
        assert table.source_kind == "csv"
        assert table.delimiter == ","

    def test_quoted_delimiter_kept_in_cell(self):
        table = parse('name,description\nAcme,"Hello, world"\n', "csv")
        assert table.rows[0]["description"] == "Hello, world"

    def test_quoted_newline_kept_in_cell(self):
        table = parse('name,description\nAcme,"Line one\nLine two"\n', "csv")
        assert table.row_count == 1
        assert table.rows[0]["description"] == "Line one\nLine two"

    def test_doubled_quote_is_literal_quote(self):
        table = parse('name,description\nAcme,"He said ""hi"""\n', "csv")
        assert table.rows[0]["description"] == 'He said "hi"'

    def test_quote_inside_unquoted_cell_is_literal(self):
        text = (
            "name,description,city\n"
            'Acme,5" heels,Oslo\n'
            "Ganni,Denim,Copenhagen\n"
            "Toteme,Knits,Stockholm\n"
        )
        table = parse(text, "csv")
        assert table.row_count == 3
        assert table.rows[0] == {"name": "Acme", "description": '5" heels', "city": "Oslo"}
        assert table.rows[2]["name"] == "Toteme"

    def test_quoted_cell_after_leading_space(self):
        table = parse('name,description\nAcme, "Hello, world"\n', "csv")
        assert table.rows[0]["description"] == "Hello, world"

    def test_unclosed_quote_rejected(self):
        with pytest.raises(FormatError, match="Unclosed quote starting on line 2"):
            parse('name,description\nAcme,"Hello\nGanni,Denim\n', "csv")

    def test_crlf_line_endings(self):
        table = parse("name,city\r\nGanni,Copenhagen\r\nToteme,Stockholm\r\n", "csv")
        assert table.row_count == 2
        assert table.rows[0]["city"] == "Copenhagen"

    def test_bare_cr_line_endings(self):
        table = parse("name,city\rGanni,Copenhagen\r", "csv")
        assert table.rows == [{"name": "Ganni", "city": "Copenhagen"}]

    def test_blank_lines_dropped(self):
        table = parse("name,city\n\nGanni,Copenhagen\n\n\nToteme,Stockholm", "csv")
        assert table.row_count == 2

    def test_cells_trimmed(self):
        table = parse("name , city\n  Ganni ,  Copenhagen  \n", "csv")
        assert table.rows[0] == {"name": "Ganni", "city": "Copenhagen"}

    def test_short_rows_padded(self):
        table = parse("name,city,country\nGanni\n", "csv")
        assert table.rows[0] == {"name": "Ganni", "city": "", "country": ""}

    def test_extra_cells_ignored(self):
        table = parse("name\nGanni,extra,cells\n", "csv")
        assert table.rows[0] == {"name": "Ganni"}

    def test_header_only_raises(self):
        with pytest.raises(FormatError, match="empty or missing data rows"):
            parse("name,city\n", "csv")

    def test_empty_text_raises(self):
        with pytest.raises(FormatError):
            parse("", "csv")

    def test_original_headers_preserved(self):
        table = parse("Store Name,Web-Site\nGanni,ganni.com\n", "csv")
        assert table.headers == ["store_name", "web_site"]
        assert table.original_headers == {"store_name": "Store Name", "web_site": "Web-Site"}

    def test_duplicate_headers_disambiguated(self):
        table = parse("name,Name,NAME\na,b,c\n", "csv")
        assert table.headers == ["name", "name_2", "name_3"]
        assert table.rows[0] == {"name": "a", "name_2": "b", "name_3": "c"}

    def test_blank_header_named_by_position(self):
        table = parse("name,,city\na,b,c\n", "csv")
        assert table.headers == ["name", "_unnamed_1", "city"]

    def test_semicolon_file(self):
        table = parse("name;city\nGanni;Copenhagen\n", "csv")
        assert table.delimiter == ";"
        assert table.rows[0]["city"] == "Copenhagen"

    def test_unsupported_source_kind(self):
        with pytest.raises(ValueError, match="Unsupported"):
            parse("a,b\n1,2", "xml")


# ═══════════════════════════════════════════════════════════════════════════
# Delimiter detection
# ═══════════════════════════════════════════════════════════════════════════

class TestDetectDelimiter:
    def test_comma(self):
        assert detect_delimiter("a,b,c\n1,2,3") == ","

    def test_semicolon(self):
        assert detect_delimiter("a;b;c\n1;2;3") == ";"

    def test_tab(self):
        assert detect_delimiter("a\tb\tc\n1\t2\t3") == "\t"

    def test_pipe(self):
        assert detect_delimiter("a|b|c\n1|2|3") == "|"

    def test_only_first_line_counts(self):
        assert detect_delimiter("a;b\n1,2,3,4,5") == ";"

    def test_tie_falls_back_to_comma(self):
        assert detect_delimiter("a;b|c\n") == ","

    def test_no_delimiter_falls_back_to_comma(self):
        assert detect_delimiter("name\nGanni") == ","

    def test_no_newline_uses_sample(self):
        assert detect_delimiter("a;b;c") == ";"


# ═══════════════════════════════════════════════════════════════════════════
# Header cleaning
# ═══════════════════════════════════════════════════════════════════════════

class TestCleanHeader:
    @pytest.mark.parametrize("raw, expected", [
        ("Store Name", "store_name"),
        ("  store name  ", "store_name"),
        ("Web-Site", "web_site"),
        ("STORE.NAME", "store_name"),
        ("Price (USD)", "price_usd"),
        ('"Store Name"', "store_name"),
        ("\ufeffstore_name", "store_name"),
        ('\ufeff"Store Name"', "store_name"),
    ])
    def test_cleaning(self, raw, expected):
        assert clean_header(raw) == expected

    @pytest.mark.parametrize("raw", ["Store Name", "Web-Site", "Price (USD)", "\ufeff'City'"])
    def test_idempotent(self, raw):
        once = clean_header(raw)
        assert clean_header(once) == once


# ═══════════════════════════════════════════════════════════════════════════
# JSON parsing
# ═══════════════════════════════════════════════════════════════════════════

class TestJsonParsing:
    def test_array_of_objects(self):
        table = parse('[{"name": "Ganni", "city": "Copenhagen"}]', "json")
        assert table.source_kind == "json"
        assert table.delimiter is None
        assert table.rows == [{"name": "Ganni", "city": "Copenhagen"}]

    def test_union_of_keys_in_first_seen_order(self):
        table = parse('[{"name": "A"}, {"city": "Oslo", "name": "B"}]', "json")
        assert table.headers == ["name", "city"]
        assert table.rows[0] == {"name": "A", "city": ""}

    def test_list_values_joined_with_pipe(self):
        table = parse('[{"name": "A", "tags": ["Minimal", "Scandi"]}]', "json")
        assert table.rows[0]["tags"] == "Minimal|Scandi"

    def test_null_and_scalar_values_stringified(self):
        table = parse('[{"name": "A", "rating": 4.5, "website": null, "active": true}]', "json")
        assert table.rows[0] == {"name": "A", "rating": "4.5", "website": "", "active": "true"}

    def test_headers_cleaned(self):
        table = parse('[{"Store Name": "A"}]', "json")
        assert table.headers == ["store_name"]
        assert table.original_headers["store_name"] == "Store Name"

    def test_empty_array_is_empty_table(self):
        table = parse("[]", "json")
        assert isinstance(table, RawTable)
        assert table.is_empty
        assert table.row_count == 0
        assert table.headers == []

    def test_malformed_json(self):
        with pytest.raises(FormatError, match="Invalid JSON format."):
            parse("[{", "json")

    def test_object_instead_of_array(self):
        with pytest.raises(FormatError, match="JSON must be an array of objects."):
            parse('{"name": "A"}', "json")

    def test_array_of_scalars(self):
        with pytest.raises(FormatError, match="JSON must be an array of objects."):
            parse('["A", "B"]', "json")


# ═══════════════════════════════════════════════════════════════════════════
# File type detection and reading from disk
# ═══════════════════════════════════════════════════════════════════════════

class TestSourceKind:
    def test_by_extension(self):
        assert detect_source_kind("brands.CSV") == "csv"
        assert detect_source_kind("brands.json") == "json"

    def test_by_mime_type(self):
        assert detect_source_kind("export", "application/json") == "json"
        assert detect_source_kind("export", "text/csv") == "csv"

    def test_unsupported_type(self):
        with pytest.raises(FormatError, match="Invalid file type"):
            detect_source_kind("brands.xlsx")


class TestReadImportFile:
    def test_reads_csv(self, tmp_path):
        path = tmp_path / "brands.csv"
        path.write_text("name,city\nGanni,Copenhagen\n", encoding="utf-8")
        table = read_import_file(path)
        assert table.rows == [{"name": "Ganni", "city": "Copenhagen"}]

    def test_reads_json(self, tmp_path):
        path = tmp_path / "brands.json"
        path.write_text('[{"name": "Ganni"}]', encoding="utf-8")
        table = read_import_file(path)
        assert table.source_kind == "json"
        assert table.row_count == 1
