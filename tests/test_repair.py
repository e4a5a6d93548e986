"""Unit tests for structure repair, validation, and the TableData invariants."""

# pylint: disable=missing-class-docstring,missing-function-docstring

import pytest
from pydantic import ValidationError

from chat_tables.config import RepairOptions
from chat_tables.repair import (
    analyze_structure,
    expand_merged_cells,
    fix_merged_cells,
    normalize_columns,
    repair_table,
    restore_headers,
    validate_table,
)
from chat_tables.schema import AISource, ParsedTable, TableData, TableFormat


def make_parsed(headers: list[str], rows: list[list[str]], **kwargs) -> ParsedTable:
    return ParsedTable(headers=headers, rows=rows, format=kwargs.pop("format", TableFormat.TEXT), **kwargs)


# ===========================================================================
# Merged cells
# ===========================================================================


class TestMergedCells:

    def test_expand_colspan(self):
        assert expand_merged_cells(["Quarterly"], [3]) == ["Quarterly", "", ""]

    def test_expand_mixed(self):
        assert expand_merged_cells(["a", "b"], [1, 2]) == ["a", "b", ""]

    def test_span_mismatch_left_alone(self):
        assert expand_merged_cells(["a", "b"], [2]) == ["a", "b"]

    def test_fix_merged_header(self):
        parsed = make_parsed(["Quarterly"], [["a", "b", "c"]], format=TableFormat.HTML, header_spans=[3], row_spans=[[1, 1, 1]])
        fixed = fix_merged_cells(parsed)
        assert fixed.headers == ["Quarterly", "", ""]
        assert fixed.rows == [["a", "b", "c"]]
        assert fixed.header_spans == []

    def test_disabled_keeps_collapsed_cells(self):
        parsed = make_parsed(["Quarterly", "Total"], [["a", "b"]], header_spans=[3, 1])
        options = RepairOptions(fix_merged_cells=False)
        assert repair_table(parsed, options).headers == ["Quarterly", "Total"]

    def test_merged_header_through_repair_without_validation(self):
        parsed = make_parsed(["Quarterly"], [["a", "b", "c"]], header_spans=[3])
        repaired = repair_table(parsed, RepairOptions(validate_structure=False))
        assert repaired.headers == ["Quarterly", "", ""]


# ===========================================================================
# Headers
# ===========================================================================


class TestRestoreHeaders:

    def test_promote_header_like_row(self):
        headers, rows = restore_headers([], [["Name", "Age"], ["Alice", "30"]])
        assert headers == ["Name", "Age"]
        assert rows == [["Alice", "30"]]

    def test_synthesize_for_numeric_row(self):
        headers, rows = restore_headers([], [["1", "2"], ["3", "4", "5"]])
        assert headers == ["Column 1", "Column 2", "Column 3"]
        assert rows == [["1", "2"], ["3", "4", "5"]]

    def test_blank_headers_restored(self):
        headers, _ = restore_headers(["", " "], [["Name", "Age"], ["Alice", "30"]])
        assert headers == ["Name", "Age"]

    def test_existing_headers_kept(self):
        headers, rows = restore_headers(["A", "B"], [["1", "2"]])
        assert headers == ["A", "B"]
        assert rows == [["1", "2"]]

    def test_no_rows(self):
        assert restore_headers([], []) == ([], [])


# ===========================================================================
# Column count
# ===========================================================================


class TestNormalizeColumns:

    def test_ragged_rows(self):
        headers, rows = normalize_columns(
            ["ID", "Name", "Email"],
            [["1", "John"], ["2", "Jane", "jane@x.com", "extra"]],
        )
        assert headers == ["ID", "Name", "Email"]
        assert rows == [["1", "John", ""], ["2", "Jane", "jane@x.com"]]

    def test_no_headers_uses_widest_row(self):
        headers, rows = normalize_columns([], [["a"], ["b", "c", "d"]])
        assert headers == []
        assert rows == [["a", "", ""], ["b", "c", "d"]]


# ===========================================================================
# Validation
# ===========================================================================


class TestValidateTable:

    def test_drops_empty_rows(self):
        headers, rows = validate_table(["A", "B"], [["1", "2"], ["", " "]])
        assert headers == ["A", "B"]
        assert rows == [["1", "2"]]

    def test_drops_empty_columns(self):
        assert validate_table(["A", "", "B"], [["1", "", "2"]]) == (["A", "B"], [["1", "2"]])

    def test_rejects_no_rows(self):
        assert validate_table(["A", "B"], [["", ""]]) is None

    def test_rejects_single_meaningful_header(self):
        assert validate_table(["A", "---"], [["1", "2"]]) is None

    def test_rejects_symbol_only_rows(self):
        assert validate_table(["A", "B"], [["-", "|"]]) is None

    def test_headerless_needs_two_columns(self):
        assert validate_table([], [["only"]]) is None
        assert validate_table([], [["a", "b"]]) == ([], [["a", "b"]])


class TestRepairTable:

    def test_ragged_normalized(self):
        parsed = make_parsed(["ID", "Name", "Email"], [["1", "John"], ["2", "Jane", "jane@x.com", "extra"]])
        repaired = repair_table(parsed)
        assert repaired.rows == [["1", "John", ""], ["2", "Jane", "jane@x.com"]]

    def test_everything_disabled_is_identity(self):
        parsed = make_parsed(["A"], [["1", "2"]])
        options = RepairOptions(fix_merged_cells=False, restore_headers=False, normalize_columns=False, validate_structure=False)
        repaired = repair_table(parsed, options)
        assert repaired.headers == ["A"]
        assert repaired.rows == [["1", "2"]]

    def test_rejection_returns_none(self):
        assert repair_table(make_parsed(["A", "B"], [])) is None

    def test_headerless_source_gets_headers(self):
        repaired = repair_table(make_parsed([], [["Name", "Age"], ["Alice", "30"]]))
        assert repaired.headers == ["Name", "Age"]
        assert repaired.rows == [["Alice", "30"]]

    def test_format_preserved(self):
        parsed = make_parsed(["A", "B"], [["1", "2"]], format=TableFormat.MARKDOWN, has_separator=True)
        repaired = repair_table(parsed)
        assert repaired.format == TableFormat.MARKDOWN
        assert repaired.has_separator is True


class TestAnalyzeStructure:

    def test_report(self):
        parsed = make_parsed(["A", "B"], [["1"], ["", ""], ["1", "2", "3"]], header_spans=[2, 1])
        report = analyze_structure(parsed)
        assert report["ragged_rows"] == 2
        assert report["empty_rows"] == 1
        assert report["merged_cells"] == 1
        assert report["max_row_width"] == 3
        assert report["missing_headers"] is False


# ===========================================================================
# TableData invariants
# ===========================================================================


def make_table_data(headers: list[str], rows: list[list[str]]) -> TableData:
    return TableData(
        id="table_1",
        headers=headers,
        rows=rows,
        source=AISource.OTHER,
        timestamp=0,
        url="https://example.com",
        chat_title="Chat",
    )


class TestTableData:

    def test_valid(self):
        data = make_table_data(["A", "B"], [["1", "2"]])
        assert data.rows == [["1", "2"]]

    def test_ragged_row_rejected(self):
        with pytest.raises(ValidationError):
            make_table_data(["A", "B"], [["1"]])

    def test_single_meaningful_header_rejected(self):
        with pytest.raises(ValidationError):
            make_table_data(["A", "--"], [["1", "2"]])

    def test_headerless_allowed(self):
        assert make_table_data([], [["1", "2", "3"]]).headers == []
