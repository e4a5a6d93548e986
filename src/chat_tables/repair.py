"""Structure repair and validation for parsed tables.

Applied in order, each step independently toggleable via ``RepairOptions``:

  1. Merged-cell expansion  -- a cell spanning N columns becomes the content plus N-1 empty cells
  2. Header restoration     -- promote a header-like first row, else synthesize ``Column 1..N``
  3. Column normalisation   -- pad/truncate every row to the header width
  4. Final validation       -- drop empty rows and columns, reject implausible tables

A rejection is a ``None`` return, never an exception.
"""

import logging

from chat_tables.classifiers import has_meaningful_content, is_symbol_only, looks_like_header_row
from chat_tables.config import RepairOptions
from chat_tables.schema import ParsedTable

logger = logging.getLogger(__name__)

MIN_MEANINGFUL_HEADERS = 2


def synthetic_headers(count: int) -> list[str]:
    return [f"Column {i + 1}" for i in range(count)]


# ─── 1. Merged Cells ─────────────────────────────────────────────────────────


def expand_merged_cells(cells: list[str], spans: list[int]) -> list[str]:
    """Expand each cell spanning N columns into the content followed by N-1 empty cells."""
    if len(spans) != len(cells):
        return list(cells)
    expanded: list[str] = []
    for cell, span in zip(cells, spans):
        expanded.append(cell)
        expanded.extend([""] * (max(span, 1) - 1))
    return expanded


def fix_merged_cells(parsed: ParsedTable) -> ParsedTable:
    headers = expand_merged_cells(parsed.headers, parsed.header_spans)
    rows = []
    for i, row in enumerate(parsed.rows):
        spans = parsed.row_spans[i] if i < len(parsed.row_spans) else []
        rows.append(expand_merged_cells(row, spans))
    return parsed.model_copy(update={"headers": headers, "rows": rows, "header_spans": [], "row_spans": []})


# ─── 2. Headers ──────────────────────────────────────────────────────────────


def restore_headers(headers: list[str], rows: list[list[str]]) -> tuple[list[str], list[list[str]]]:
    """Fill in a missing header row from the first data row or with synthetic names."""
    if any(cell.strip() for cell in headers) or not rows:
        return headers, rows
    if looks_like_header_row(rows[0]):
        logger.debug("Promoted first row to header: %s", rows[0])
        return list(rows[0]), rows[1:]
    width = max(len(row) for row in rows)
    logger.debug("Synthesized %d column headers", width)
    return synthetic_headers(width), rows


# ─── 3. Column Count ─────────────────────────────────────────────────────────


def normalize_columns(headers: list[str], rows: list[list[str]]) -> tuple[list[str], list[list[str]]]:
    """Pad or truncate rows to the header width (or the widest row when there are no headers)."""
    width = len(headers) if headers else max((len(row) for row in rows), default=0)
    normalized = []
    for row in rows:
        if len(row) < width:
            normalized.append(row + [""] * (width - len(row)))
        else:
            normalized.append(row[:width])
    return headers, normalized


# ─── 4. Validation ───────────────────────────────────────────────────────────


def _drop_empty_columns(headers: list[str], rows: list[list[str]]) -> tuple[list[str], list[list[str]]]:
    width = max([len(headers)] + [len(row) for row in rows])
    keep = []
    for col in range(width):
        column = [headers[col] if col < len(headers) else ""]
        column += [row[col] if col < len(row) else "" for row in rows]
        if any(cell.strip() for cell in column):
            keep.append(col)
    if len(keep) == width:
        return headers, rows
    logger.debug("Dropping %d empty column(s)", width - len(keep))
    new_headers = [headers[col] for col in keep if col < len(headers)]
    new_rows = [[row[col] for col in keep if col < len(row)] for row in rows]
    return new_headers, new_rows


def validate_table(headers: list[str], rows: list[list[str]]) -> tuple[list[str], list[list[str]]] | None:
    """Drop empty rows and columns, then reject tables without enough real content."""
    rows = [row for row in rows if any(cell.strip() for cell in row)]
    if not rows:
        logger.debug("Rejected: no data rows")
        return None

    headers, rows = _drop_empty_columns(headers, rows)

    if headers:
        meaningful = sum(1 for header in headers if has_meaningful_content(header))
        if meaningful < MIN_MEANINGFUL_HEADERS:
            logger.debug("Rejected: %d meaningful header(s)", meaningful)
            return None
    elif max(len(row) for row in rows) < 2:
        logger.debug("Rejected: header-less table with a single column")
        return None

    if all(is_symbol_only(cell) for row in rows for cell in row):
        logger.debug("Rejected: data rows are symbol-only")
        return None

    return headers, rows


# ─── Orchestrator ────────────────────────────────────────────────────────────


def repair_table(parsed: ParsedTable, options: RepairOptions | None = None) -> ParsedTable | None:
    """Run the enabled repair steps; return the repaired table or ``None`` on rejection."""
    options = options or RepairOptions()

    if options.fix_merged_cells:
        parsed = fix_merged_cells(parsed)
    headers, rows = list(parsed.headers), [list(row) for row in parsed.rows]

    if options.restore_headers:
        headers, rows = restore_headers(headers, rows)
    if options.normalize_columns:
        headers, rows = normalize_columns(headers, rows)
    if options.validate_structure:
        validated = validate_table(headers, rows)
        if validated is None:
            return None
        headers, rows = validated

    return parsed.model_copy(update={"headers": headers, "rows": rows})


def analyze_structure(parsed: ParsedTable) -> dict:
    """Describe the problems repair would address, without changing anything."""
    widths = [len(row) for row in parsed.rows]
    header_width = len(parsed.headers)
    return {
        "header_count": header_width,
        "row_count": len(parsed.rows),
        "max_row_width": max(widths, default=0),
        "missing_headers": not any(cell.strip() for cell in parsed.headers),
        "ragged_rows": sum(1 for width in widths if header_width and width != header_width),
        "empty_rows": sum(1 for row in parsed.rows if not any(cell.strip() for cell in row)),
        "merged_cells": sum(1 for span in parsed.header_spans if span > 1)
        + sum(1 for spans in parsed.row_spans for span in spans if span > 1),
    }
