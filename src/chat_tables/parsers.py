"""Format parsers: turn one candidate node into raw headers and rows.

Four independent parsers, tried in a fixed priority order by the detector:

  HtmlTableParser      -- native ``<table>`` markup
  MarkdownTableParser  -- pipe tables inside ``<pre>`` / ``<code>`` blocks
  DivTableParser       -- ARIA/CSS grid-of-divs tables and repeated div rows
  TextTableParser      -- pipe or whitespace-aligned text outside code blocks

More explicit formats come first because they are less ambiguous.  Each parser
exposes ``can_parse(node)`` and ``parse(node)``; ``parse`` returns a
``ParsedTable`` or ``None`` and never raises for malformed content.  Repair and
validation happen afterwards in repair.py.
"""

import logging
from typing import Protocol

from chat_tables.classifiers import (
    has_ui_marker_text,
    is_aligned_row,
    is_alignment_line,
    is_pipe_row,
    is_system_script_text,
    non_empty_lines,
    parse_alignment,
    split_aligned_columns,
    split_pipe_row,
)
from chat_tables.cleaning import clean_cell
from chat_tables.dom import Node, is_ui_element
from chat_tables.patterns import WORD_CHAR_RE
from chat_tables.schema import ParsedTable, TableFormat

logger = logging.getLogger(__name__)

# Column-count bounds for a structural div grid
MIN_DIV_COLUMNS = 2
MAX_DIV_COLUMNS = 10

# Shortest text block the free-text parser will look at
MIN_TEXT_CHARS = 20

_ROLE_TABLE_SELECTOR = '[role="table"], [role="grid"], .table, [class*="table"]'
_ROLE_CELL_SELECTOR = '[role="columnheader"], [role="cell"], [role="gridcell"], [role="rowheader"]'


class TableParser(Protocol):
    """Interface shared by all format parsers."""

    format: TableFormat

    def can_parse(self, node: Node) -> bool: ...

    def parse(self, node: Node) -> ParsedTable | None: ...


def _is_eligible(node: Node, ui_marker: str) -> bool:
    """Common gate: the node is visible and not page or engine chrome."""
    return node.is_visible() and not is_ui_element(node, ui_marker)


# ─── Pipe Tables (shared by markdown and free-text parsers) ──────────────────


def _fit_row(cells: list[str], width: int) -> list[str]:
    """Pad with empty cells or truncate so the row has exactly *width* cells."""
    if len(cells) < width:
        return cells + [""] * (width - len(cells))
    return cells[:width]


def parse_pipe_lines(lines: list[str], table_format: TableFormat) -> ParsedTable | None:
    """Parse pipe-delimited lines: header, optional alignment separator, data rows."""
    pipe_lines = [line for line in lines if "|" in line]
    if len(pipe_lines) < 2:
        return None

    headers = [clean_cell(cell) for cell in split_pipe_row(pipe_lines[0])]
    if len(headers) < 2:
        logger.debug("Pipe table header has %d cell(s), need 2", len(headers))
        return None

    has_separator = False
    alignment: list[str] = []
    rows: list[list[str]] = []
    for i, line in enumerate(pipe_lines[1:], start=1):
        if is_alignment_line(line):
            # Only the line right after the header counts as the separator; later ones are noise
            if i == 1:
                has_separator = True
                alignment = parse_alignment(line)
            continue
        cells = [clean_cell(cell) for cell in split_pipe_row(line)]
        rows.append(_fit_row(cells, len(headers)))

    return ParsedTable(
        headers=headers,
        rows=rows,
        format=table_format,
        has_separator=has_separator,
        alignment=alignment,
    )


def parse_markdown_text(text: str) -> ParsedTable | None:
    """Parse a markdown pipe table from raw text."""
    return parse_pipe_lines(non_empty_lines(text), TableFormat.MARKDOWN)


def parse_aligned_lines(lines: list[str]) -> ParsedTable | None:
    """Parse whitespace-aligned lines; rows whose column count differs from the header are dropped."""
    aligned = [line for line in lines if is_aligned_row(line)]
    if len(aligned) < 2:
        return None

    headers = [clean_cell(cell) for cell in split_aligned_columns(aligned[0])]
    if len(headers) < 2:
        return None

    rows: list[list[str]] = []
    for index, line in enumerate(aligned[1:], start=1):
        cells = [clean_cell(cell) for cell in split_aligned_columns(line)]
        if len(cells) == len(headers):
            rows.append(cells)
        else:
            logger.debug("Aligned row %d has %d cells, expected %d; skipped", index, len(cells), len(headers))

    return ParsedTable(headers=headers, rows=rows, format=TableFormat.TEXT)


# ─── Native Markup Tables ────────────────────────────────────────────────────


def _own_rows(table: Node) -> list[Node]:
    """Return the ``<tr>`` rows that belong to *table* itself, not to a nested table."""
    rows: list[Node] = []
    for row in table.find_all("tr"):
        owner = next((ancestor for ancestor in row.ancestors() if ancestor.tag == "table"), None)
        if owner == table:
            rows.append(row)
    return rows


def _read_cells(row: Node) -> tuple[list[str], list[int]]:
    """Return (cell texts, colspans) for the direct ``<th>``/``<td>`` children of a row."""
    texts: list[str] = []
    spans: list[int] = []
    for cell in row.children:
        if cell.tag not in ("th", "td"):
            continue
        texts.append(clean_cell(cell.text, strip_md=False))
        try:
            spans.append(max(1, int(cell.get("colspan", "1") or 1)))
        except ValueError:
            spans.append(1)
    return texts, spans


class HtmlTableParser:
    """Parser for native ``<table>`` elements."""

    format = TableFormat.HTML

    def __init__(self, ui_marker: str = "chat-tables"):
        self.ui_marker = ui_marker

    def can_parse(self, node: Node) -> bool:
        return node.tag == "table" and _is_eligible(node, self.ui_marker)

    def parse(self, node: Node) -> ParsedTable | None:
        rows = _own_rows(node)
        if not rows:
            logger.debug("Table %s has no rows", node)
            return None

        header_rows = [row for row in rows if row.parent is not None and row.parent.tag == "thead"]
        headers: list[str] = []
        header_spans: list[int] = []
        body_rows = [row for row in rows if row not in header_rows]

        if header_rows:
            headers, header_spans = _read_cells(header_rows[0])
        elif body_rows:
            # No header section: promote the first row
            headers, header_spans = _read_cells(body_rows[0])
            body_rows = body_rows[1:]

        data: list[list[str]] = []
        spans: list[list[int]] = []
        for row in body_rows:
            texts, row_spans = _read_cells(row)
            if texts:
                data.append(texts)
                spans.append(row_spans)

        logger.debug("Parsed HTML table: %d header cells, %d rows", len(headers), len(data))
        return ParsedTable(
            headers=headers,
            rows=data,
            format=self.format,
            header_spans=header_spans,
            row_spans=spans,
        )


# ─── Markdown In Code Blocks ─────────────────────────────────────────────────


class MarkdownTableParser:
    """Parser for markdown pipe tables rendered inside ``<pre>`` or ``<code>``."""

    format = TableFormat.MARKDOWN

    def __init__(self, ui_marker: str = "chat-tables"):
        self.ui_marker = ui_marker

    def can_parse(self, node: Node) -> bool:
        if node.tag not in ("pre", "code") or not _is_eligible(node, self.ui_marker):
            return False
        text = node.text
        if is_system_script_text(text):
            return False
        return len([line for line in non_empty_lines(text) if is_pipe_row(line)]) >= 2

    def parse(self, node: Node) -> ParsedTable | None:
        parsed = parse_markdown_text(node.text)
        if parsed is not None:
            logger.debug(
                "Parsed markdown table: %d headers, %d rows, separator=%s",
                len(parsed.headers),
                len(parsed.rows),
                parsed.has_separator,
            )
        return parsed


# ─── Grid-of-Divs Tables ─────────────────────────────────────────────────────


def _cell_text(node: Node) -> str:
    return clean_cell(node.text, strip_md=False)


def _has_text_child(node: Node) -> bool:
    """At least one child carries more than a single character of word text."""
    for child in node.children:
        text = child.text.strip()
        if len(text) > 1 and WORD_CHAR_RE.search(text) and not has_ui_marker_text(text):
            return True
    return False


class DivTableParser:
    """Parser for ARIA/CSS table structures and repeated sibling div rows."""

    format = TableFormat.DIV

    def __init__(self, ui_marker: str = "chat-tables"):
        self.ui_marker = ui_marker

    def _role_table(self, node: Node) -> Node | None:
        if node.get("role") in ("table", "grid"):
            return node
        return node.select_one(_ROLE_TABLE_SELECTOR)

    def can_parse(self, node: Node) -> bool:
        if node.tag != "div" or not _is_eligible(node, self.ui_marker):
            return False
        if self._role_table(node) is not None:
            return True
        children = node.children
        if len(children) < 2:
            return False
        first_width = len(children[0].children)
        return MIN_DIV_COLUMNS <= first_width <= MAX_DIV_COLUMNS and _has_text_child(node)

    def parse(self, node: Node) -> ParsedTable | None:
        table = self._role_table(node)
        if table is not None:
            parsed = self._parse_role_structure(table)
            if parsed is not None and (parsed.headers or parsed.rows):
                return parsed
        return self._parse_repeated_structure(node)

    def _parse_role_structure(self, table: Node) -> ParsedTable | None:
        """Header row + data rows found via ``role=row`` or row/cell class conventions."""
        role_rows = table.select('[role="row"]')
        if role_rows:
            header_row = role_rows[0]
            headers = [_cell_text(cell) for cell in header_row.select(_ROLE_CELL_SELECTOR)]
            rows = []
            for row in role_rows[1:]:
                cells = [_cell_text(cell) for cell in row.select(_ROLE_CELL_SELECTOR)]
                if cells:
                    rows.append(cells)
            logger.debug("Parsed role table: %d headers, %d rows", len(headers), len(rows))
            return ParsedTable(headers=headers, rows=rows, format=self.format)

        header_row = table.select_one('.table-header, [class*="header"]')
        headers = []
        if header_row is not None:
            headers = [_cell_text(cell) for cell in header_row.select('.cell, [class*="cell"]')]
        rows = []
        for row in table.select('.table-row, [class*="row"]:not([class*="header"])'):
            cells = [_cell_text(cell) for cell in row.select('.cell, [class*="cell"]')]
            if cells:
                rows.append(cells)
        if not headers and not rows:
            return None
        logger.debug("Parsed class-convention table: %d headers, %d rows", len(headers), len(rows))
        return ParsedTable(headers=headers, rows=rows, format=self.format)

    def _parse_repeated_structure(self, node: Node) -> ParsedTable | None:
        """Sibling children sharing one child count; the first such row becomes the header."""
        candidates = [child for child in node.children if not is_ui_element(child, self.ui_marker)]
        if len(candidates) < 2:
            return None
        width = len(candidates[0].children)
        if not MIN_DIV_COLUMNS <= width <= MAX_DIV_COLUMNS:
            logger.debug("Div grid width %d outside [%d, %d]", width, MIN_DIV_COLUMNS, MAX_DIV_COLUMNS)
            return None
        consistent = [row for row in candidates if len(row.children) == width]
        if len(consistent) < 2:
            return None

        headers = [_cell_text(cell) for cell in consistent[0].children]
        rows = []
        for row in consistent[1:]:
            cells = [_cell_text(cell) for cell in row.children]
            if any(cells):
                rows.append(cells)
        logger.debug("Parsed repeated div grid: %d columns, %d rows", width, len(rows))
        return ParsedTable(headers=headers, rows=rows, format=self.format)


# ─── Free Text ───────────────────────────────────────────────────────────────


class TextTableParser:
    """Parser for pipe-delimited or whitespace-aligned text outside code blocks."""

    format = TableFormat.TEXT

    def __init__(self, ui_marker: str = "chat-tables"):
        self.ui_marker = ui_marker

    def can_parse(self, node: Node) -> bool:
        if not _is_eligible(node, self.ui_marker):
            return False
        text = node.text
        if len(text.strip()) < MIN_TEXT_CHARS or is_system_script_text(text):
            return False
        lines = non_empty_lines(text)
        if len(lines) < 2:
            return False
        if len([line for line in lines if "|" in line]) >= 2:
            return True
        return len([line for line in lines if is_aligned_row(line)]) >= 2

    def parse(self, node: Node) -> ParsedTable | None:
        lines = non_empty_lines(node.text)
        if len([line for line in lines if "|" in line]) >= 2:
            parsed = parse_pipe_lines(lines, self.format)
            if parsed is not None:
                logger.debug("Parsed pipe text table: %d headers, %d rows", len(parsed.headers), len(parsed.rows))
                return parsed
        parsed = parse_aligned_lines(lines)
        if parsed is None:
            logger.debug("No table structure in text of %s", node)
        return parsed


def default_parsers(ui_marker: str = "chat-tables") -> list[TableParser]:
    """All parsers in priority order: markup, markdown, div grid, free text."""
    return [
        HtmlTableParser(ui_marker),
        MarkdownTableParser(ui_marker),
        DivTableParser(ui_marker),
        TextTableParser(ui_marker),
    ]
