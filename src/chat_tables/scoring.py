"""Confidence scoring for parsed candidates.

The scores are pure functions of small structural feature records; the only
tree access is in ``text_features`` and ``div_features``, which measure a node
once so the arithmetic can be tested without a document.

Explicit structure always outranks heuristics: markup tables score 0.95,
markdown tables 0.9 (0.7 without an alignment separator), and anything derived
from free text or repeated divs is capped at 0.9.
"""

from typing import NamedTuple

from chat_tables.classifiers import is_aligned_row, is_pipe_row, non_empty_lines
from chat_tables.config import DetectionConfig
from chat_tables.dom import Node
from chat_tables.schema import ParsedTable, TableFormat

# Layout containers: many children laid out with flex/grid classes
LAYOUT_CHILD_LIMIT = 10
# Large mixed-content containers
LARGE_CONTAINER_CHARS = 1000
LARGE_CONTAINER_CHILDREN = 5

MIN_TEXT_LINES = 3
MIN_TEXT_TABLE_LINES = 2
MIN_TEXT_LINE_RATIO = 0.5


class TextFeatures(NamedTuple):
    """Measurements of a free-text candidate."""

    text_length: int
    line_count: int
    table_line_count: int
    child_count: int
    class_name: str

    @property
    def line_ratio(self) -> float:
        return self.table_line_count / self.line_count if self.line_count else 0.0


class DivFeatures(NamedTuple):
    """Measurements of a div-grid candidate."""

    has_role_table: bool
    consistent_rows: int
    total_rows: int


def text_features(node: Node) -> TextFeatures:
    text = node.text.strip()
    lines = non_empty_lines(text)
    pipe_lines = [line for line in lines if is_pipe_row(line)]
    table_lines = pipe_lines or [line for line in lines if is_aligned_row(line)]
    return TextFeatures(
        text_length=len(text),
        line_count=len(lines),
        table_line_count=len(table_lines),
        child_count=len(node.children),
        class_name=node.class_name,
    )


def div_features(node: Node) -> DivFeatures:
    if node.get("role") in ("table", "grid") or node.select_one('[role="table"], [role="grid"], .table, [class*="table"]'):
        return DivFeatures(has_role_table=True, consistent_rows=0, total_rows=0)
    children = node.children
    if not children:
        return DivFeatures(False, 0, 0)
    width = len(children[0].children)
    consistent = sum(1 for child in children if len(child.children) == width)
    return DivFeatures(has_role_table=False, consistent_rows=consistent, total_rows=len(children))


# ─── Scores ──────────────────────────────────────────────────────────────────


def markdown_score(has_separator: bool, config: DetectionConfig) -> float:
    return config.markdown_confidence if has_separator else config.markdown_no_separator_confidence


def line_count_factor(table_line_count: int) -> float:
    """More table lines make a text match more convincing."""
    if table_line_count >= 5:
        return 1.0
    if table_line_count >= 3:
        return 0.85
    return 0.7


def class_hint_bonus(class_name: str) -> float:
    return 1.15 if "table" in class_name.lower() else 1.0


def text_score(features: TextFeatures, config: DetectionConfig) -> float:
    """``ratio x line-count factor x class hint``, capped so text never outranks markup."""
    raw = features.line_ratio * line_count_factor(features.table_line_count) * class_hint_bonus(features.class_name)
    return round(min(raw, config.text_confidence_cap), 4)


def div_score(features: DivFeatures, config: DetectionConfig) -> float:
    """Explicit role/class tables get a fixed score; repeated rows score by how regular they are."""
    if features.has_role_table:
        return config.div_role_confidence
    if not features.total_rows:
        return 0.0
    return round(min(config.text_confidence_cap * features.consistent_rows / features.total_rows, config.text_confidence_cap), 4)


def text_rejection(features: TextFeatures, config: DetectionConfig) -> str | None:
    """Return why a free-text candidate cannot be a table, or ``None`` if it may be one."""
    if features.text_length < config.text_min_chars:
        return f"text too short ({features.text_length} chars)"
    if features.text_length > config.text_max_chars:
        return f"text too long ({features.text_length} chars)"
    class_lower = features.class_name.lower()
    if features.child_count > LAYOUT_CHILD_LIMIT and ("flex" in class_lower or "grid" in class_lower):
        return "layout container"
    if features.text_length > LARGE_CONTAINER_CHARS and features.child_count > LARGE_CONTAINER_CHILDREN:
        return "large mixed-content container"
    if features.line_count < MIN_TEXT_LINES:
        return f"only {features.line_count} line(s)"
    if features.table_line_count < MIN_TEXT_TABLE_LINES:
        return f"only {features.table_line_count} table line(s)"
    if features.line_ratio < MIN_TEXT_LINE_RATIO:
        return f"table-line ratio {features.line_ratio:.2f} below {MIN_TEXT_LINE_RATIO}"
    return None


def score_candidate(node: Node, parsed: ParsedTable, config: DetectionConfig) -> tuple[float, str]:
    """Return ``(confidence, reason)`` for a node and the table parsed from it."""
    if parsed.format == TableFormat.HTML:
        return config.html_confidence, "markup table"
    if parsed.format == TableFormat.MARKDOWN:
        separator = "with" if parsed.has_separator else "without"
        return markdown_score(parsed.has_separator, config), f"markdown table {separator} separator"
    if parsed.format == TableFormat.DIV:
        features = div_features(node)
        kind = "role/class table" if features.has_role_table else f"{features.consistent_rows}/{features.total_rows} regular rows"
        return div_score(features, config), f"div grid ({kind})"

    features = text_features(node)
    rejection = text_rejection(features, config)
    if rejection is not None:
        return 0.0, f"text rejected: {rejection}"
    return text_score(features, config), f"text table ({features.table_line_count}/{features.line_count} table lines)"
