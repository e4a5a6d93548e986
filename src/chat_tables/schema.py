"""Pydantic models for detected chat tables.

``TableData`` is the canonical extraction result handed to exporters.  Its
model_validator guarantees the two structural invariants every consumer relies
on: rows are rectangular (each has exactly ``len(headers)`` cells) and a
non-empty header row names at least two columns with real text.

The remaining models are the pipeline's working records: ``ParsedTable`` is a
format parser's raw output, ``TableCandidate`` is a scored node during a single
detection pass, and ``TableDetectionResult`` pairs ``TableData`` with the node
it was extracted from.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from chat_tables.classifiers import has_meaningful_content
from chat_tables.dom import Node


class AISource(str, Enum):
    """Chat platform a table was extracted from."""

    CHATGPT = "chatgpt"
    CLAUDE = "claude"
    GEMINI = "gemini"
    DEEPSEEK = "deepseek"
    OTHER = "other"


class TableFormat(str, Enum):
    """Source representation a table was parsed from."""

    HTML = "html"
    MARKDOWN = "markdown"
    DIV = "div"
    TEXT = "text"


class Position(BaseModel):
    """Snapshot of where the anchor sat in the document when it was detected."""

    index: int
    depth: int


class ParsedTable(BaseModel):
    """Raw output of a format parser, before structure repair."""

    headers: list[str]
    rows: list[list[str]]
    format: TableFormat
    has_separator: bool = False
    alignment: list[str] = Field(default_factory=list)
    # Column spans per cell (markup tables only); empty means every cell spans one column
    header_spans: list[int] = Field(default_factory=list)
    row_spans: list[list[int]] = Field(default_factory=list)


class TableData(BaseModel):
    """Canonical table extracted from a chat transcript."""

    id: str
    headers: list[str]
    rows: list[list[str]]
    source: AISource
    timestamp: int  # epoch milliseconds
    url: str
    chat_title: str

    @model_validator(mode="after")
    def validate_structure(self) -> "TableData":
        """Ensure rows are rectangular and a non-empty header names 2+ real columns."""
        n_cols = len(self.headers)
        if n_cols:
            for i, row in enumerate(self.rows):
                if len(row) != n_cols:
                    raise ValueError(f"Row {i} has {len(row)} cells, expected {n_cols} (matching headers)")
            meaningful = sum(1 for header in self.headers if has_meaningful_content(header))
            if meaningful < 2:
                raise ValueError(f"Only {meaningful} header cell(s) carry text, need at least 2")
        return self


class TableDetectionResult(BaseModel):
    """A validated table together with its anchor node and position snapshot."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    element: Node
    data: TableData
    position: Position


class TableCandidate(BaseModel):
    """A node provisionally identified as a table during one detection pass."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    element: Node
    confidence: float = Field(ge=0.0, le=1.0)
    reason: str
    is_wrapper: bool = False
    contained_tables: list[Node] = Field(default_factory=list)
    parsed: ParsedTable | None = None


class BatchDetectionResult(BaseModel):
    """Everything one detection pass produced."""

    tables: list[TableDetectionResult]
    count: int
    timestamp: int
    source: AISource
    chat_title: str


class ScanMode(str, Enum):
    INCREMENTAL = "incremental"
    FULL = "full"


class ScanOutcome(BaseModel):
    """Summary of one scheduler-triggered scan."""

    mode: ScanMode
    found: int
    added: int
    removed: int
    registry_size: int
    duration_ms: float
