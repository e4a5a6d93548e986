"""Text classification helpers for chat-table detection.

Each function takes a string (a cell, a line, or a whole block of text) and
answers a single yes/no or splitting question: is this cell meaningful, is
this line a markdown separator, does this block look like a pipe table, is
this title usable as a filename.
"""

from chat_tables.patterns import (
    ALIGNED_SPLIT_RE,
    ALIGNMENT_LINE_RE,
    ALPHANUMERIC_RE,
    EMOJI_RE,
    FILENAME_UNSAFE_RE,
    INVALID_TITLE_WORDS,
    PURE_NUMBER_RE,
    SPECIAL_SYMBOL_RE,
    SYSTEM_SCRIPT_MARKERS,
    UI_MARKER_TEXTS,
    UNICODE_CODE_RE,
)

# ─── Cell Content ─────────────────────────────────────────────────────────────


def has_meaningful_content(text: str) -> bool:
    """Return True if the text carries letters, digits, emoji, or a currency/trademark sign."""
    if not text:
        return False
    if EMOJI_RE.search(text):
        return True
    if ALPHANUMERIC_RE.search(text):
        return True
    if SPECIAL_SYMBOL_RE.search(text):
        return True
    return bool(UNICODE_CODE_RE.search(text))


def is_symbol_only(text: str) -> bool:
    """Return True for empty cells and cells made only of punctuation such as '---' or '|'."""
    return not has_meaningful_content(text.strip())


def is_pure_number(text: str) -> bool:
    """Return True if the text is a bare number like '42', '-3.5' or '1,200'."""
    return bool(PURE_NUMBER_RE.match(text.strip()))


def looks_like_header_row(cells: list[str]) -> bool:
    """Heuristic: every cell is non-empty, shorter than 50 chars, and not purely numeric."""
    if not cells:
        return False
    for cell in cells:
        stripped = cell.strip()
        if not stripped or len(stripped) >= 50 or is_pure_number(stripped):
            return False
    return True


# ─── Line Shapes ──────────────────────────────────────────────────────────────


def non_empty_lines(text: str) -> list[str]:
    """Split text into trimmed lines, dropping blanks."""
    return [line.strip() for line in text.split("\n") if line.strip()]


def is_alignment_line(line: str) -> bool:
    """Return True for a markdown separator row such as '|---|:---:|'."""
    stripped = line.strip()
    if "-" not in stripped:
        return False
    return bool(ALIGNMENT_LINE_RE.match(stripped))


def parse_alignment(line: str) -> list[str]:
    """Return 'left' / 'center' / 'right' for each column of a separator row."""
    cells = [cell.strip() for cell in line.split("|") if cell.strip()]
    alignment: list[str] = []
    for cell in cells:
        if cell.startswith(":") and cell.endswith(":"):
            alignment.append("center")
        elif cell.endswith(":"):
            alignment.append("right")
        else:
            alignment.append("left")
    return alignment


def is_pipe_row(line: str) -> bool:
    """Return True if the line splits on '|' into at least two cells."""
    return "|" in line and len(line.split("|")) >= 3


def split_pipe_row(line: str) -> list[str]:
    """Split a pipe row into raw cells, dropping one leading and one trailing pipe."""
    stripped = line.strip()
    if stripped.startswith("|"):
        stripped = stripped[1:]
    if stripped.endswith("|"):
        stripped = stripped[:-1]
    return [cell.strip() for cell in stripped.split("|")]


def split_aligned_columns(line: str) -> list[str]:
    """Split a whitespace-aligned line on runs of 2+ spaces or tabs."""
    return [part.strip() for part in ALIGNED_SPLIT_RE.split(line.strip()) if part.strip()]


def is_aligned_row(line: str) -> bool:
    """Return True if the line has 2+ whitespace-separated columns and no pipes."""
    return "|" not in line and len(split_aligned_columns(line)) >= 2


def pipe_table_lines(text: str) -> list[str]:
    """Return the lines of *text* that look like pipe-table rows."""
    return [line for line in non_empty_lines(text) if is_pipe_row(line)]


def pipe_density(text: str) -> float:
    """Fraction of the text's characters that sit on pipe-table lines."""
    if not text:
        return 0.0
    table_text = "\n".join(pipe_table_lines(text))
    return len(table_text) / len(text)


# ─── Page Chrome ──────────────────────────────────────────────────────────────


def is_system_script_text(text: str) -> bool:
    """Return True for leaked inline-script text that some front ends render in code blocks."""
    return any(marker in text for marker in SYSTEM_SCRIPT_MARKERS)


def has_ui_marker_text(text: str) -> bool:
    """Return True if the text contains a known host-widget label."""
    return any(marker in text for marker in UI_MARKER_TEXTS)


# ─── Chat Titles ──────────────────────────────────────────────────────────────


def is_valid_chat_title(title: str) -> bool:
    """Return True if the title names a conversation rather than a generic UI label."""
    if not title or len(title.strip()) < 3:
        return False
    lower = title.lower()
    return not any(word in lower for word in INVALID_TITLE_WORDS)


def sanitize_chat_title(title: str) -> str:
    """Make a title filename-safe: drop unsafe characters, underscores for spaces, max 50 chars."""
    clean = FILENAME_UNSAFE_RE.sub("", title).strip()
    clean = "_".join(clean.split())[:50].strip("_")
    return clean or "Chat"
