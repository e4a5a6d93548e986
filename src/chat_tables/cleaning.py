"""Cell text cleaning shared by every format parser.

Chat front ends leave behind markdown emphasis, smart punctuation, byte-order
marks and irregular whitespace.  ``clean_cell`` strips all of that so cells
coming out of different source representations compare equal.
"""

from chat_tables.patterns import MARKDOWN_STRIP_PATTERNS

_SMART_CHARS = {
    "\u201c": '"',
    "\u201d": '"',
    "\u2018": "'",
    "\u2019": "'",
    "\u2013": "-",
    "\u2014": "-",
    "\u2026": "...",
    "\u00a0": " ",
}


def normalize_whitespace(text: str) -> str:
    """Collapse every run of whitespace to a single space and trim."""
    return " ".join(text.split())


def replace_smart_chars(text: str) -> str:
    """Replace curly quotes, long dashes, ellipses and non-breaking spaces with ASCII."""
    for smart, plain in _SMART_CHARS.items():
        text = text.replace(smart, plain)
    return text


def strip_bom(text: str) -> str:
    return text.lstrip("\ufeff")


def strip_markdown(text: str) -> str:
    """Remove markdown emphasis, code, strikethrough, link and escape syntax, keeping inner text."""
    for pattern, replacement in MARKDOWN_STRIP_PATTERNS:
        text = pattern.sub(replacement, text)
    return text.strip()


def clean_cell(text: str, strip_md: bool = True) -> str:
    """Normalise one cell: BOM, smart characters, whitespace, and (optionally) markdown syntax."""
    if not text:
        return ""
    cleaned = normalize_whitespace(replace_smart_chars(strip_bom(text)))
    if strip_md:
        cleaned = strip_markdown(cleaned)
    return cleaned


def normalize_for_compare(text: str, limit: int = 100) -> str:
    """Lower-cased, whitespace-collapsed prefix used for content-level duplicate checks."""
    return normalize_whitespace(text).lower()[:limit]
