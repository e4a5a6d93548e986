"""Compiled regex patterns and constant tuples for chat-table detection.

These patterns identify structural elements in the text of rendered chat
transcripts: pipe rows, markdown alignment separators, whitespace-aligned
columns, markdown emphasis, and the bits of page chrome that must never be
mistaken for table content.  Used by classifiers.py, cleaning.py and the
parsers.
"""

import re

# ─── Table Line Patterns ──────────────────────────────────────────────────────

# A markdown separator line: only pipes, dashes, colons and whitespace, e.g. "| :--- | ---: |"
ALIGNMENT_LINE_RE = re.compile(r"^[\s|:\-]+$")

# Column separator for plain-text aligned tables: 2+ spaces or a tab
ALIGNED_SPLIT_RE = re.compile(r"\s{2,}|\t")


# ─── Cell Content Patterns ────────────────────────────────────────────────────

# Pure number (integer, decimal, or thousands-separated)
PURE_NUMBER_RE = re.compile(r"^-?\d+(?:[.,]\d+)*$")

# Anything that counts as meaningful text: latin/cyrillic/CJK letters or digits
ALPHANUMERIC_RE = re.compile(r"[A-Za-z0-9\u0400-\u04FF\u4e00-\u9fff]")

# Emoji blocks and the variation selector
EMOJI_RE = re.compile(
    "[\U0001F600-\U0001F64F\U0001F300-\U0001F5FF\U0001F680-\U0001F6FF\U0001F1E0-\U0001F1FF"
    "\u2600-\u26FF\u2700-\u27BF\U0001F900-\U0001F9FF\U0001FA70-\U0001FAFF\uFE0F]"
)

# Currency and trademark signs that carry meaning on their own
SPECIAL_SYMBOL_RE = re.compile(r"[©®™€£¥$¢₽]")

# Literal code point notation such as "U+1F60A"
UNICODE_CODE_RE = re.compile(r"U\+[0-9A-F]{4,6}", re.IGNORECASE)

# Any word character (used for "not just symbols" checks)
WORD_CHAR_RE = re.compile(r"\w")


# ─── Markdown Emphasis Patterns (order matters) ───────────────────────────────

MARKDOWN_STRIP_PATTERNS = (
    (re.compile(r"\*\*(.*?)\*\*"), r"\1"),  # bold
    (re.compile(r"__(.*?)__"), r"\1"),  # bold (underscore)
    (re.compile(r"~~(.*?)~~"), r"\1"),  # strikethrough
    (re.compile(r"`(.*?)`"), r"\1"),  # inline code
    (re.compile(r"\[([^\]]*)\]\([^)]*\)"), r"\1"),  # links
    (re.compile(r"(?<!\w)\*(?!\s)(.+?)(?<!\s)\*(?!\w)"), r"\1"),  # italic
    (re.compile(r"(?<!\w)_(?!\s)(.+?)(?<!\s)_(?!\w)"), r"\1"),  # italic (underscore)
    (re.compile(r"\\([\\`*_{}\[\]()#+\-.!|~])"), r"\1"),  # escapes
)


# ─── Page Chrome Constants ────────────────────────────────────────────────────

# Class tokens that mark host-page UI rather than transcript content
UI_CLASS_TOKENS = (
    "text-input-field",
    "input",
    "toolbar",
    "button",
    "menu",
    "dropdown",
    "modal",
    "popup",
    "tooltip",
    "navigation",
    "header",
    "footer",
    "ng-tns",
)

# Element ids that mark host-page UI
UI_ID_RE = re.compile(r"input|toolbar|menu|button", re.IGNORECASE)

# Visible labels of host-page widgets that sometimes render inside responses
UI_MARKER_TEXTS = ("Deep Research", "Canvas", "Спросить Gemini")

# Inline scripts that leak into code-block text on some front ends
SYSTEM_SCRIPT_MARKERS = ("window.__oai", "requestAnimationFrame")

# Inline styles that hide an element
HIDDEN_STYLE_RE = re.compile(r"display\s*:\s*none|visibility\s*:\s*hidden", re.IGNORECASE)


# ─── Chat Title Constants ─────────────────────────────────────────────────────

# Substrings that disqualify a chat title (generic labels, not conversation names)
INVALID_TITLE_WORDS = (
    "chat",
    "conversation",
    "assistant",
    "对话",
    "新建",
    "menu",
    "settings",
    "welcome",
    "hello",
    "untitled",
)

# Characters that cannot appear in a filename on common filesystems
FILENAME_UNSAFE_RE = re.compile(r'[<>:"/\\|?*]')
