"""Conversation-title extraction, one selector cascade per chat platform.

Each strategy tries, in order: the platform's title/header/sidebar selectors,
the first user message (6-50 characters), page metadata, the ``<title>`` with
the platform suffix removed, and finally a platform default.  The result is
made filename-safe with ``sanitize_chat_title``.
"""

import logging
from typing import NamedTuple

from chat_tables.classifiers import is_valid_chat_title, sanitize_chat_title
from chat_tables.cleaning import normalize_whitespace
from chat_tables.dom import Document
from chat_tables.schema import AISource

logger = logging.getLogger(__name__)

MAX_TITLE_CHARS = 100
FIRST_MESSAGE_CHARS = 50
MIN_FIRST_MESSAGE_CHARS = 6

_META_SELECTORS = ('meta[property="og:title"]', 'meta[name="title"]', 'meta[name="twitter:title"]')


class TitleStrategy(NamedTuple):
    """Where a platform keeps its conversation title."""

    # (selectors, lower-case substring that disqualifies a hit)
    selector_groups: tuple[tuple[tuple[str, ...], str], ...]
    first_message_selector: str
    page_suffixes: tuple[str, ...]
    default: str
    use_meta: bool = False
    strict: bool = False  # also require is_valid_chat_title on selector hits


CHATGPT_TITLES = TitleStrategy(
    selector_groups=(
        (
            (
                '[class*="nav-conversation-title"]',
                '[class*="ConversationTitle"]',
                ".conversation-title",
                ".chat-title",
                "nav .active",
                'nav [aria-current="page"]',
            ),
            "new chat",
        ),
        (("main h1", '[class*="main-title"]', '[class*="chat-title"]', '[role="heading"]'), "chatgpt"),
    ),
    first_message_selector='[data-message-author-role="user"]',
    page_suffixes=(" - ChatGPT",),
    default="ChatGPT_Conversation",
)

CLAUDE_TITLES = TitleStrategy(
    selector_groups=(
        (
            (
                '[class*="ConversationTitle"]',
                '[class*="chat-title"]',
                ".conversation-title",
                ".chat-title",
                "header h1",
                "header h2",
                '[role="heading"]',
            ),
            "claude",
        ),
        ((".sidebar .active", ".chat-list .selected", '[aria-current="page"]', ".conversation-item.active"), "new chat"),
    ),
    first_message_selector=".user-message, .human-message",
    page_suffixes=(" - Claude",),
    default="Claude_Conversation",
)

GEMINI_TITLES = TitleStrategy(
    selector_groups=(
        (
            (
                '[class*="chat-title"]',
                '[class*="conversation-title"]',
                ".chat-header h1",
                ".chat-header h2",
                "header h1",
                "header h2",
                '[role="heading"]',
            ),
            "gemini",
        ),
        (
            ("mat-tree-node.active", ".chat-list .selected", '[aria-current="page"]', ".conversation-item.active", "nav .active"),
            "new chat",
        ),
    ),
    first_message_selector='.user-message, [data-message-author="user"]',
    page_suffixes=(" - Gemini", " - Google"),
    default="Gemini_Conversation",
)

DEEPSEEK_TITLES = TitleStrategy(
    selector_groups=(
        (
            (
                ".chat-list .selected",
                ".chat-sidebar .current",
                '[class*="sidebar"] [class*="active"]',
                '[class*="chat-list"] [class*="selected"]',
                'aside [aria-current="page"]',
                ".conversation-item.active",
                '[data-active="true"]',
            ),
            "deepseek",
        ),
        (("header h1", "main h1", '[role="heading"]', "h1", "h2"), "deepseek"),
    ),
    first_message_selector=".user-message, [class*='user-message']",
    page_suffixes=(" - DeepSeek", " - Chat"),
    default="DeepSeek_Conversation",
    use_meta=True,
    strict=True,
)

GENERIC_TITLES = TitleStrategy(
    selector_groups=((("main h1", "header h1", "h1"), ""),),
    first_message_selector="",
    page_suffixes=(),
    default="Chat",
)

TITLE_STRATEGIES = {
    AISource.CHATGPT: CHATGPT_TITLES,
    AISource.CLAUDE: CLAUDE_TITLES,
    AISource.GEMINI: GEMINI_TITLES,
    AISource.DEEPSEEK: DEEPSEEK_TITLES,
    AISource.OTHER: GENERIC_TITLES,
}


def _acceptable(text: str, excluded: str, strict: bool) -> bool:
    if not text or len(text) > MAX_TITLE_CHARS:
        return False
    if excluded and excluded in text.lower():
        return False
    return is_valid_chat_title(text) if strict else True


def _strip_suffixes(title: str, suffixes: tuple[str, ...]) -> str:
    for suffix in suffixes:
        title = title.replace(suffix, "")
    return title.strip()


def extract_raw_title(document: Document, strategy: TitleStrategy) -> str:
    """Run the cascade and return the unsanitized title."""
    for selectors, excluded in strategy.selector_groups:
        for selector in selectors:
            node = document.select_one(selector)
            if node is None:
                continue
            text = normalize_whitespace(node.text)
            if _acceptable(text, excluded, strategy.strict):
                logger.debug("Title from selector %s: %s", selector, text)
                return text

    if strategy.first_message_selector:
        node = document.select_one(strategy.first_message_selector)
        if node is not None:
            text = normalize_whitespace(node.text)[:FIRST_MESSAGE_CHARS].strip()
            if len(text) >= MIN_FIRST_MESSAGE_CHARS:
                logger.debug("Title from first user message: %s", text)
                return text

    if strategy.use_meta:
        for selector in _META_SELECTORS:
            node = document.select_one(selector)
            if node is None:
                continue
            content = _strip_suffixes(node.get("content"), strategy.page_suffixes)
            if len(content) > 3 and is_valid_chat_title(content):
                logger.debug("Title from %s: %s", selector, content)
                return content

    page_title = _strip_suffixes(document.title, strategy.page_suffixes)
    platform_name = strategy.default.split("_", maxsplit=1)[0]
    if page_title and page_title.lower() != platform_name.lower():
        logger.debug("Title from page title: %s", page_title)
        return page_title

    logger.debug("No title found, using default %s", strategy.default)
    return strategy.default


def extract_chat_title(document: Document, source: AISource) -> str:
    """Return a filename-safe conversation title for the document."""
    return sanitize_chat_title(extract_raw_title(document, TITLE_STRATEGIES[source]))
