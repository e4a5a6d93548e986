"""Platform resolution and per-platform candidate search.

A ``PlatformProfile`` bundles everything that differs between chat front ends:
the hosts it serves, which containers hold assistant responses, which kinds of
raw candidates to collect inside them, which containers a host should watch
for mutations, and how to find the conversation title.  ``resolve_platform``
is a pure function of the URL and always returns a profile; unknown hosts get
the generic one.

Candidate search degrades gracefully: when a profile's selectors find nothing
(for instance after a front-end redesign), the whole document is scanned for
markup tables and then for pipe-bearing code blocks.
"""

import asyncio
import logging
from typing import NamedTuple
from urllib.parse import urlparse

from chat_tables.classifiers import has_ui_marker_text, is_pipe_row, non_empty_lines, pipe_table_lines
from chat_tables.config import DetectionConfig
from chat_tables.dom import Document, Node, is_ui_element
from chat_tables.patterns import WORD_CHAR_RE
from chat_tables.schema import AISource
from chat_tables.titles import TITLE_STRATEGIES, TitleStrategy

logger = logging.getLogger(__name__)

# Shortest text container worth checking for pipe rows
MIN_TEXT_CANDIDATE_CHARS = 20

# Pipe-dense div bounds used by the generic profile
GENERIC_DIV_MIN_CHARS = 50
GENERIC_DIV_MAX_CHARS = 5000
GENERIC_DIV_MIN_LINES = 3
GENERIC_DIV_MIN_RATIO = 0.7

_FALLBACK_OBSERVATION_SELECTORS = ("main", ".main-content", ".chat-container")


class PlatformProfile(NamedTuple):
    """Where and how to look for tables on one chat platform."""

    source: AISource
    hosts: tuple[str, ...]
    # Assistant-response containers; empty means the whole document
    container_selector: str
    # Text containers inside a response that may hold a pipe table
    text_selector: str
    # Collect every visible table on the page before searching containers
    document_tables: bool = False
    # Collect regular grids of divs inside responses
    div_grids: bool = False
    # Collect pipe-dense divs anywhere (generic fallback heuristic)
    pipe_divs: bool = False
    # Only search text containers when the response text itself contains pipes
    text_requires_pipes: bool = False
    min_table_rows: int = 1
    observation_selectors: tuple[str, ...] = ()

    @property
    def titles(self) -> TitleStrategy:
        return TITLE_STRATEGIES[self.source]

    def matches(self, url: str) -> bool:
        host = _hostname(url)
        return any(host == known or host.endswith("." + known) for known in self.hosts)


CHATGPT = PlatformProfile(
    source=AISource.CHATGPT,
    hosts=("chat.openai.com", "chatgpt.com"),
    container_selector='[data-message-author-role="assistant"]',
    text_selector=".markdown p, .markdown div",
    observation_selectors=("main", '[class*="conversation-"]', '[class*="message-"]'),
)

CLAUDE = PlatformProfile(
    source=AISource.CLAUDE,
    hosts=("claude.ai",),
    container_selector='.prose, .message-content, [class*="message-content"]',
    text_selector="div, p, span",
    text_requires_pipes=True,
    observation_selectors=(".chat-messages", ".message-container", '[class*="claude-"]'),
)

GEMINI = PlatformProfile(
    source=AISource.GEMINI,
    hosts=("gemini.google.com", "bard.google.com"),
    container_selector="[data-response-id], .response-container, .model-response, .conversation-turn, mat-card",
    text_selector=".markdown-content p, .response-content p",
    document_tables=True,
    div_grids=True,
    observation_selectors=("mat-card", ".message-container", '[class*="gemini-"]'),
)

DEEPSEEK = PlatformProfile(
    source=AISource.DEEPSEEK,
    hosts=("chat.deepseek.com", "deepseek.com"),
    container_selector='.message, .chat-message, .response, .assistant-message, [class*="message"], [class*="response"]',
    text_selector="p, div, span",
    document_tables=True,
    div_grids=True,
    observation_selectors=(".chat-container", ".message-list", '[class*="deepseek-"]'),
)

GENERIC = PlatformProfile(
    source=AISource.OTHER,
    hosts=(),
    container_selector="",
    text_selector="",
    pipe_divs=True,
    min_table_rows=2,
)

PROFILES = (CHATGPT, CLAUDE, GEMINI, DEEPSEEK)


def _hostname(url: str) -> str:
    parsed = urlparse(url if "//" in url else "//" + url)
    return (parsed.hostname or "").lower()


def resolve_platform(url: str) -> PlatformProfile:
    """Return the profile serving *url*, or the generic profile."""
    for profile in PROFILES:
        if profile.matches(url):
            return profile
    return GENERIC


def detect_source(url: str) -> AISource:
    return resolve_platform(url).source


# ─── Candidate Predicates ────────────────────────────────────────────────────


def _valid_pipe_lines(text: str) -> list[str]:
    """Pipe rows with 2+ non-empty cells, at least one longer than a character."""
    valid = []
    for line in pipe_table_lines(text):
        cells = [cell.strip() for cell in line.split("|") if cell.strip()]
        if len(cells) >= 2 and any(len(cell) > 1 for cell in cells):
            valid.append(line)
    return valid


def is_pipe_code_block(node: Node) -> bool:
    text = node.text
    return "|" in text and len(pipe_table_lines(text)) >= 2


def is_pipe_text_container(node: Node) -> bool:
    text = node.text.strip()
    if len(text) < MIN_TEXT_CANDIDATE_CHARS or "|" not in text:
        return False
    return len(_valid_pipe_lines(text)) >= 2


def is_div_grid(node: Node) -> bool:
    """A div whose children look like rows of 2-10 text cells."""
    if node.find_all(("table", "pre", "code")):
        return False
    children = node.children
    if len(children) < 2:
        return False
    width = len(children[0].children)
    if not 2 <= width <= 10:
        return False
    if sum(1 for child in children if len(child.children) == width) < 2:
        return False
    for child in children:
        text = child.text.strip()
        if len(text) > 1 and WORD_CHAR_RE.search(text) and not has_ui_marker_text(text):
            return True
    return False


def is_pipe_dense_div(node: Node) -> bool:
    text = node.text
    if "|" not in text or not GENERIC_DIV_MIN_CHARS <= len(text) <= GENERIC_DIV_MAX_CHARS:
        return False
    lines = non_empty_lines(text)
    table_lines = [line for line in lines if is_pipe_row(line)]
    return len(table_lines) >= GENERIC_DIV_MIN_LINES and len(table_lines) / len(lines) > GENERIC_DIV_MIN_RATIO


# ─── Candidate Search ────────────────────────────────────────────────────────


class _Collector:
    """Ordered, identity-deduplicated candidate list."""

    def __init__(self, ui_marker: str):
        self.ui_marker = ui_marker
        self.nodes: list[Node] = []
        self._seen: set[Node] = set()

    def add(self, node: Node) -> None:
        if node in self._seen or not node.is_visible() or is_ui_element(node, self.ui_marker):
            return
        self._seen.add(node)
        self.nodes.append(node)

    def inside_collected(self, node: Node) -> bool:
        return any(collected.contains(node) for collected in self.nodes)


def _collect_tables(scope: Node | Document, collector: _Collector, min_rows: int) -> None:
    for table in scope.find_all("table"):
        if len(table.find_all("tr")) >= min_rows:
            collector.add(table)


def _collect_code_blocks(scope: Node | Document, collector: _Collector) -> None:
    for block in scope.find_all(("pre", "code")):
        if is_pipe_code_block(block):
            collector.add(block)


def _search_container(container: Node, profile: PlatformProfile, collector: _Collector) -> None:
    _collect_tables(container, collector, profile.min_table_rows)
    _collect_code_blocks(container, collector)

    if profile.div_grids:
        for div in container.find_all("div"):
            if is_div_grid(div) and not collector.inside_collected(div):
                collector.add(div)

    if not profile.text_selector:
        return
    if profile.text_requires_pipes:
        text = container.text
        if "|" not in text or len(text.split("\n")) <= 2:
            return
    for node in container.select(profile.text_selector):
        if not collector.inside_collected(node) and is_pipe_text_container(node):
            collector.add(node)


async def find_candidates(document: Document, profile: PlatformProfile, config: DetectionConfig) -> list[Node]:
    """Collect raw candidate nodes for *profile*, in document order within each container."""
    collector = _Collector(config.ui_marker)

    if profile.document_tables:
        _collect_tables(document, collector, profile.min_table_rows)

    if profile.container_selector:
        containers = document.select(profile.container_selector)
        logger.debug("Found %d %s response containers", len(containers), profile.source.value)
        for container in containers:
            _search_container(container, profile, collector)
            # Yield between containers so long transcripts do not starve the loop
            await asyncio.sleep(0)
    else:
        _search_container(document.root, profile, collector)

    if profile.pipe_divs:
        for div in document.find_all("div"):
            if is_pipe_dense_div(div):
                collector.add(div)

    if not collector.nodes:
        logger.debug("No %s candidates via selectors; scanning whole document", profile.source.value)
        _collect_tables(document, collector, 1)
        _collect_code_blocks(document, collector)

    logger.info("Found %d raw candidates for %s", len(collector.nodes), profile.source.value)
    return collector.nodes


async def find_wrapper_aware_candidates(document: Document, config: DetectionConfig) -> list[Node]:
    """Document-wide scan: tables, pipe code blocks, then every block container.

    Block containers are collected even when they wrap a table so the wrapper
    filter can see and discard them explicitly.
    """
    collector = _Collector(config.ui_marker)
    _collect_tables(document, collector, 1)
    await asyncio.sleep(0)
    for block in document.find_all(("pre", "code")):
        if len([line for line in block.text.split("\n") if "|" in line]) >= 2:
            collector.add(block)
    await asyncio.sleep(0)
    for node in document.find_all(("div", "section", "article")):
        collector.add(node)
    logger.info("Found %d raw candidates in wrapper-aware scan", len(collector.nodes))
    return collector.nodes


def observation_roots(document: Document, profile: PlatformProfile) -> list[Node]:
    """Containers a host should watch for mutations, falling back to ``main`` and then ``body``."""
    for selectors in (profile.observation_selectors, _FALLBACK_OBSERVATION_SELECTORS):
        roots: list[Node] = []
        for selector in selectors:
            for node in document.select(selector):
                if node not in roots and not any(root.contains(node) for root in roots):
                    roots.append(node)
        if roots:
            return roots
    return [document.root]
