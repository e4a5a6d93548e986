"""Node handles over a parsed HTML document.

The detection pipeline never touches BeautifulSoup directly.  It works with
``Node``, a small capability wrapper (children, text, attributes, visibility,
containment) around a ``bs4`` element, and with ``Document``, which owns the
parsed tree, its URL, and the mutation helpers hosts use to change the page.

Node equality is identity: two structurally identical tables in the same
transcript are two different nodes.
"""

import logging
from pathlib import Path
from typing import NamedTuple

from bs4 import BeautifulSoup
from bs4.element import NavigableString, PreformattedString, Tag

from chat_tables.patterns import HIDDEN_STYLE_RE, UI_CLASS_TOKENS, UI_ID_RE

logger = logging.getLogger(__name__)

# Text inside these elements is never rendered
_NON_RENDERED_TAGS = ("script", "style", "template", "noscript")

# Native form controls and buttons are always page chrome
_CONTROL_TAGS = ("button", "input", "textarea", "select", "option")


class Node:
    """Opaque handle to one element of a ``Document``."""

    __slots__ = ("_element", "_document")

    def __init__(self, element: Tag, document: "Document"):
        self._element = element
        self._document = document

    # ── Identity ──────────────────────────────────────────────────────────

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Node) and other._element is self._element

    def __hash__(self) -> int:
        return id(self._element)

    def __repr__(self) -> str:
        classes = ".".join(self.classes)
        return f"<Node {self.tag}{'.' + classes if classes else ''}>"

    # ── Attributes ────────────────────────────────────────────────────────

    @property
    def element(self) -> Tag:
        return self._element

    @property
    def document(self) -> "Document":
        return self._document

    @property
    def tag(self) -> str:
        return self._element.name or ""

    def get(self, name: str, default: str = "") -> str:
        """Return an attribute as a string (multi-valued attributes are space-joined)."""
        value = self._element.get(name)
        if value is None:
            return default
        if isinstance(value, list):
            return " ".join(value)
        return str(value)

    def has_attr(self, name: str) -> bool:
        return self._element.has_attr(name)

    @property
    def classes(self) -> list[str]:
        value = self._element.get("class") or []
        return list(value) if isinstance(value, list) else str(value).split()

    @property
    def class_name(self) -> str:
        return " ".join(self.classes)

    @property
    def element_id(self) -> str:
        return self.get("id")

    # ── Tree navigation ──────────────────────────────────────────────────

    @property
    def children(self) -> list["Node"]:
        """Element children only (text nodes are skipped)."""
        return [Node(child, self._document) for child in self._element.children if isinstance(child, Tag)]

    @property
    def parent(self) -> "Node | None":
        parent = self._element.parent
        if parent is None or isinstance(parent, BeautifulSoup):
            return None
        return Node(parent, self._document)

    def ancestors(self, inclusive: bool = False) -> list["Node"]:
        """Return ancestors nearest-first (optionally starting with this node)."""
        chain: list[Node] = [self] if inclusive else []
        parent = self.parent
        while parent is not None:
            chain.append(parent)
            parent = parent.parent
        return chain

    def select(self, css: str) -> list["Node"]:
        return [Node(el, self._document) for el in self._element.select(css)]

    def select_one(self, css: str) -> "Node | None":
        found = self._element.select_one(css)
        return Node(found, self._document) if found is not None else None

    def find_all(self, names: str | tuple[str, ...] | list[str]) -> list["Node"]:
        """Return descendant elements with the given tag name(s), in document order."""
        wanted = [names] if isinstance(names, str) else list(names)
        return [Node(el, self._document) for el in self._element.find_all(wanted)]

    def contains(self, other: "Node") -> bool:
        """Inclusive containment, like DOM ``Node.contains``."""
        current = other._element
        while current is not None:
            if current is self._element:
                return True
            current = current.parent
        return False

    # ── Content ───────────────────────────────────────────────────────────

    @property
    def text(self) -> str:
        """textContent-like text: ``<br>`` becomes a newline; comments and scripts are skipped."""
        parts: list[str] = []
        for item in self._element.descendants:
            if isinstance(item, Tag):
                if item.name == "br":
                    parts.append("\n")
                continue
            if not isinstance(item, NavigableString) or isinstance(item, PreformattedString):
                continue
            if item.parent is not None and item.parent.name in _NON_RENDERED_TAGS:
                continue
            parts.append(str(item))
        return "".join(parts)

    # ── Liveness ──────────────────────────────────────────────────────────

    def is_attached(self) -> bool:
        """Return True if the node is still reachable from its document's root."""
        current = self._element
        while current.parent is not None:
            current = current.parent
        return current is self._document.soup

    def is_visible(self) -> bool:
        """Return False if this node or an ancestor is hidden by attribute or inline style."""
        current = self._element
        while current is not None and not isinstance(current, BeautifulSoup):
            if current.has_attr("hidden"):
                return False
            if str(current.get("aria-hidden", "")).lower() == "true":
                return False
            style = current.get("style")
            if style and HIDDEN_STYLE_RE.search(str(style)):
                return False
            if current.name in _NON_RENDERED_TAGS:
                return False
            current = current.parent
        return True

    # ── Geometry stand-ins ────────────────────────────────────────────────

    def position(self) -> tuple[int, int]:
        """Return ``(document-order index, depth)``; ``(-1, depth)`` once detached."""
        depth = len(self.ancestors())
        for index, element in enumerate(self._document.soup.find_all(True)):
            if element is self._element:
                return index, depth
        return -1, depth

    def path(self) -> str:
        """Stable ``tag[n]/tag[n]`` path from the root, counting same-name siblings."""
        segments: list[str] = []
        current = self._element
        while current is not None and not isinstance(current, BeautifulSoup):
            parent = current.parent
            index = 0
            if parent is not None:
                for sibling in parent.children:
                    if sibling is current:
                        break
                    if isinstance(sibling, Tag) and sibling.name == current.name:
                        index += 1
            segments.append(f"{current.name}[{index}]")
            current = parent
        return "/".join(reversed(segments))


class MutationRecord(NamedTuple):
    """One structural change: nodes added to and removed from *target*."""

    target: Node
    added: list[Node]
    removed: list[Node]


class Document:
    """A parsed page: the tree, the URL it was loaded from, and mutation helpers."""

    def __init__(self, html: str, url: str = "", parser: str = "lxml"):
        self.soup = BeautifulSoup(html, parser)
        self.url = url
        self.parser = parser

    @classmethod
    def from_file(cls, path: Path, url: str = "") -> "Document":
        with open(path, "r", encoding="utf-8") as fopen:
            return cls(fopen.read(), url=url)

    def __repr__(self) -> str:
        return f"<Document {self.url or '(no url)'}>"

    @property
    def title(self) -> str:
        title = self.soup.title
        return title.get_text(strip=True) if title is not None else ""

    @property
    def root(self) -> Node:
        """The ``<body>`` element, or the outermost element when there is none."""
        body = self.soup.body
        if body is not None:
            return Node(body, self)
        first = self.soup.find(True)
        return Node(first if first is not None else self.soup, self)

    def wrap(self, element: Tag) -> Node:
        return Node(element, self)

    def select(self, css: str) -> list[Node]:
        return [Node(el, self) for el in self.soup.select(css)]

    def select_one(self, css: str) -> Node | None:
        found = self.soup.select_one(css)
        return Node(found, self) if found is not None else None

    def find_all(self, names: str | tuple[str, ...] | list[str]) -> list[Node]:
        wanted = [names] if isinstance(names, str) else list(names)
        return [Node(el, self) for el in self.soup.find_all(wanted)]

    def find_by_path(self, path: str) -> Node | None:
        """Resolve a ``Node.path()`` string in this document (used to map nodes across copies)."""
        current = self.soup
        for segment in path.split("/"):
            name, _, rest = segment.partition("[")
            index = int(rest.rstrip("]") or 0)
            matches = [child for child in current.children if isinstance(child, Tag) and child.name == name]
            if index >= len(matches):
                return None
            current = matches[index]
        return Node(current, self) if current is not self.soup else None

    def copy(self) -> "Document":
        return Document(str(self.soup), url=self.url, parser=self.parser)

    def html(self) -> str:
        return str(self.soup)

    # ── Mutations ─────────────────────────────────────────────────────────

    def insert_html(self, parent: Node, html: str) -> MutationRecord:
        """Parse *html* as a fragment, append it to *parent*, and describe the change."""
        fragment = BeautifulSoup(html, self.parser)
        container = fragment.body if fragment.body is not None else fragment
        added: list[Node] = []
        for item in list(container.contents):
            parent.element.append(item.extract())
            if isinstance(item, Tag):
                added.append(Node(item, self))
        logger.debug("Inserted %d element(s) under %s", len(added), parent)
        return MutationRecord(target=parent, added=added, removed=[])

    def remove(self, node: Node) -> MutationRecord:
        """Detach *node* from the tree and describe the change."""
        target = node.parent or self.root
        node.element.extract()
        logger.debug("Removed %s from %s", node, target)
        return MutationRecord(target=target, added=[], removed=[node])


# ─── Chrome Classification ────────────────────────────────────────────────────


def is_engine_ui(node: Node, marker: str) -> bool:
    """Return True if *node* belongs to this engine's own chrome (export buttons, tooltips, menus)."""
    for candidate in node.ancestors(inclusive=True):
        if marker in candidate.element_id or marker in candidate.class_name:
            return True
    if node.tag == "button":
        return "Export" in node.text or "Export" in node.get("title")
    return False


def is_ui_element(node: Node, marker: str) -> bool:
    """Return True for engine chrome, form controls, and elements styled as host-page widgets."""
    if is_engine_ui(node, marker):
        return True
    if node.tag in _CONTROL_TAGS:
        return True
    if any(token in UI_CLASS_TOKENS for token in node.classes):
        return True
    return bool(node.element_id and UI_ID_RE.search(node.element_id))
