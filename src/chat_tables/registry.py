"""The batch registry: live, self-cleaning map of table id -> detection result.

An entry stays in the registry only while its anchor node is attached to the
document, visible, and not part of this engine's own UI.  Cleanup is lazy:
``get_all`` runs it at most once per cleanup interval, so readers may see
entries up to one interval stale.  ``get_by_ids`` always filters on the spot.

No two live anchors may be nested inside each other.  ``add`` refuses a result
nested with an existing entry and ``cleanup`` drops the outer node of any
nested pair that slipped through.  A full scan calls ``retain`` to drop entries
whose anchors the fresh pass no longer accepts.
"""

import logging
import time
from typing import Callable, Iterable

from chat_tables.config import DetectionConfig
from chat_tables.dom import Node, is_ui_element
from chat_tables.schema import TableDetectionResult

logger = logging.getLogger(__name__)


class BatchRegistry:
    """Process-wide store of currently valid detection results, keyed by table id."""

    def __init__(self, config: DetectionConfig | None = None, clock: Callable[[], float] = time.monotonic):
        self.config = config or DetectionConfig()
        self._clock = clock
        self._entries: dict[str, TableDetectionResult] = {}
        self._last_cleanup = clock()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, table_id: object) -> bool:
        return table_id in self._entries

    @property
    def count(self) -> int:
        return len(self._entries)

    @property
    def ids(self) -> list[str]:
        return list(self._entries)

    # ── Validity ─────────────────────────────────────────────────────────

    def is_valid_anchor(self, node: Node) -> bool:
        return node.is_attached() and node.is_visible() and not is_ui_element(node, self.config.ui_marker)

    def find_by_anchor(self, node: Node) -> str | None:
        """Return the id registered for *node*, if any."""
        for table_id, result in self._entries.items():
            if result.element == node:
                return table_id
        return None

    def _nested_with(self, node: Node, exclude_ids: set[str | None]) -> str | None:
        for table_id, result in self._entries.items():
            if table_id in exclude_ids:
                continue
            if result.element.contains(node) or node.contains(result.element):
                return table_id
        return None

    # ── Mutations ────────────────────────────────────────────────────────

    def add(self, results: Iterable[TableDetectionResult]) -> list[str]:
        """Insert or overwrite results by id; return the ids actually stored."""
        stored: list[str] = []
        for result in results:
            table_id = result.data.id
            if not self.is_valid_anchor(result.element):
                logger.debug("Refused %s: anchor is detached, hidden or engine UI", table_id)
                continue
            previous_id = self.find_by_anchor(result.element)
            nested_id = self._nested_with(result.element, {table_id, previous_id})
            if nested_id is not None:
                logger.debug("Refused %s: anchor is nested with %s", table_id, nested_id)
                continue
            if previous_id is not None and previous_id != table_id:
                del self._entries[previous_id]
            self._entries[table_id] = result
            stored.append(table_id)
        logger.debug("Registry add: %d stored, size now %d", len(stored), len(self._entries))
        return stored

    def cleanup(self) -> list[str]:
        """Remove entries whose anchors are no longer valid, then the outer node of nested pairs."""
        self._last_cleanup = self._clock()
        removed = [table_id for table_id, result in self._entries.items() if not self.is_valid_anchor(result.element)]
        for table_id in removed:
            del self._entries[table_id]

        items = list(self._entries.items())
        for table_id, result in items:
            if table_id not in self._entries:
                continue
            for other_id, other in items:
                if other_id != table_id and other_id in self._entries and result.element.contains(other.element):
                    del self._entries[table_id]
                    removed.append(table_id)
                    break

        if removed:
            logger.info("Registry cleanup removed %d entries, %d remain", len(removed), len(self._entries))
        return removed

    def retain(self, anchors: Iterable[Node]) -> list[str]:
        """Drop every entry whose anchor is not in *anchors*; return the dropped ids."""
        keep = set(anchors)
        removed = [table_id for table_id, result in self._entries.items() if result.element not in keep]
        for table_id in removed:
            del self._entries[table_id]
        if removed:
            logger.info("Registry reconcile dropped %d stale entries, %d remain", len(removed), len(self._entries))
        return removed

    def clear(self) -> None:
        logger.info("Clearing registry (%d entries)", len(self._entries))
        self._entries.clear()
        self._last_cleanup = self._clock()

    # ── Queries ──────────────────────────────────────────────────────────

    def get_all(self) -> list[TableDetectionResult]:
        """Snapshot of all entries, after a cleanup if the cleanup interval has elapsed."""
        if self._clock() - self._last_cleanup >= self.config.cleanup_interval_seconds:
            self.cleanup()
        return list(self._entries.values())

    def get_by_ids(self, ids: Iterable[str]) -> list[TableDetectionResult]:
        """Entries for *ids* whose anchors are still valid; unknown or stale ids are skipped."""
        results = []
        for table_id in ids:
            result = self._entries.get(table_id)
            if result is not None and self.is_valid_anchor(result.element):
                results.append(result)
        return results

    def debug_info(self) -> dict:
        return {
            "count": len(self._entries),
            "seconds_since_cleanup": round(self._clock() - self._last_cleanup, 3),
            "entries": [
                {
                    "id": table_id,
                    "tag": result.element.tag,
                    "path": result.element.path(),
                    "valid": self.is_valid_anchor(result.element),
                    "columns": len(result.data.headers),
                    "rows": len(result.data.rows),
                }
                for table_id, result in self._entries.items()
            ],
        }
