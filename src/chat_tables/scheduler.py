"""Mutation-triggered rescans with debouncing and a minimum scan interval.

State machine::

    IDLE --relevant mutation--> PENDING --deadline passed--> SCANNING --> IDLE
                                  ^   |                          |
                                  +---+ (more mutations reset    +--> PENDING if mutations
                                         the debounce deadline)       arrived mid-scan

Irrelevant mutations (engine UI, nodes that cannot hold a table) are dropped
without touching the state.  When a scan fires, a small table-count change
since the previous scan selects an incremental pass; the first run, an empty
registry, or a large change selects a full validation pass.  Scans never
overlap and never start sooner than the minimum interval after the previous
one; a deadline that falls inside that interval is pushed back, not dropped.

The scheduler has no timer of its own.  ``run_due`` is driven either by the
host (tests pass explicit ``now`` values) or by ``run``, which waits on an
``asyncio.Queue`` of mutation batches.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Callable, Iterable

from chat_tables.classifiers import pipe_density, pipe_table_lines
from chat_tables.config import DetectionConfig
from chat_tables.detection import TableDetector
from chat_tables.dom import Document, MutationRecord, Node, is_engine_ui
from chat_tables.registry import BatchRegistry
from chat_tables.schema import ScanOutcome

logger = logging.getLogger(__name__)

_TABLE_TAGS = ("table", "pre", "code")
# Share of an added div's text that must sit on pipe rows
RELEVANT_PIPE_DENSITY = 0.5


class SchedulerState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    SCANNING = "scanning"


# ─── Mutation Relevance ──────────────────────────────────────────────────────


def table_like_count(node: Node) -> int:
    """Count tables and code blocks in *node*'s subtree (a ``<code>`` inside ``<pre>`` counts once)."""
    nodes = ([node] if node.tag in _TABLE_TAGS else []) + node.find_all(_TABLE_TAGS)
    return sum(1 for item in nodes if not (item.tag == "code" and item.parent is not None and item.parent.tag == "pre"))


def _added_node_relevant(node: Node, marker: str) -> bool:
    if is_engine_ui(node, marker):
        return False
    if node.tag in _TABLE_TAGS or node.find_all(_TABLE_TAGS):
        return True
    if node.tag != "div":
        return False
    text = node.text
    return len(pipe_table_lines(text)) >= 2 and pipe_density(text) >= RELEVANT_PIPE_DENSITY


def is_relevant_mutation(record: MutationRecord, marker: str = "chat-tables") -> bool:
    """True if the change could add or remove a table outside this engine's own UI."""
    if is_engine_ui(record.target, marker):
        return False
    if any(_added_node_relevant(node, marker) for node in record.added):
        return True
    return any(table_like_count(node) for node in record.removed)


def table_count_delta(records: Iterable[MutationRecord]) -> int:
    """Number of table-like nodes added or removed across *records*."""
    delta = 0
    for record in records:
        delta += sum(table_like_count(node) for node in record.added)
        delta += sum(table_like_count(node) for node in record.removed)
    return delta


# ─── Scheduler ───────────────────────────────────────────────────────────────


class RescanScheduler:
    """Debounces relevant mutations into serialized incremental or full scans."""

    def __init__(
        self,
        detector: TableDetector,
        document: Document,
        registry: BatchRegistry | None = None,
        config: DetectionConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.detector = detector
        self.document = document
        self.registry = registry if registry is not None else detector.registry
        self.config = config or detector.config
        self._clock = clock

        self.state = SchedulerState.IDLE
        self.deadline: float | None = None
        self.last_scan: float | None = None
        self.pending_delta = 0
        self.scan_count = 0
        self._dirty = False  # relevant mutations arrived while scanning

    def __repr__(self) -> str:
        return f"<RescanScheduler {self.state.value} scans={self.scan_count} delta={self.pending_delta}>"

    def notify(self, records: Iterable[MutationRecord], now: float | None = None) -> bool:
        """Feed mutation records; return True if any was relevant and a scan is now pending."""
        now = self._clock() if now is None else now
        relevant = [record for record in records if is_relevant_mutation(record, self.config.ui_marker)]
        if not relevant:
            return False

        self.pending_delta += table_count_delta(relevant)
        self.deadline = now + self.config.debounce_seconds
        if self.state == SchedulerState.SCANNING:
            self._dirty = True
        else:
            self.state = SchedulerState.PENDING
        logger.debug("%d relevant mutation(s); scan due at %.3f", len(relevant), self.deadline)
        return True

    def cancel(self) -> None:
        """Drop a pending debounce without scanning."""
        if self.state == SchedulerState.PENDING:
            logger.debug("Cancelled pending rescan")
            self.state = SchedulerState.IDLE
            self.deadline = None
            self.pending_delta = 0

    def choose_incremental(self) -> bool:
        if self.scan_count == 0 or self.registry.count == 0:
            return False
        return self.pending_delta <= self.config.incremental_delta_limit

    async def _scan(self, incremental: bool, now: float) -> ScanOutcome:
        self.state = SchedulerState.SCANNING
        self.deadline = None
        self.pending_delta = 0
        self._dirty = False
        try:
            outcome = await self.detector.scan(self.document, incremental=incremental)
        finally:
            self.last_scan = now
            self.scan_count += 1
            self.state = SchedulerState.PENDING if self._dirty else SchedulerState.IDLE
            if self._dirty and self.deadline is None:
                self.deadline = now + self.config.debounce_seconds
        return outcome

    async def boot(self, now: float | None = None) -> ScanOutcome:
        """First run: always a full validation scan."""
        now = self._clock() if now is None else now
        return await self._scan(incremental=False, now=now)

    async def run_due(self, now: float | None = None) -> ScanOutcome | None:
        """Scan if the debounce deadline has passed and the minimum interval allows it."""
        now = self._clock() if now is None else now
        if self.state != SchedulerState.PENDING or self.deadline is None or now < self.deadline:
            return None
        if self.last_scan is not None:
            earliest = self.last_scan + self.config.min_scan_interval_seconds
            if now < earliest:
                logger.debug("Rescan deferred to %.3f by minimum interval", earliest)
                self.deadline = earliest
                return None
        return await self._scan(incremental=self.choose_incremental(), now=now)

    async def run(self, events: asyncio.Queue) -> list[ScanOutcome]:
        """Consume mutation batches from *events* until a ``None`` item arrives."""
        outcomes: list[ScanOutcome] = []
        while True:
            timeout = None
            if self.state == SchedulerState.PENDING and self.deadline is not None:
                timeout = max(0.0, self.deadline - self._clock())
            try:
                records = await asyncio.wait_for(events.get(), timeout)
            except asyncio.TimeoutError:
                outcome = await self.run_due()
                if outcome is not None:
                    outcomes.append(outcome)
                continue
            if records is None:
                break
            self.notify(records)
        return outcomes
