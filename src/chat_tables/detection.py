"""Detection passes: find candidates, parse, repair, score, filter, register.

``TableDetector.detect_all`` runs one pass over a document:

  1. Candidate search (platform profile and/or wrapper-aware document scan)
  2. Parsing with the first parser that accepts the node, then structure repair
  3. Confidence scoring
  4. Wrapper marking, threshold and duplicate filtering
  5. ``TableData`` construction and registry update

Failures are contained: a parser raising is logged and the next parser is
tried; a candidate search raising yields an empty pass.  Neither aborts.

Run as a module to detect tables in a saved page::

    python -m chat_tables.detection page.html --url https://claude.ai/chat/x --mode hybrid
"""

import argparse
import asyncio
import json
import logging
import time
import zlib
from enum import Enum
from pathlib import Path

from pydantic import ValidationError

from chat_tables.config import DetectionConfig, RepairOptions
from chat_tables.dom import Document, Node
from chat_tables.filtering import filter_candidates, mark_wrappers
from chat_tables.parsers import TableParser, default_parsers
from chat_tables.platforms import PlatformProfile, find_candidates, find_wrapper_aware_candidates, resolve_platform
from chat_tables.registry import BatchRegistry
from chat_tables.repair import repair_table
from chat_tables.scoring import score_candidate
from chat_tables.schema import (
    AISource,
    BatchDetectionResult,
    ParsedTable,
    Position,
    ScanMode,
    ScanOutcome,
    TableCandidate,
    TableData,
    TableDetectionResult,
)
from chat_tables.titles import extract_chat_title

logger = logging.getLogger(__name__)


class DetectionMode(str, Enum):
    """Which candidate search a pass uses."""

    BATCH = "batch"  # platform profile selectors
    WRAPPER_AWARE = "wrapper_aware"  # document-wide scan with explicit wrapper candidates
    HYBRID = "hybrid"  # both, run concurrently and merged
    AUTO = "auto"  # wrapper-aware on Claude (batch if it finds nothing), batch elsewhere


def now_ms() -> int:
    return int(time.time() * 1000)


def make_table_id(node: Node, timestamp: int) -> str:
    """``table_{index}_{depth}_{content hash}_{timestamp}``."""
    index, depth = node.position()
    digest = zlib.crc32(node.text.strip()[:100].encode("utf-8"))
    return f"table_{index}_{depth}_{digest:08x}_{timestamp}"


class TableDetector:
    """Runs detection passes and keeps a ``BatchRegistry`` up to date."""

    def __init__(
        self,
        registry: BatchRegistry | None = None,
        config: DetectionConfig | None = None,
        repair_options: RepairOptions | None = None,
        parsers: list[TableParser] | None = None,
    ):
        self.config = config or DetectionConfig()
        self.registry = registry if registry is not None else BatchRegistry(self.config)
        self.repair_options = repair_options or RepairOptions()
        self.parsers = parsers if parsers is not None else default_parsers(self.config.ui_marker)

    # ── Single node ──────────────────────────────────────────────────────

    def parse_element(self, node: Node) -> ParsedTable | None:
        """Try each parser in priority order; return the first repaired, valid table."""
        for parser in self.parsers:
            try:
                if not parser.can_parse(node):
                    continue
                parsed = parser.parse(node)
            except Exception:  # pylint: disable=broad-exception-caught
                logger.warning("%s failed on %s", type(parser).__name__, node, exc_info=True)
                continue
            if parsed is None:
                continue
            repaired = repair_table(parsed, self.repair_options)
            if repaired is not None:
                return repaired
            logger.debug("%s output for %s rejected by validation", type(parser).__name__, node)
        return None

    def build_candidates(self, nodes: list[Node]) -> list[TableCandidate]:
        """Parse and score every node; unparseable nodes are kept with zero confidence."""
        candidates = []
        for node in nodes:
            parsed = self.parse_element(node)
            if parsed is None:
                candidates.append(TableCandidate(element=node, confidence=0.0, reason="no parser matched"))
                continue
            confidence, reason = score_candidate(node, parsed, self.config)
            candidates.append(TableCandidate(element=node, confidence=confidence, reason=reason, parsed=parsed))
        return candidates

    # ── Candidate search per mode ────────────────────────────────────────

    async def _batch_candidates(self, document: Document, profile: PlatformProfile) -> list[TableCandidate]:
        nodes = await find_candidates(document, profile, self.config)
        return self.build_candidates(nodes)

    async def _wrapper_aware_candidates(self, document: Document) -> list[TableCandidate]:
        nodes = await find_wrapper_aware_candidates(document, self.config)
        return self.build_candidates(nodes)

    async def collect_candidates(self, document: Document, mode: DetectionMode = DetectionMode.AUTO) -> list[TableCandidate]:
        """Return every scored candidate of a pass with wrappers marked, before filtering."""
        mode = DetectionMode(mode)
        profile = resolve_platform(document.url)
        if mode == DetectionMode.BATCH:
            candidates = await self._batch_candidates(document, profile)
        elif mode == DetectionMode.WRAPPER_AWARE:
            candidates = await self._wrapper_aware_candidates(document)
        elif mode == DetectionMode.HYBRID:
            batch, wrapper_aware = await asyncio.gather(
                self._batch_candidates(document, profile), self._wrapper_aware_candidates(document)
            )
            seen = {candidate.element for candidate in batch}
            candidates = batch + [candidate for candidate in wrapper_aware if candidate.element not in seen]
        elif profile.source == AISource.CLAUDE:
            candidates = await self._wrapper_aware_candidates(document)
            if not filter_candidates(candidates, self.config):
                logger.info("Wrapper-aware scan found nothing on Claude; falling back to batch")
                candidates = await self._batch_candidates(document, profile)
        else:
            candidates = await self._batch_candidates(document, profile)
        return mark_wrappers(candidates, self.config)

    async def accepted_candidates(self, document: Document, mode: DetectionMode = DetectionMode.AUTO) -> list[TableCandidate]:
        candidates = await self.collect_candidates(document, mode)
        return filter_candidates(candidates, self.config)

    # ── Passes ───────────────────────────────────────────────────────────

    def _to_result(self, candidate: TableCandidate, source: AISource, url: str, chat_title: str, timestamp: int):
        node = candidate.element
        table_id = self.registry.find_by_anchor(node) or make_table_id(node, timestamp)
        try:
            data = TableData(
                id=table_id,
                headers=candidate.parsed.headers,
                rows=candidate.parsed.rows,
                source=source,
                timestamp=timestamp,
                url=url,
                chat_title=chat_title,
            )
        except ValidationError as e:
            logger.debug("Rejected %s at TableData construction: %s", node, e)
            return None
        index, depth = node.position()
        return TableDetectionResult(element=node, data=data, position=Position(index=index, depth=depth))

    async def detect_all(
        self,
        document: Document,
        mode: DetectionMode = DetectionMode.AUTO,
        skip_registered: bool = False,
        reconcile: bool = False,
    ) -> BatchDetectionResult:
        """Run one pass, add its results to the registry, and return them.

        With ``skip_registered`` only tables whose anchors are not already held
        by a valid registry entry are returned and added.  With ``reconcile``
        entries whose anchors this pass no longer accepts are dropped before the
        add, so a former wrapper cannot block the table now found inside it.
        A pass whose candidate search failed never reconciles.
        """
        timestamp = now_ms()
        profile = resolve_platform(document.url)
        chat_title = extract_chat_title(document, profile.source)

        try:
            accepted = await self.accepted_candidates(document, mode)
        except Exception:  # pylint: disable=broad-exception-caught
            logger.warning("Candidate search failed for %s; returning no tables", document.url, exc_info=True)
            accepted = []
            reconcile = False

        results: list[TableDetectionResult] = []
        for candidate in accepted:
            if skip_registered:
                existing = self.registry.find_by_anchor(candidate.element)
                if existing is not None and self.registry.is_valid_anchor(candidate.element):
                    continue
            result = self._to_result(candidate, profile.source, document.url, chat_title, timestamp)
            if result is not None:
                results.append(result)

        if reconcile:
            self.registry.retain(result.element for result in results)
        stored = set(self.registry.add(results))
        results = [result for result in results if result.data.id in stored]
        logger.info("Detected %d table(s) on %s (%s mode)", len(results), profile.source.value, DetectionMode(mode).value)
        return BatchDetectionResult(
            tables=results, count=len(results), timestamp=timestamp, source=profile.source, chat_title=chat_title
        )

    async def scan(self, document: Document, incremental: bool = False) -> ScanOutcome:
        """Scheduler entry point: an incremental pass or a full validation pass."""
        started = time.perf_counter()
        before = set(self.registry.ids)
        if not incremental:
            self.registry.cleanup()

        result = await self.detect_all(document, skip_registered=incremental, reconcile=not incremental)
        added = [table.data.id for table in result.tables if table.data.id not in before]
        removed = before - set(self.registry.ids)

        outcome = ScanOutcome(
            mode=ScanMode.INCREMENTAL if incremental else ScanMode.FULL,
            found=result.count,
            added=len(added),
            removed=len(removed),
            registry_size=self.registry.count,
            duration_ms=round((time.perf_counter() - started) * 1000, 3),
        )
        logger.info(
            "%s scan: %d found, %d added, %d removed, %d registered",
            outcome.mode.value,
            outcome.found,
            outcome.added,
            outcome.removed,
            outcome.registry_size,
        )
        return outcome


# ─── CLI ─────────────────────────────────────────────────────────────────────


def _table_summary(table: TableDetectionResult) -> dict:
    return {
        "id": table.data.id,
        "path": table.element.path(),
        "headers": table.data.headers,
        "rows": table.data.rows,
    }


async def _detect_file(path: Path, url: str, mode: DetectionMode, explain_only: bool) -> dict:
    # Deferred import: diagnostics builds on this module
    from chat_tables.diagnostics import explain  # pylint: disable=import-outside-toplevel

    document = Document.from_file(path, url=url)
    detector = TableDetector(config=DetectionConfig.from_env(), repair_options=RepairOptions.from_env())
    if explain_only:
        return {"candidates": await explain(document, detector, mode)}
    result = await detector.detect_all(document, mode)
    return {
        "source": result.source.value,
        "chat_title": result.chat_title,
        "count": result.count,
        "tables": [_table_summary(table) for table in result.tables],
    }


def main():
    """Detect tables in a saved HTML page and print them as JSON."""
    parser = argparse.ArgumentParser(description="Detect tables in a saved chat transcript page")
    parser.add_argument("html", type=Path, help="Path to the saved HTML page")
    parser.add_argument("--url", default="", help="URL the page was saved from (selects the platform profile)")
    parser.add_argument("--mode", choices=[mode.value for mode in DetectionMode], default=DetectionMode.AUTO.value)
    parser.add_argument("--explain", action="store_true", help="Print every candidate with its score instead of the tables")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

    output = asyncio.run(_detect_file(args.html, args.url, DetectionMode(args.mode), args.explain))
    print(json.dumps(output, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
