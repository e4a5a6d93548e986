"""Debug surface: candidate reports, mode comparison and visual highlighting.

Nothing here is needed for detection itself.  These helpers answer "why was
this node (not) reported?" and "do the batch and wrapper-aware searches agree
on this page?".  None of them touch the caller's registry.
"""

import logging
import time

from chat_tables.config import DetectionConfig
from chat_tables.detection import DetectionMode, TableDetector
from chat_tables.dom import Document
from chat_tables.filtering import filter_candidates
from chat_tables.registry import BatchRegistry
from chat_tables.repair import analyze_structure
from chat_tables.schema import TableCandidate

logger = logging.getLogger(__name__)

STATUS_ATTRIBUTE = "data-chat-tables-status"

_OUTLINES = {
    "accepted": "outline: 3px solid #2e7d32",
    "rejected": "outline: 2px dashed #c62828",
    "wrapper": "outline: 2px dotted #f9a825",
}


def _status(candidate: TableCandidate, accepted: set, threshold: float) -> tuple[str, str]:
    if candidate.element in accepted:
        return "accepted", ""
    if candidate.is_wrapper:
        return "wrapper", f"wraps {len(candidate.contained_tables)} table(s)"
    if candidate.parsed is None:
        return "rejected", "no parser produced a valid table"
    if candidate.confidence < threshold:
        return "rejected", f"confidence {candidate.confidence:.2f} below {threshold}"
    return "rejected", "duplicate of an earlier candidate"


async def explain(document: Document, detector: TableDetector | None = None, mode: DetectionMode = DetectionMode.AUTO) -> list[dict]:
    """One entry per candidate: where it is, how it scored, and whether it was accepted."""
    config = detector.config if detector is not None else DetectionConfig()
    # Fresh detector so the report never writes to a live registry
    probe = TableDetector(
        registry=BatchRegistry(config),
        config=config,
        repair_options=detector.repair_options if detector is not None else None,
    )
    candidates = await probe.collect_candidates(document, mode)
    accepted = {candidate.element for candidate in filter_candidates(candidates, config)}

    report = []
    for candidate in candidates:
        status, why = _status(candidate, accepted, config.acceptance_threshold)
        report.append(
            {
                "path": candidate.element.path(),
                "tag": candidate.element.tag,
                "format": candidate.parsed.format.value if candidate.parsed is not None else None,
                "confidence": round(candidate.confidence, 4),
                "reason": candidate.reason,
                "is_wrapper": candidate.is_wrapper,
                "contained_tables": len(candidate.contained_tables),
                "structure": analyze_structure(candidate.parsed) if candidate.parsed is not None else None,
                "status": status,
                "why": why,
            }
        )
    logger.info("Explained %d candidates, %d accepted", len(report), len(accepted))
    return report


async def compare_modes(document: Document, config: DetectionConfig | None = None) -> dict:
    """Run the batch and wrapper-aware searches side by side and compare what they accept."""
    config = config or DetectionConfig()
    found: dict[str, list[str]] = {}
    timings: dict[str, float] = {}
    for mode in (DetectionMode.BATCH, DetectionMode.WRAPPER_AWARE):
        probe = TableDetector(registry=BatchRegistry(config), config=config)
        started = time.perf_counter()
        accepted = await probe.accepted_candidates(document, mode)
        timings[mode.value] = round((time.perf_counter() - started) * 1000, 3)
        found[mode.value] = [candidate.element.path() for candidate in accepted]

    batch = set(found[DetectionMode.BATCH.value])
    wrapper_aware = set(found[DetectionMode.WRAPPER_AWARE.value])
    comparison = {
        "found": found,
        "timings_ms": timings,
        "common": len(batch & wrapper_aware),
        "only_batch": sorted(batch - wrapper_aware),
        "only_wrapper_aware": sorted(wrapper_aware - batch),
    }
    logger.info(
        "Mode comparison: batch=%d, wrapper_aware=%d, common=%d",
        len(batch),
        len(wrapper_aware),
        comparison["common"],
    )
    return comparison


def highlight(document: Document, report: list[dict]) -> str:
    """Return the page HTML with every reported candidate tagged and outlined by status."""
    marked = document.copy()
    for entry in report:
        node = marked.find_by_path(entry["path"])
        if node is None:
            logger.debug("Report path %s not found in copy", entry["path"])
            continue
        status = entry["status"]
        node.element[STATUS_ATTRIBUTE] = status
        style = node.get("style").rstrip("; ")
        node.element["style"] = f"{style}; {_OUTLINES[status]}" if style else _OUTLINES[status]
    return marked.html()
