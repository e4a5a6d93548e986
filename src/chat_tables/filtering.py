"""Wrapper detection and duplicate removal over one pass's scored candidates.

A wrapper is a candidate whose subtree already holds a table that will be (or
has been) reported on its own: another parsed candidate, a native table with
at least two rows, or a code block carrying a pipe table.  Wrappers are forced
to the wrapper confidence and always discarded.  Survivors above the
acceptance threshold are then deduplicated pairwise, keeping the earlier one.
"""

import logging

from chat_tables.classifiers import pipe_table_lines
from chat_tables.cleaning import normalize_for_compare
from chat_tables.config import DetectionConfig
from chat_tables.dom import Node
from chat_tables.schema import TableCandidate

logger = logging.getLogger(__name__)


def contained_tables(node: Node, others: list[Node]) -> list[Node]:
    """Return the table-bearing descendants of *node* (strict containment only)."""
    found: list[Node] = [other for other in others if other != node and node.contains(other)]
    for table in node.find_all("table"):
        if table not in found and table.is_visible() and len(table.find_all("tr")) >= 2:
            found.append(table)
    for block in node.find_all(("pre", "code")):
        if block not in found and len(pipe_table_lines(block.text)) >= 2:
            found.append(block)
    return found


def mark_wrappers(candidates: list[TableCandidate], config: DetectionConfig) -> list[TableCandidate]:
    """Flag every candidate that wraps another table and drop its confidence to the wrapper score."""
    parsed_nodes = [candidate.element for candidate in candidates if candidate.parsed is not None]
    for candidate in candidates:
        inner = contained_tables(candidate.element, parsed_nodes)
        if inner:
            candidate.is_wrapper = True
            candidate.contained_tables = inner
            candidate.confidence = config.wrapper_confidence
            candidate.reason = f"wrapper around {len(inner)} table(s)"
            logger.debug("Marked %s as wrapper of %d table(s)", candidate.element, len(inner))
    return candidates


def is_duplicate(first: Node, second: Node, config: DetectionConfig) -> bool:
    """Same node, nested nodes, or identical leading content."""
    if first == second or first.contains(second) or second.contains(first):
        return True
    text_a = first.text.strip()
    text_b = second.text.strip()
    if len(text_a) <= config.duplicate_min_chars or len(text_b) <= config.duplicate_min_chars:
        return False
    prefix = config.duplicate_prefix_chars
    return normalize_for_compare(text_a, prefix) == normalize_for_compare(text_b, prefix)


def deduplicate(candidates: list[TableCandidate], config: DetectionConfig) -> list[TableCandidate]:
    """Drop every candidate that duplicates an earlier one."""
    kept: list[TableCandidate] = []
    for candidate in candidates:
        if any(is_duplicate(previous.element, candidate.element, config) for previous in kept):
            logger.debug("Dropped duplicate candidate %s", candidate.element)
            continue
        kept.append(candidate)
    return kept


def filter_candidates(candidates: list[TableCandidate], config: DetectionConfig) -> list[TableCandidate]:
    """Mark wrappers, drop wrappers and low scorers, then deduplicate."""
    mark_wrappers(candidates, config)
    accepted = [
        candidate
        for candidate in candidates
        if candidate.parsed is not None and not candidate.is_wrapper and candidate.confidence >= config.acceptance_threshold
    ]
    result = deduplicate(accepted, config)
    logger.debug(
        "Filtered %d candidates: %d wrappers, %d accepted after dedup",
        len(candidates),
        sum(1 for candidate in candidates if candidate.is_wrapper),
        len(result),
    )
    return result
