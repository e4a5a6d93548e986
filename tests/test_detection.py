"""End-to-end tests for detection passes over small synthetic transcripts."""

# pylint: disable=missing-class-docstring,missing-function-docstring

import asyncio
import re
from unittest.mock import AsyncMock, patch

from chat_tables.detection import DetectionMode, TableDetector, make_table_id
from chat_tables.dom import Document, Node
from chat_tables.parsers import HtmlTableParser
from chat_tables.schema import AISource, ScanMode, TableFormat

ID_RE = re.compile(r"^table_\d+_\d+_[0-9a-f]{8}_\d+$")

PEOPLE_TABLE = (
    "<table><thead><tr><th>Name</th><th>Age</th></tr></thead>"
    "<tbody><tr><td>Alice</td><td>30</td></tr><tr><td>Bob</td><td>25</td></tr></tbody></table>"
)
CITY_TABLE = (
    "<table><tr><th>City</th><th>Country</th></tr>"
    "<tr><td>Oslo</td><td>Norway</td></tr><tr><td>Lima</td><td>Peru</td></tr></table>"
)


def detect(html: str, url: str, mode: DetectionMode = DetectionMode.AUTO, detector: TableDetector | None = None):
    document = Document(html, url=url)
    detector = detector or TableDetector()
    return document, detector, asyncio.run(detector.detect_all(document, mode))


def assert_no_nested_anchors(detector: TableDetector) -> None:
    anchors = [result.element for result in detector.registry.get_all()]
    for first in anchors:
        for second in anchors:
            if first != second:
                assert not first.contains(second)


# ===========================================================================
# Platforms
# ===========================================================================


class TestPlatformScenarios:

    def test_chatgpt_markdown_code_block(self):
        html = (
            "<html><head><title>Model comparison - ChatGPT</title></head><body>"
            '<div data-message-author-role="assistant"><div class="markdown">'
            "<pre><code>| Model | Score |\n|---|---|\n| alpha | 91 |\n| beta | 87 |</code></pre>"
            "</div></div></body></html>"
        )
        _, _, result = detect(html, "https://chatgpt.com/c/1")
        assert result.count == 1
        assert result.source == AISource.CHATGPT
        assert result.chat_title == "Model_comparison"
        table = result.tables[0]
        assert table.data.headers == ["Model", "Score"]
        assert table.data.rows == [["alpha", "91"], ["beta", "87"]]
        assert table.element.tag == "code"

    def test_claude_wrapper_yields_single_table(self):
        html = f'<div class="prose"><div id="wrap"><p>Here are the results:</p>{PEOPLE_TABLE}</div></div>'
        _, detector, result = detect(html, "https://claude.ai/chat/1")
        assert result.count == 1
        assert result.tables[0].element.tag == "table"
        assert result.tables[0].data.rows == [["Alice", "30"], ["Bob", "25"]]
        assert_no_nested_anchors(detector)

    def test_claude_falls_back_to_batch(self):
        html = '<div class="prose"><p>| Name | Score |<br>| Alice | 90 |<br>| Bob | 85 |<br>| Carol | 77 |</p></div>'
        detector = TableDetector()
        with patch.object(detector, "_wrapper_aware_candidates", AsyncMock(return_value=[])):
            _, _, result = detect(html, "https://claude.ai/chat/1", detector=detector)
        assert result.count == 1
        assert result.tables[0].element.tag == "p"
        assert result.tables[0].data.headers == ["Name", "Score"]

    def test_gemini_div_grid(self):
        html = (
            '<div class="model-response"><div class="grid">'
            "<div><span>City</span><span>Pop</span></div>"
            "<div><span>Oslo</span><span>700k</span></div>"
            "<div><span>Bergen</span><span>285k</span></div>"
            "</div></div>"
        )
        _, _, result = detect(html, "https://gemini.google.com/app/1")
        assert result.count == 1
        assert result.tables[0].data.headers == ["City", "Pop"]

    def test_generic_markup_table(self):
        _, _, result = detect(f"<div id='chat'>{PEOPLE_TABLE}</div>", "https://example.com/chat")
        assert result.source == AISource.OTHER
        assert result.count == 1
        assert ID_RE.match(result.tables[0].data.id)

    def test_hybrid_merges_without_duplicates(self):
        html = f'<div data-message-author-role="assistant"><div class="markdown">{PEOPLE_TABLE}</div></div>'
        _, _, result = detect(html, "https://chatgpt.com/c/1", DetectionMode.HYBRID)
        assert result.count == 1

    def test_no_tables(self):
        _, _, result = detect("<p>Just a plain answer.</p>", "https://chatgpt.com/c/1")
        assert result.count == 0
        assert result.tables == []


# ===========================================================================
# Registry interaction
# ===========================================================================


class TestRegistryInteraction:

    def test_repeated_pass_is_idempotent(self):
        document, detector, first = detect(f"{PEOPLE_TABLE}{CITY_TABLE}", "https://example.com")
        second = asyncio.run(detector.detect_all(document))
        assert [t.data.id for t in first.tables] == [t.data.id for t in second.tables]
        assert detector.registry.count == 2

    def test_skip_registered(self):
        document, detector, _ = detect(PEOPLE_TABLE, "https://example.com")
        again = asyncio.run(detector.detect_all(document, skip_registered=True))
        assert again.count == 0
        assert detector.registry.count == 1

    def test_table_id_format(self):
        node = Document(PEOPLE_TABLE).select_one("table")
        assert ID_RE.match(make_table_id(node, 1700000000000))

    def test_table_id_changes_with_content(self):
        doc = Document(f"<div>{PEOPLE_TABLE}</div><div>{CITY_TABLE}</div>")
        first, second = doc.find_all("table")
        assert make_table_id(first, 1).split("_")[3] != make_table_id(second, 1).split("_")[3]


# ===========================================================================
# Failure containment
# ===========================================================================


class BoomParser:
    format = TableFormat.TEXT

    def can_parse(self, node: Node) -> bool:
        raise RuntimeError(f"cannot inspect {node.tag}")

    def parse(self, node: Node):
        raise AssertionError("never reached")


class TestFailureContainment:

    def test_failing_parser_skipped(self):
        detector = TableDetector(parsers=[BoomParser(), HtmlTableParser()])
        _, _, result = detect(PEOPLE_TABLE, "https://example.com", detector=detector)
        assert result.count == 1

    def test_candidate_search_failure_gives_empty_pass(self):
        with patch("chat_tables.detection.find_candidates", side_effect=RuntimeError("selector engine down")):
            _, detector, result = detect(PEOPLE_TABLE, "https://example.com")
        assert result.count == 0
        assert detector.registry.count == 0

    def test_validation_rejection(self):
        html = "<table><tr><th>Name</th><th>---</th></tr><tr><td>a</td><td>b</td></tr></table>"
        _, _, result = detect(html, "https://example.com")
        assert result.count == 0


# ===========================================================================
# Scheduler scans
# ===========================================================================


class TestScan:

    def test_full_then_incremental_then_full(self):
        document = Document(f"<div id='chat'>{PEOPLE_TABLE}</div>", url="https://example.com")
        detector = TableDetector()

        first = asyncio.run(detector.scan(document))
        assert first.mode == ScanMode.FULL
        assert (first.found, first.added, first.removed, first.registry_size) == (1, 1, 0, 1)

        document.insert_html(document.select_one("#chat"), CITY_TABLE)
        second = asyncio.run(detector.scan(document, incremental=True))
        assert second.mode == ScanMode.INCREMENTAL
        assert (second.found, second.added, second.registry_size) == (1, 1, 2)

        document.remove(document.find_all("table")[0])
        third = asyncio.run(detector.scan(document))
        assert (third.found, third.added, third.removed, third.registry_size) == (1, 0, 1, 1)

    def test_full_scan_replaces_stale_text_entry_with_inner_table(self):
        pipe_text = "| Name | Score |<br>| Alice | 90 |<br>| Bob | 85 |<br>| Carol | 77 |<br>| Dave | 64 |"
        document = Document(f"<div id='w'>{pipe_text}</div>", url="https://example.com")
        detector = TableDetector()

        first = asyncio.run(detector.scan(document))
        assert first.found == 1
        assert [(table.element.tag, table.element.get("id")) for table in detector.registry.get_all()] == [("div", "w")]

        wrapper = document.select_one("#w")
        wrapper.element.clear()
        document.insert_html(wrapper, f"<p>Results below</p>{CITY_TABLE}")
        second = asyncio.run(detector.scan(document))
        assert (second.found, second.added, second.removed, second.registry_size) == (1, 1, 1, 1)
        assert [table.element.tag for table in detector.registry.get_all()] == ["table"]
        assert_no_nested_anchors(detector)

    def test_failed_full_scan_keeps_entries(self):
        document = Document(f"<div id='chat'>{PEOPLE_TABLE}</div>", url="https://example.com")
        detector = TableDetector()
        asyncio.run(detector.scan(document))
        with patch("chat_tables.detection.find_candidates", side_effect=RuntimeError("selector engine down")):
            outcome = asyncio.run(detector.scan(document))
        assert outcome.removed == 0
        assert detector.registry.count == 1
