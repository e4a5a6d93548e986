"""Unit tests for platform resolution, candidate search and title extraction."""

# pylint: disable=missing-class-docstring,missing-function-docstring

import asyncio

import pytest

from chat_tables.config import DetectionConfig
from chat_tables.dom import Document
from chat_tables.platforms import (
    CHATGPT,
    CLAUDE,
    DEEPSEEK,
    GEMINI,
    GENERIC,
    detect_source,
    find_candidates,
    find_wrapper_aware_candidates,
    is_div_grid,
    is_pipe_code_block,
    is_pipe_dense_div,
    is_pipe_text_container,
    observation_roots,
    resolve_platform,
)
from chat_tables.schema import AISource
from chat_tables.titles import CHATGPT_TITLES, extract_chat_title, extract_raw_title

CONFIG = DetectionConfig()

TWO_ROW_TABLE = "<table><tr><th>A</th><th>B</th></tr><tr><td>1</td><td>2</td></tr></table>"
ONE_ROW_TABLE = "<table><tr><td>x</td><td>y</td></tr></table>"


def candidates(html: str, profile) -> list:
    return asyncio.run(find_candidates(Document(html), profile, CONFIG))


# ===========================================================================
# Platform resolution
# ===========================================================================


class TestResolvePlatform:

    @pytest.mark.parametrize(
        "url, profile",
        [
            ("https://chatgpt.com/c/123", CHATGPT),
            ("https://chat.openai.com/", CHATGPT),
            ("https://claude.ai/chat/abc", CLAUDE),
            ("https://www.claude.ai/chat/abc", CLAUDE),
            ("gemini.google.com/app", GEMINI),
            ("https://chat.deepseek.com/a/chat/s/1", DEEPSEEK),
            ("https://notclaude.ai/", GENERIC),
            ("https://example.com/", GENERIC),
            ("", GENERIC),
        ],
    )
    def test_resolution(self, url, profile):
        assert resolve_platform(url) is profile

    def test_detect_source(self):
        assert detect_source("https://CLAUDE.AI/chat") == AISource.CLAUDE
        assert detect_source("https://example.com") == AISource.OTHER

    def test_profile_titles(self):
        assert CHATGPT.titles is CHATGPT_TITLES


# ===========================================================================
# Predicates
# ===========================================================================


class TestPredicates:

    def test_pipe_code_block(self):
        assert is_pipe_code_block(Document("<pre>| A | B |\n| 1 | 2 |</pre>").select_one("pre")) is True

    def test_code_without_table(self):
        assert is_pipe_code_block(Document("<pre>x = a | b</pre>").select_one("pre")) is False

    def test_pipe_text_container(self):
        node = Document("<p>| Name | Score |<br>| Alice | 90 |</p>").select_one("p")
        assert is_pipe_text_container(node) is True

    def test_pipe_text_container_single_char_cells(self):
        node = Document("<p>| a | b |<br>| c | d |<br>| e | f |</p>").select_one("p")
        assert is_pipe_text_container(node) is False

    def test_div_grid(self):
        node = Document(
            "<div id='g'><div><span>City</span><span>Pop</span></div><div><span>Oslo</span><span>700k</span></div></div>"
        ).select_one("#g")
        assert is_div_grid(node) is True

    def test_div_grid_with_table_inside(self):
        node = Document(f"<div id='g'><div><span>a</span><span>b</span></div><div>{TWO_ROW_TABLE}</div></div>").select_one("#g")
        assert is_div_grid(node) is False

    def test_pipe_dense_div(self):
        node = Document(
            "<div>| Region | Revenue |<br>| --- | --- |<br>| North | 120 |<br>| South | 95 |</div>"
        ).select_one("div")
        assert is_pipe_dense_div(node) is True

    def test_pipe_sparse_div(self):
        prose = "Some long explanation of the numbers. " * 3
        node = Document(f"<div>{prose}<br>| a | b |<br>{prose}<br>{prose}</div>").select_one("div")
        assert is_pipe_dense_div(node) is False


# ===========================================================================
# Candidate search
# ===========================================================================


class TestFindCandidates:

    def test_chatgpt_response(self):
        html = (
            '<div data-message-author-role="user">' + TWO_ROW_TABLE + "</div>"
            '<div data-message-author-role="assistant"><div class="markdown">'
            + TWO_ROW_TABLE
            + "<pre>| a | b |\n| 1 | 2 |</pre>"
            + "<p>| Name | Score |<br>| Alice | 90 |</p>"
            + "</div></div>"
        )
        found = candidates(html, CHATGPT)
        assert [node.tag for node in found] == ["table", "pre", "p"]
        assert all(node.ancestors()[-3].get("data-message-author-role") == "assistant" for node in found)

    def test_hidden_and_ui_tables_skipped(self):
        html = (
            '<div data-message-author-role="assistant">'
            f'<div style="display:none">{TWO_ROW_TABLE}</div>'
            f'<div class="chat-tables-preview">{TWO_ROW_TABLE}</div>'
            "</div>"
        )
        assert candidates(html, CHATGPT) == []

    def test_fallback_scans_whole_document(self):
        found = candidates(f"<section>{ONE_ROW_TABLE}</section>", CHATGPT)
        assert [node.tag for node in found] == ["table"]

    def test_claude_text_needs_pipes(self):
        html = '<div class="prose"><p>No tables here, just a long answer about the weather.</p></div>'
        assert candidates(html, CLAUDE) == []

    def test_claude_pipe_text(self):
        html = '<div class="prose"><p>| Name | Score |<br>| Alice | 90 |<br>| Bob | 85 |</p></div>'
        found = candidates(html, CLAUDE)
        assert [node.tag for node in found] == ["p"]

    def test_gemini_div_grid(self):
        html = (
            '<div class="model-response"><div class="grid">'
            "<div><span>City</span><span>Pop</span></div>"
            "<div><span>Oslo</span><span>700k</span></div>"
            "</div></div>"
        )
        found = candidates(html, GEMINI)
        assert [node.get("class") for node in found] == ["grid"]

    def test_generic_requires_two_rows(self):
        html = f"<div id='a'>{ONE_ROW_TABLE}</div><div id='b'>{TWO_ROW_TABLE}</div>"
        found = candidates(html, GENERIC)
        assert len(found) == 1
        assert found[0].parent.element_id == "b"

    def test_wrapper_aware_collects_containers(self):
        doc = Document(f"<div id='wrap'><p>Intro</p>{TWO_ROW_TABLE}</div>")
        found = asyncio.run(find_wrapper_aware_candidates(doc, CONFIG))
        assert [node.tag for node in found] == ["table", "div"]


class TestObservationRoots:

    def test_profile_selectors(self):
        doc = Document("<main><div class='conversation-1'><p>a</p></div></main>")
        assert [node.tag for node in observation_roots(doc, CHATGPT)] == ["main"]

    def test_fallback_to_main(self):
        doc = Document("<main><p>a</p></main>")
        assert [node.tag for node in observation_roots(doc, GENERIC)] == ["main"]

    def test_fallback_to_body(self):
        doc = Document("<div><p>a</p></div>")
        assert [node.tag for node in observation_roots(doc, CLAUDE)] == ["body"]


# ===========================================================================
# Titles
# ===========================================================================


class TestTitles:

    def test_chatgpt_nav(self):
        doc = Document('<nav><a class="active">Quarterly revenue</a></nav>')
        assert extract_chat_title(doc, AISource.CHATGPT) == "Quarterly_revenue"

    def test_chatgpt_new_chat_skipped_for_first_message(self):
        doc = Document(
            '<nav><a class="active">New chat</a></nav>'
            '<div data-message-author-role="user">Compare sorting algorithms</div>'
        )
        assert extract_chat_title(doc, AISource.CHATGPT) == "Compare_sorting_algorithms"

    def test_first_message_truncated(self):
        message = "Please build a table of every planet with mass and radius"
        doc = Document(f'<div data-message-author-role="user">{message}</div>')
        assert extract_raw_title(doc, CHATGPT_TITLES) == message[:50].strip()

    def test_short_first_message_ignored(self):
        doc = Document('<div data-message-author-role="user">hi</div>')
        assert extract_chat_title(doc, AISource.CHATGPT) == "ChatGPT_Conversation"

    def test_page_title_suffix_stripped(self):
        doc = Document("<html><head><title>Budget plan - ChatGPT</title></head><body></body></html>")
        assert extract_chat_title(doc, AISource.CHATGPT) == "Budget_plan"

    def test_platform_name_title_ignored(self):
        doc = Document("<html><head><title>ChatGPT</title></head><body></body></html>")
        assert extract_chat_title(doc, AISource.CHATGPT) == "ChatGPT_Conversation"

    def test_overlong_selector_hit_skipped(self):
        doc = Document(f"<nav><a class='active'>{'x' * 120}</a></nav><title>Short - ChatGPT</title>")
        assert extract_chat_title(doc, AISource.CHATGPT) == "Short"

    def test_deepseek_meta(self):
        doc = Document(
            '<html><head><meta property="og:title" content="Travel itinerary - DeepSeek"></head>'
            "<body><h1>New chat</h1></body></html>"
        )
        assert extract_chat_title(doc, AISource.DEEPSEEK) == "Travel_itinerary"

    def test_generic_heading(self):
        assert extract_chat_title(Document("<h1>Release notes</h1>"), AISource.OTHER) == "Release_notes"

    def test_generic_default(self):
        assert extract_chat_title(Document("<p>a</p>"), AISource.OTHER) == "Chat"
