"""Unit tests for cell text cleaning."""

# pylint: disable=missing-class-docstring,missing-function-docstring

from chat_tables.cleaning import (
    clean_cell,
    normalize_for_compare,
    normalize_whitespace,
    replace_smart_chars,
    strip_bom,
    strip_markdown,
)


class TestNormalizeWhitespace:

    def test_collapses_runs(self):
        assert normalize_whitespace("  a \n b\t c ") == "a b c"

    def test_empty(self):
        assert normalize_whitespace("") == ""


class TestReplaceSmartChars:

    def test_quotes_dashes_ellipsis(self):
        assert replace_smart_chars("\u201chi\u201d \u2014 it\u2019s\u2026") == "\"hi\" - it's..."

    def test_non_breaking_space(self):
        assert replace_smart_chars("a\u00a0b") == "a b"


class TestStripBom:

    def test_leading_bom(self):
        assert strip_bom("\ufeffabc") == "abc"

    def test_no_bom(self):
        assert strip_bom("abc") == "abc"


class TestStripMarkdown:

    def test_bold_and_code(self):
        assert strip_markdown("**bold** and `code`") == "bold and code"

    def test_underscore_bold(self):
        assert strip_markdown("__bold__") == "bold"

    def test_strikethrough(self):
        assert strip_markdown("~~old~~") == "old"

    def test_link(self):
        assert strip_markdown("[docs](https://example.com/x)") == "docs"

    def test_italic(self):
        assert strip_markdown("*note*") == "note"

    def test_snake_case_untouched(self):
        assert strip_markdown("snake_case_name") == "snake_case_name"

    def test_arithmetic_untouched(self):
        assert strip_markdown("2*3*4") == "2*3*4"

    def test_escaped_pipe(self):
        assert strip_markdown("a \\| b") == "a | b"


class TestCleanCell:

    def test_full_cleanup(self):
        assert clean_cell("  **Total**\u00a0 ") == "Total"

    def test_keep_markdown(self):
        assert clean_cell("**x**", strip_md=False) == "**x**"

    def test_empty(self):
        assert clean_cell("") == ""

    def test_bom_and_smart_quotes(self):
        assert clean_cell("\ufeff\u201cQuoted\u201d") == '"Quoted"'


class TestNormalizeForCompare:

    def test_prefix_lowercase(self):
        assert normalize_for_compare("  Hello   World ", 5) == "hello"

    def test_default_limit(self):
        assert len(normalize_for_compare("x" * 500)) == 100
