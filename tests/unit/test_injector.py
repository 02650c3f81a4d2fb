"""Unit tests for program and style injection."""

import pytest

from pagepicker.capture.injector import (
    escape_program_source,
    inject,
    insert_early,
    script_element,
    stamp_base_url,
)
from pagepicker.markers import NAVIGATION_SCRIPT_ID, SELECTION_SCRIPT_ID
from pagepicker.sandbox import build_navigation_program, build_selection_program, build_styles


NAV_TAG = f'<script id="{NAVIGATION_SCRIPT_ID}">'
SEL_TAG = f'<script id="{SELECTION_SCRIPT_ID}">'


class TestEscaping:
    """Tests for program source escaping."""

    def test_script_close_escaped(self):
        assert escape_program_source("var a = '</script>';") == "var a = '<\\/script>';"

    def test_script_close_case_preserved(self):
        assert escape_program_source("</SCRIPT>") == "<\\/SCRIPT>"

    def test_comment_delimiters_escaped(self):
        assert escape_program_source("<!-- x -->") == "<\\!-- x --\\>"

    def test_plain_source_unchanged(self):
        source = "const a = 1 < 2 && 3 > 2;"
        assert escape_program_source(source) == source

    def test_script_element_cannot_close_early(self):
        element = script_element("alert('</script><img src=x>')", "custom-id")
        assert element.startswith('<script id="custom-id">')
        assert element.lower().count("</script") == 1
        assert element.endswith("</script>")


class TestInsertionAnchors:
    """Tests for anchor selection when inserting the fragment."""

    @pytest.mark.parametrize("html,expected", [
        ("<!DOCTYPE html><html><head></head></html>", "<!DOCTYPE html>F<html><head></head></html>"),
        ('<html lang="en"><head></head></html>', '<html lang="en">F<head></head></html>'),
        ("<head><title>t</title></head><body></body>", "<head><title>t</title>F</head><body></body>"),
        ('<head class="h"><title>t</title>', '<head class="h">F<title>t</title>'),
        ("<body><p>x</p></body>", "<body>F<p>x</p></body>"),
        ("<p>x</p></body>", "<p>x</p>F</body>"),
        ("<p>fragment only</p>", "F<p>fragment only</p>"),
        ("", "F"),
    ])
    def test_anchor_preference(self, html, expected):
        assert insert_early(html, "F") == expected

    def test_header_tag_is_not_head(self):
        assert insert_early("<header>x</header>", "F") == "F<header>x</header>"


class TestBaseUrlStamping:
    """Tests for the addressing attribute on html and body."""

    def test_stamps_html_and_body(self):
        result = stamp_base_url("<html><body>x</body></html>", "https://example.com/a")
        assert result == (
            '<html data-base-url="https://example.com/a">'
            '<body data-base-url="https://example.com/a">x</body></html>'
        )

    def test_value_is_escaped(self):
        result = stamp_base_url("<body>", 'https://example.com/?q="x"&y=<1>')
        assert result == '<body data-base-url="https://example.com/?q=&quot;x&quot;&amp;y=&lt;1&gt;">'

    def test_existing_attribute_kept(self):
        html = '<html data-base-url="https://old.example/"><body class="b">'
        result = stamp_base_url(html, "https://new.example/")
        assert result == '<html data-base-url="https://old.example/"><body data-base-url="https://new.example/" class="b">'

    def test_idempotent(self):
        once = stamp_base_url("<html><body></body></html>", "https://example.com/")
        assert stamp_base_url(once, "https://example.com/") == once

    def test_missing_tags(self):
        assert stamp_base_url("<p>x</p>", "https://example.com/") == "<p>x</p>"


class TestInject:
    """Tests for the full injection step."""

    def test_order_and_position(self):
        html = "<!DOCTYPE html><html><head><title>t</title></head><body>x</body></html>"
        result = inject(html, "selection();", "navigation();", "<style>s</style>", "https://example.com/")

        assert result.startswith("<!DOCTYPE html><style>s</style>" + NAV_TAG)
        assert result.index(NAV_TAG) < result.index(SEL_TAG)
        assert result.index(SEL_TAG) < result.index("<html")

    def test_stamps_base_url(self):
        result = inject("<html><body>x</body></html>", "s();", "n();", "", "https://example.com/p")
        assert '<html data-base-url="https://example.com/p">' in result
        assert '<body data-base-url="https://example.com/p">' in result

    def test_hostile_program_text_contained(self):
        result = inject("<body></body>", "a('</script><!--');", "b('-->');", "", "https://example.com/")
        assert result.lower().count("</script") == 2
        assert "<!--" not in result
        assert "-->" not in result

    def test_real_programs(self):
        base_url = "https://example.com/shop"
        result = inject(
            "<html><head></head><body><p>x</p></body></html>",
            build_selection_program(),
            build_navigation_program(base_url),
            build_styles(),
            base_url,
        )
        assert result.count(NAV_TAG) == 1
        assert result.count(SEL_TAG) == 1
        assert result.lower().count("</script") == 2
        assert result.index(NAV_TAG) < result.index(SEL_TAG)
        assert '"https://example.com/shop"' in result
