"""Unit tests for selector inference and preview."""

import pytest

from pagepicker.errors import InvalidSelectorError
from pagepicker.selectors import (
    count_matches,
    describe_element,
    describe_selector,
    infer_selector,
    parse_html,
    preview_selector,
)
from pagepicker.selectors.inference import element_text, segment_for


def nth(document, selector, index):
    return document.select(selector)[index]


class TestInferSelector:
    """Tests for selector path inference."""

    def test_classed_siblings(self):
        document = parse_html('<ul><li class="item">A</li><li class="item">B</li></ul>')
        descriptor = describe_element(nth(document, "li", 1))

        assert descriptor.selector_path == "li.item:nth-of-type(2)"
        assert descriptor.similar_count == 2
        assert descriptor.similar_selector == "li.item"
        assert descriptor.text == "B"
        assert descriptor.tag_name == "li"

    def test_plain_siblings(self):
        document = parse_html("<ul><li>a</li><li>b</li><li>c</li></ul>")
        target = nth(document, "li", 1)
        descriptor = describe_element(target)

        assert descriptor.selector_path == "li:nth-of-type(2)"
        assert document.select(descriptor.selector_path) == [target]
        assert descriptor.similar_count == 3

    def test_unique_id(self):
        document = parse_html('<div><span id="price">$10</span><span>other</span></div>')
        inferred = infer_selector(document.select_one("#price"))

        assert inferred.selector == "#price"
        assert inferred.similar_selector == "#price"

    def test_duplicate_id_falls_back_to_path(self):
        html = '<html><body><p id="dup">a</p><p id="dup">b</p></body></html>'
        document = parse_html(html)
        target = nth(document, "p", 1)
        inferred = infer_selector(target)

        assert not inferred.selector.startswith("#")
        assert document.select(inferred.selector) == [target]

    def test_anchored_at_ancestor_id(self):
        html = (
            "<html><body>"
            '<div id="main"><p>x</p><p>y</p></div>'
            "<div><p>z</p><p>w</p></div>"
            "</body></html>"
        )
        document = parse_html(html)
        target = document.select("#main p")[1]
        descriptor = describe_element(target)

        assert descriptor.selector_path == "#main > p:nth-of-type(2)"
        assert descriptor.similar_selector == "#main > p"
        assert descriptor.similar_count == 2

    def test_walks_up_until_unique(self):
        html = (
            "<html><body>"
            "<div><span>a</span></div>"
            "<div><span>b</span></div>"
            "</body></html>"
        )
        document = parse_html(html)
        target = nth(document, "span", 1)
        descriptor = describe_element(target)

        assert descriptor.selector_path == "div:nth-of-type(2) > span"
        assert document.select(descriptor.selector_path) == [target]
        assert descriptor.similar_count == 1

    def test_stops_at_body(self):
        html = "<html><body><p>a</p><section><p>b</p></section></body></html>"
        document = parse_html(html)
        target = document.select_one("body > p")
        inferred = infer_selector(target)

        assert inferred.selector == "body > p"
        assert inferred.segments == ["body", "p"]
        assert document.select(inferred.selector) == [target]

    def test_overlay_classes_ignored(self):
        document = parse_html(
            '<nav><a class="menu parser-internal-link-hover" href="/a">A</a>'
            '<b>x</b></nav>'
        )
        assert segment_for(document.select_one("a")) == "a.menu"

    def test_special_class_characters_escaped(self):
        document = parse_html('<div><p class="w-1/2 md:flex">a</p><p>b</p></div>')
        target = document.select_one("p")
        descriptor = describe_element(target)

        assert "\\/" in descriptor.selector_path
        assert document.select(descriptor.selector_path) == [target]


class TestDescribeElement:
    """Tests for element descriptors."""

    def test_attributes_and_text(self):
        document = parse_html(
            '<a class="btn primary" href="/buy" data-sku="A1">  Buy\n   now  </a>'
        )
        descriptor = describe_element(document.select_one("a"))

        assert descriptor.attributes == {"class": "btn primary", "href": "/buy", "data-sku": "A1"}
        assert descriptor.text == "Buy now"
        assert descriptor.classes == ["btn", "primary"]

    def test_text_truncated(self):
        document = parse_html(f"<p>{'word ' * 60}</p>")
        descriptor = describe_element(document.select_one("p"))
        assert len(descriptor.text) == 100

    def test_element_text_collapses_whitespace(self):
        document = parse_html("<div>\n  one <b>two</b>\n\tthree </div>")
        assert element_text(document.select_one("div")) == "one two three"


class TestCountMatches:
    """Tests for match counting."""

    def test_counts(self):
        document = parse_html("<p>a</p><p>b</p>")
        assert count_matches(document, "p") == 2
        assert count_matches(document, "div") == 0

    def test_invalid_selector_counts_zero(self):
        document = parse_html("<p>a</p>")
        assert count_matches(document, "p[") == 0


class TestPreview:
    """Tests for selector preview."""

    HTML = '<ul><li class="item">A</li><li class="item">B</li><li class="item">C</li></ul>'

    def test_preview_matches(self):
        preview = preview_selector(self.HTML, "li.item")

        assert preview.selector == "li.item"
        assert preview.matches == 3
        assert [match.text for match in preview.results] == ["A", "B", "C"]
        assert preview.results[0].html == '<li class="item">A</li>'
        assert preview.results[0].attributes == {"class": "item"}

    def test_preview_limit(self):
        preview = preview_selector(self.HTML, "li", limit=1)
        assert preview.matches == 3
        assert len(preview.results) == 1

    def test_preview_no_limit(self):
        preview = preview_selector(self.HTML, "li", limit=None)
        assert len(preview.results) == 3

    def test_preview_accepts_parsed_document(self):
        preview = preview_selector(parse_html(self.HTML), "li:nth-of-type(2)")
        assert [match.text for match in preview.results] == ["B"]

    def test_preview_invalid_selector(self):
        with pytest.raises(InvalidSelectorError):
            preview_selector(self.HTML, "li[")

    def test_describe_selector(self):
        descriptor = describe_selector(self.HTML, "li.item:nth-of-type(3)")
        assert descriptor.selector_path == "li.item:nth-of-type(3)"
        assert descriptor.text == "C"
        assert descriptor.similar_count == 3

    def test_describe_selector_no_match(self):
        assert describe_selector(self.HTML, "table") is None

    def test_describe_selector_invalid(self):
        with pytest.raises(InvalidSelectorError):
            describe_selector(self.HTML, ":::")
