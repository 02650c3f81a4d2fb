"""Host-side selector tooling.

Usage:
    from pagepicker.selectors import preview_selector, describe_selector

    preview = preview_selector(html, "li.item")
    descriptor = describe_selector(html, "li.item:nth-of-type(2)")
"""

__all__ = [
    "InferredSelector",
    "infer_selector",
    "describe_element",
    "count_matches",
    "parse_html",
    "preview_selector",
    "describe_selector",
]

from .inference import InferredSelector, infer_selector, describe_element, count_matches, parse_html
from .preview import preview_selector, describe_selector
