"""Selector preview over a captured document.

Lets the operator check what a picked (or hand-edited) selector extracts
before saving it, without rendering the page.
"""

import logging
from typing import Optional, Union

import soupsieve
from bs4 import BeautifulSoup

from ..errors import InvalidSelectorError
from ..models.selection import ElementDescriptor, PreviewMatch, SelectorPreview
from .inference import describe_element, element_attributes, element_text, parse_html

logger = logging.getLogger(__name__)


DEFAULT_PREVIEW_LIMIT = 20
MAX_PREVIEW_HTML_LENGTH = 500


def _as_document(html: Union[str, BeautifulSoup]) -> BeautifulSoup:
    return html if isinstance(html, BeautifulSoup) else parse_html(html)


def preview_selector(
    html: Union[str, BeautifulSoup],
    selector: str,
    limit: Optional[int] = DEFAULT_PREVIEW_LIMIT,
) -> SelectorPreview:
    """Run ``selector`` against a document and summarize the matches.

    Args:
        html: Document HTML or an already parsed document
        selector: CSS selector to evaluate
        limit: Maximum number of matches returned in ``results``; None for all

    Returns:
        SelectorPreview with the total match count and the first matches

    Raises:
        InvalidSelectorError: If the selector does not parse
    """
    document = _as_document(html)
    try:
        matched = document.select(selector)
    except (soupsieve.SelectorSyntaxError, ValueError) as e:
        raise InvalidSelectorError(f"Invalid selector '{selector}': {e}") from e

    shown = matched if limit is None else matched[:limit]
    results = [
        PreviewMatch(
            text=element_text(element),
            html=str(element)[:MAX_PREVIEW_HTML_LENGTH],
            attributes=element_attributes(element),
        )
        for element in shown
    ]
    logger.debug(f"Selector {selector!r} matched {len(matched)} elements")
    return SelectorPreview(selector=selector, matches=len(matched), results=results)


def describe_selector(html: Union[str, BeautifulSoup], selector: str) -> Optional[ElementDescriptor]:
    """Describe the first element ``selector`` matches, as a click on it would.

    Raises:
        InvalidSelectorError: If the selector does not parse
    """
    document = _as_document(html)
    try:
        element = document.select_one(selector)
    except (soupsieve.SelectorSyntaxError, ValueError) as e:
        raise InvalidSelectorError(f"Invalid selector '{selector}': {e}") from e
    return describe_element(element) if element is not None else None
