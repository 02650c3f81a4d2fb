"""Injection of the client programs and overlay styles into a sanitized page.

All escaping of program text happens here: whatever a program contains, the
emitted ``<script>`` element cannot be closed early and cannot open or close
an HTML comment.
"""

import html as html_lib
import logging
import re
from typing import Union

from ..markers import BASE_URL_ATTRIBUTE, NAVIGATION_SCRIPT_ID, SELECTION_SCRIPT_ID
from ..sandbox.blocks import ClientProgram

logger = logging.getLogger(__name__)


ProgramSource = Union[ClientProgram, str]

_SCRIPT_CLOSE_RE = re.compile(r"</(script)", re.IGNORECASE)

# Insertion anchors in order of preference: (pattern, insert after match)
_ANCHORS = (
    (re.compile(r"<!doctype[^>]*>", re.IGNORECASE), True),
    (re.compile(r"<html(?=[\s>])[^>]*>", re.IGNORECASE), True),
    (re.compile(r"</head\s*>", re.IGNORECASE), False),
    (re.compile(r"<head(?=[\s>])[^>]*>", re.IGNORECASE), True),
    (re.compile(r"<body(?=[\s>])[^>]*>", re.IGNORECASE), True),
    (re.compile(r"</body\s*>", re.IGNORECASE), False),
)

_STAMPED_TAGS = (
    re.compile(r"<html(?=[\s>])[^>]*>", re.IGNORECASE),
    re.compile(r"<body(?=[\s>])[^>]*>", re.IGNORECASE),
)


def escape_program_source(source: str) -> str:
    """Escape program text for embedding in a ``<script>`` element."""
    escaped = _SCRIPT_CLOSE_RE.sub(lambda m: "<\\/" + m.group(1), source)
    escaped = escaped.replace("<!--", "<\\!--")
    return escaped.replace("-->", "--\\>")


def script_element(program: ProgramSource, script_id: str) -> str:
    source = program.render() if isinstance(program, ClientProgram) else str(program)
    return f'<script id="{script_id}">{escape_program_source(source)}</script>'


def stamp_base_url(html: str, base_url: str) -> str:
    """Add ``data-base-url`` to the ``<html>`` and ``<body>`` start tags.

    Tags that already carry the attribute are left alone.
    """
    attribute = f' {BASE_URL_ATTRIBUTE}="{html_lib.escape(base_url, quote=True)}"'

    def add_attribute(match: re.Match) -> str:
        tag = match.group(0)
        if BASE_URL_ATTRIBUTE in tag.lower():
            return tag
        # "<html" and "<body" are both five characters long
        return tag[:5] + attribute + tag[5:]

    for pattern in _STAMPED_TAGS:
        html = pattern.sub(add_attribute, html, count=1)
    return html


def insert_early(html: str, fragment: str) -> str:
    """Insert ``fragment`` at the earliest available anchor in the document."""
    for pattern, after in _ANCHORS:
        match = pattern.search(html)
        if not match:
            continue
        position = match.end() if after else match.start()
        logger.debug(f"Injecting at anchor {pattern.pattern!r} (offset {position})")
        return html[:position] + fragment + html[position:]

    logger.debug("No anchor found, prepending injected content")
    return fragment + html


def inject(
    sanitized_html: str,
    selection_program: ProgramSource,
    navigation_program: ProgramSource,
    styles: str,
    base_url: str,
) -> str:
    """Inject styles and both client programs into a sanitized page.

    Args:
        sanitized_html: Output of the sanitizer
        selection_program: Selection program or its rendered source
        navigation_program: Navigation program or its rendered source
        styles: Complete ``<style>`` element for the overlay
        base_url: URL the page was loaded from

    Returns:
        The page with the navigation program ahead of the selection program,
        and the base URL stamped on ``<html>`` and ``<body>``
    """
    fragment = (
        styles
        + script_element(navigation_program, NAVIGATION_SCRIPT_ID)
        + script_element(selection_program, SELECTION_SCRIPT_ID)
    )
    injected = insert_early(sanitized_html or "", fragment)
    return stamp_base_url(injected, base_url)
