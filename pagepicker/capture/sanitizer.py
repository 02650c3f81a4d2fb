"""HTML sanitization for captured pages.

Strips everything that could execute inside the sandbox before the page is
re-rendered: script elements (including malformed and unterminated ones),
inline event-handler attributes, handler-like payloads hidden in ``data-*``
attributes, ``srcdoc`` documents, ``<noscript>`` fallbacks and
``javascript:`` URLs (entity-encoded ones included). Also removes
the addressing attribute and overlay styles a previous injection added, so a
cached final page can be processed again.

The rewriting is pattern based: input is untrusted and frequently malformed,
and no DOM is available at this stage.
"""

import html as html_lib
import logging
import re

from ..markers import BASE_URL_ATTRIBUTE, SELECTION_STYLES_ID

logger = logging.getLogger(__name__)


SCRIPT_MARKER = "<!-- removed script -->"
SCRIPT_TAG_MARKER = "<!-- removed script tag -->"
NOSCRIPT_MARKER = "<!-- removed noscript -->"

_SCRIPT_OPEN = r"<script(?=[\s/>]|$)"

_PAIRED_SCRIPT_RE = re.compile(_SCRIPT_OPEN + r"[^>]*>.*?</script\s*>", re.IGNORECASE | re.DOTALL)
_SELF_CLOSING_SCRIPT_RE = re.compile(_SCRIPT_OPEN + r"[^>]*/\s*>", re.IGNORECASE)
_UNTERMINATED_SCRIPT_RE = re.compile(_SCRIPT_OPEN + r".*\Z", re.IGNORECASE | re.DOTALL)
_SCRIPT_OPEN_RE = re.compile(_SCRIPT_OPEN, re.IGNORECASE)
_STRAY_SCRIPT_CLOSE_RE = re.compile(r"</script\s*>", re.IGNORECASE)

_NOSCRIPT_BLOCK_RE = re.compile(r"<noscript\b[^>]*>.*?</noscript\s*>", re.IGNORECASE | re.DOTALL)
_NOSCRIPT_TAG_RE = re.compile(r"</?noscript\b[^>]*>", re.IGNORECASE)

_SELECTION_STYLES_RE = re.compile(
    r"<style\b[^>]*\bid\s*=\s*[\"']?" + SELECTION_STYLES_ID + r"[\"']?[^>]*>.*?</style\s*>",
    re.IGNORECASE | re.DOTALL,
)

# Start tags, allowing '>' inside quoted attribute values
_START_TAG_RE = re.compile(r"<[a-zA-Z][^\s/>]*(?:\"[^\"]*\"|'[^']*'|[^'\">])*>")
_TAG_NAME_RE = re.compile(r"<[^\s/>]*")

# One attribute with its leading whitespace and optional value
_ATTRIBUTE_RE = re.compile(r"(\s*)([^\s\"'>/=]+)(\s*=\s*(\"[^\"]*\"|'[^']*'|[^\s\"'>]+))?")

_HANDLER_NAME_RE = re.compile(
    r"on(?:click|mouse[a-z]*|touch[a-z]*|load|error|change|submit|focus|blur"
    r"|key[a-z]*|dblclick|contextmenu|wheel|scroll|resize)",
    re.IGNORECASE,
)

_HANDLER_LIKE_VALUE_RE = re.compile(
    r"addEventListener|javascript|\bon[a-z]+\s*[=(]|\b" + _HANDLER_NAME_RE.pattern + r"\b",
    re.IGNORECASE,
)

_URL_ATTRIBUTES = frozenset({"href", "xlink:href", "src", "action", "formaction", "data"})
# Attributes holding whole documents the browser renders with scripts enabled
_DOCUMENT_ATTRIBUTES = frozenset({"srcdoc"})
_IGNORED_URL_CHARS_RE = re.compile(r"[\s\x00-\x1f]")

_MAX_PASSES = 8


def sanitize(html: str) -> str:
    """Remove executable and event-driven content from raw HTML.

    Args:
        html: HTML as fetched from the network or the page cache

    Returns:
        HTML that carries no scripts, inline handlers or ``javascript:`` URLs.
        Sanitizing the result again returns it unchanged.
    """
    if not html:
        return html or ""

    cleaned = html
    # One removal can splice the text around it into a new construct
    for _ in range(_MAX_PASSES):
        previous, cleaned = cleaned, _sanitize_once(cleaned)
        if cleaned == previous:
            break
    else:
        logger.warning(f"Sanitized HTML still changing after {_MAX_PASSES} passes")

    logger.debug(f"Sanitized HTML: {len(html)} -> {len(cleaned)} chars")
    return cleaned


def _sanitize_once(html: str) -> str:
    cleaned = _SELECTION_STYLES_RE.sub("", html)
    cleaned = remove_scripts(cleaned)
    cleaned = _NOSCRIPT_BLOCK_RE.sub(NOSCRIPT_MARKER, cleaned)
    cleaned = _NOSCRIPT_TAG_RE.sub(NOSCRIPT_MARKER, cleaned)
    return _START_TAG_RE.sub(_clean_start_tag, cleaned)


def remove_scripts(html: str) -> str:
    """Replace every script element, well-formed or not, with a comment marker."""
    cleaned = _PAIRED_SCRIPT_RE.sub(SCRIPT_MARKER, html)
    cleaned = _SELF_CLOSING_SCRIPT_RE.sub(SCRIPT_TAG_MARKER, cleaned)
    # Browsers treat everything after an unclosed <script> as script text
    cleaned = _UNTERMINATED_SCRIPT_RE.sub(SCRIPT_MARKER, cleaned)
    return _STRAY_SCRIPT_CLOSE_RE.sub(SCRIPT_TAG_MARKER, cleaned)


def _clean_start_tag(match: re.Match) -> str:
    tag = match.group(0)
    name_end = _TAG_NAME_RE.match(tag).end()
    return tag[:name_end] + _ATTRIBUTE_RE.sub(_clean_attribute, tag[name_end:])


def _is_removed(name: str, value: str) -> bool:
    if _HANDLER_NAME_RE.fullmatch(name):
        return True
    if name == BASE_URL_ATTRIBUTE or name in _DOCUMENT_ATTRIBUTES:
        return True
    return bool(name.startswith("data-") and value and _HANDLER_LIKE_VALUE_RE.search(value))


def _clean_attribute(match: re.Match) -> str:
    name = match.group(2).lower()
    value = match.group(4)

    if _is_removed(name, value):
        # Keep a separator when the next attribute follows without whitespace
        following = match.string[match.end():match.end() + 1]
        if not following or following.isspace() or following in "/>":
            return ""
        return match.group(1) or " "

    if name in _URL_ATTRIBUTES and value and _is_javascript_url(value):
        return f'{match.group(1)}{match.group(2)}="#"'

    return match.group(0)


def _is_javascript_url(value: str) -> bool:
    unquoted = html_lib.unescape(value.strip("\"'"))
    return _IGNORED_URL_CHARS_RE.sub("", unquoted).lower().startswith("javascript:")


def contains_executable_content(html: str) -> bool:
    """Check whether HTML still carries scripts, inline handlers or javascript: URLs."""
    if _SCRIPT_OPEN_RE.search(html) or _STRAY_SCRIPT_CLOSE_RE.search(html):
        return True

    for tag_match in _START_TAG_RE.finditer(html):
        tag = tag_match.group(0)
        attributes = tag[_TAG_NAME_RE.match(tag).end():]
        for attribute in _ATTRIBUTE_RE.finditer(attributes):
            name = attribute.group(2).lower()
            value = attribute.group(4)
            if _HANDLER_NAME_RE.fullmatch(name) or name in _DOCUMENT_ATTRIBUTES:
                return True
            if name in _URL_ATTRIBUTES and value and _is_javascript_url(value):
                return True
    return False
