"""Python mirror of the selector inference done by the selection program.

Given an element of a parsed document, builds the same selector path the
in-page program would report for a click on it:

- ``#id`` when the element's id is unique in the document;
- otherwise segments ``tag[.class]*[:nth-of-type(n)]`` from the element
  upwards, with ``:nth-of-type`` only when several siblings share the tag,
  stopping at an ancestor with a unique id, at ``<body>``, or as soon as the
  path matches exactly one element.

The similar selector is the same path with the last segment's
``:nth-of-type`` removed; its match count is the ``similarElements`` figure.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

import soupsieve
from bs4 import BeautifulSoup, Tag

from ..markers import INTERNAL_CLASS_MARKER
from ..models.selection import ElementDescriptor

_NTH_OF_TYPE_RE = re.compile(r":nth-of-type\(\d+\)$")

_ROOT_TAGS = ("body", "html")


@dataclass
class InferredSelector:
    """Selector path of one element and its generalization."""

    selector: str
    similar_selector: str
    segments: List[str]


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def document_of(element: Tag) -> Tag:
    """Walk up to the parsed document the element belongs to."""
    node = element
    while node.parent is not None:
        node = node.parent
    return node


def count_matches(root: Union[BeautifulSoup, Tag], selector: str) -> int:
    """Number of elements ``selector`` matches; 0 when it does not parse."""
    try:
        return len(root.select(selector))
    except (soupsieve.SelectorSyntaxError, ValueError):
        return 0


def page_classes(element: Tag) -> List[str]:
    """Class names of an element, minus overlay classes."""
    classes = element.get("class") or []
    if isinstance(classes, str):
        classes = classes.split()
    return [name for name in classes if INTERNAL_CLASS_MARKER not in name]


def unique_id_selector(element: Tag, root: Tag) -> Optional[str]:
    element_id = element.get("id")
    if not element_id:
        return None
    selector = f"#{soupsieve.escape(element_id)}"
    return selector if count_matches(root, selector) == 1 else None


def segment_for(element: Tag) -> str:
    segment = element.name.lower()
    for name in page_classes(element):
        segment += f".{soupsieve.escape(name)}"

    parent = element.parent
    if parent is not None:
        same_tag = parent.find_all(element.name, recursive=False)
        if len(same_tag) > 1:
            position = next(i for i, sibling in enumerate(same_tag) if sibling is element) + 1
            segment += f":nth-of-type({position})"
    return segment


def infer_selector(element: Tag) -> InferredSelector:
    """Build the selector path of ``element``."""
    root = document_of(element)

    own = unique_id_selector(element, root)
    if own:
        return InferredSelector(selector=own, similar_selector=own, segments=[own])

    segments: List[str] = []
    node = element
    while isinstance(node, Tag) and not isinstance(node, BeautifulSoup):
        tag = node.name.lower()
        if tag in _ROOT_TAGS:
            segments.insert(0, tag)
            break
        if node is not element:
            anchor = unique_id_selector(node, root)
            if anchor:
                segments.insert(0, anchor)
                break
        segments.insert(0, segment_for(node))
        if count_matches(root, " > ".join(segments)) == 1:
            break
        node = node.parent

    similar = segments[:-1] + [_NTH_OF_TYPE_RE.sub("", segments[-1])]
    return InferredSelector(
        selector=" > ".join(segments),
        similar_selector=" > ".join(similar),
        segments=segments,
    )


def element_text(element: Tag) -> str:
    return " ".join(element.get_text().split())


def element_attributes(element: Tag) -> Dict[str, str]:
    return {
        name: " ".join(value) if isinstance(value, list) else str(value)
        for name, value in element.attrs.items()
    }


def describe_element(element: Tag) -> ElementDescriptor:
    """Build the descriptor a click on ``element`` would report."""
    inferred = infer_selector(element)
    root = document_of(element)
    return ElementDescriptor(
        tag_name=element.name.lower(),
        text=element_text(element),
        attributes=element_attributes(element),
        selector_path=inferred.selector,
        similar_count=count_matches(root, inferred.similar_selector),
        similar_selector=inferred.similar_selector,
    )
