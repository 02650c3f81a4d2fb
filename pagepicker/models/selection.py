"""Pydantic models for element selection outcomes and link classification."""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


MAX_ELEMENT_TEXT_LENGTH = 100


class LinkClassification(str, Enum):
    """Classification of a hyperlink relative to the captured page."""
    INTERNAL = "internal"
    EXTERNAL = "external"


class ElementDescriptor(BaseModel):
    """Element picked by the operator inside the sandboxed page."""

    tag_name: str = Field(description="Tag name as reported by the DOM")
    text: str = Field(
        default="",
        description="Trimmed text content, at most 100 characters"
    )
    attributes: Dict[str, str] = Field(
        default_factory=dict,
        description="All attributes of the element"
    )
    selector_path: str = Field(description="CSS selector that re-matches exactly this element")
    similar_count: int = Field(
        default=0,
        ge=0,
        description="Number of elements matched by the similar selector"
    )
    similar_selector: Optional[str] = Field(
        default=None,
        description="Selector matching this element and its look-alikes"
    )

    @field_validator('text')
    @classmethod
    def truncate_text(cls, v):
        return v[:MAX_ELEMENT_TEXT_LENGTH]

    @field_validator('attributes', mode='before')
    @classmethod
    def stringify_attributes(cls, v):
        if v is None:
            return {}
        if isinstance(v, dict):
            return {str(k): '' if value is None else str(value) for k, value in v.items()}
        return v

    @property
    def element_id(self) -> Optional[str]:
        """Value of the id attribute, if any."""
        return self.attributes.get('id') or None

    @property
    def classes(self) -> list:
        """Class names from the class attribute."""
        return self.attributes.get('class', '').split()


class PreviewMatch(BaseModel):
    """One element matched by a selector preview."""

    text: str = Field(default="", description="Whitespace-collapsed text content")
    html: str = Field(default="", description="Outer HTML of the element")
    attributes: Dict[str, str] = Field(default_factory=dict)


class SelectorPreview(BaseModel):
    """Everything a selector matches in a captured document."""

    selector: str
    matches: int = Field(default=0, ge=0, description="Total number of matches")
    results: List[PreviewMatch] = Field(
        default_factory=list,
        description="Matched elements in document order, possibly truncated"
    )
