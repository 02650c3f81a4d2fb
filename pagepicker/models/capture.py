"""Pydantic models for page capture results and inlined resources.

This module defines the data models used by the capture pipeline: the page
document produced by one load cycle, the external resource references
discovered while inlining, and the overall load result handed to the host.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class ResourceKind(str, Enum):
    """Kinds of external resources that get inlined."""
    STYLESHEET = "stylesheet"
    IMAGE = "image"


class LoadStatus(str, Enum):
    """Overall status of a page load."""
    SUCCESS = "success"
    FAILED = "failed"
    STALE = "stale"


class PageDocument(BaseModel):
    """Captured page at every stage of one load cycle."""

    model_config = {"frozen": True}

    raw_html: str = Field(description="HTML as returned by the page fetch")
    base_url: str = Field(description="Normalized URL the page was loaded from")
    sanitized_html: str = Field(description="HTML after sanitization")
    final_html: str = Field(description="Sanitized, injected and inlined HTML")

    @property
    def size_bytes(self) -> int:
        return len(self.final_html.encode('utf-8'))


class ResourceReference(BaseModel):
    """External resource discovered in a document, deduplicated by absolute URL."""

    original_token: str = Field(description="Reference as first written in the document")
    absolute_url: str = Field(description="Reference resolved against the base URL")
    kind: ResourceKind = Field(description="Stylesheet or image")
    inline_form: Optional[str] = Field(
        default=None,
        description="Inline style element or data URL once fetched"
    )
    aliases: List[str] = Field(
        default_factory=list,
        description="Every distinct token that resolved to absolute_url"
    )
    error: Optional[str] = Field(
        default=None,
        description="Why the resource was left untouched"
    )

    @property
    def inlined(self) -> bool:
        return self.inline_form is not None

    def add_alias(self, token: str) -> None:
        if token not in self.aliases:
            self.aliases.append(token)


class InlineResult(BaseModel):
    """Outcome of one inlining pass over a document."""

    html: str
    references: List[ResourceReference] = Field(default_factory=list)

    @property
    def inlined_count(self) -> int:
        return sum(1 for ref in self.references if ref.inlined)

    @property
    def failed_count(self) -> int:
        return sum(1 for ref in self.references if ref.error is not None)


class PageLoadResult(BaseModel):
    """Result of one page load requested by the host."""

    url: str = Field(description="URL as requested (normalized when valid)")
    status: LoadStatus = Field(description="Outcome of the load")
    document: Optional[PageDocument] = Field(default=None)
    error: Optional[str] = Field(default=None, description="User-facing error message")
    resource_folder: Optional[str] = Field(
        default=None,
        description="Folder resource copies were saved under"
    )
    request_token: int = Field(default=0, description="Monotonic token of the load request")
    started_at: datetime = Field(default_factory=datetime.utcnow)
    load_time_ms: Optional[float] = Field(default=None)
    resources: List[ResourceReference] = Field(default_factory=list)

    @property
    def is_success(self) -> bool:
        return self.status == LoadStatus.SUCCESS

    @property
    def html(self) -> Optional[str]:
        return self.document.final_html if self.document else None
