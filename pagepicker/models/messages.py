"""Protocol messages exchanged between the host and the sandboxed page.

Messages travel as plain JSON-shaped objects through ``postMessage``. Each
message type has a pydantic model here; the wire form uses the camelCase
field names the in-page programs emit.
"""

from enum import Enum
from typing import Any, Dict, Optional, Type, Union
from urllib.parse import urlparse

from pydantic import BaseModel, Field, ValidationError, field_validator

from .selection import ElementDescriptor, MAX_ELEMENT_TEXT_LENGTH


class MessageType(str, Enum):
    """Recognized values of the ``type`` field."""
    ENABLE_SELECTION = "enable-selection"
    DISABLE_SELECTION = "disable-selection"
    HOST_ACK = "host-ack"
    SCRIPT_READY = "parser-script-ready"
    SCRIPT_GAVE_UP = "parser-script-gave-up"
    ELEMENT_SELECTED = "element-selected"
    NAVIGATE_INTERNAL_LINK = "navigate-internal-link"
    DEBUG = "parser-debug"


CONTROL_MESSAGE_TYPES = frozenset({
    MessageType.ENABLE_SELECTION,
    MessageType.DISABLE_SELECTION,
    MessageType.HOST_ACK,
})


class ProtocolMessage(BaseModel):
    """Base class for all protocol messages."""

    model_config = {"populate_by_name": True, "frozen": True}

    type: MessageType

    def to_wire(self) -> Dict[str, Any]:
        """Serialize to the JSON shape posted across the boundary."""
        return self.model_dump(mode='json', by_alias=True, exclude_none=True)


class EnableSelection(ProtocolMessage):
    type: MessageType = MessageType.ENABLE_SELECTION


class DisableSelection(ProtocolMessage):
    type: MessageType = MessageType.DISABLE_SELECTION


class HostAck(ProtocolMessage):
    """Acknowledges a readiness announcement so the sandbox stops probing."""
    type: MessageType = MessageType.HOST_ACK
    script_id: Optional[str] = Field(default=None, alias="scriptId")


class ScriptReady(ProtocolMessage):
    type: MessageType = MessageType.SCRIPT_READY
    script_id: str = Field(default="", alias="scriptId")
    attempt: int = Field(default=0, ge=0)


class ScriptGaveUp(ProtocolMessage):
    """Terminal signal: the readiness probe ran out of attempts unacknowledged."""
    type: MessageType = MessageType.SCRIPT_GAVE_UP
    script_id: str = Field(default="", alias="scriptId")
    attempts: int = Field(default=0, ge=0)


class ElementSelected(ProtocolMessage):
    type: MessageType = MessageType.ELEMENT_SELECTED
    selector: str = Field(min_length=1)
    tag_name: str = Field(alias="tagName", min_length=1)
    text: str = ""
    attributes: Dict[str, str] = Field(default_factory=dict)
    similar_elements: int = Field(default=0, ge=0, alias="similarElements")
    similar_selector: Optional[str] = Field(default=None, alias="similarSelector")

    @field_validator('text')
    @classmethod
    def truncate_text(cls, v):
        return v[:MAX_ELEMENT_TEXT_LENGTH]

    @field_validator('attributes', mode='before')
    @classmethod
    def stringify_attributes(cls, v):
        if isinstance(v, dict):
            return {str(k): '' if value is None else str(value) for k, value in v.items()}
        return v

    def to_descriptor(self) -> ElementDescriptor:
        """Reconstruct the element descriptor carried by this message."""
        return ElementDescriptor(
            tag_name=self.tag_name,
            text=self.text,
            attributes=dict(self.attributes),
            selector_path=self.selector,
            similar_count=self.similar_elements,
            similar_selector=self.similar_selector,
        )


class NavigateInternalLink(ProtocolMessage):
    type: MessageType = MessageType.NAVIGATE_INTERNAL_LINK
    url: str
    script_id: str = Field(default="", alias="scriptId")

    @field_validator('url')
    @classmethod
    def validate_absolute(cls, v):
        parsed = urlparse(v)
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise ValueError(f"URL must be absolute http(s): {v}")
        return v


class DebugMessage(ProtocolMessage):
    type: MessageType = MessageType.DEBUG
    message: str = ""
    script_id: str = Field(default="", alias="scriptId")


_MESSAGE_MODELS: Dict[MessageType, Type[ProtocolMessage]] = {
    MessageType.ENABLE_SELECTION: EnableSelection,
    MessageType.DISABLE_SELECTION: DisableSelection,
    MessageType.HOST_ACK: HostAck,
    MessageType.SCRIPT_READY: ScriptReady,
    MessageType.SCRIPT_GAVE_UP: ScriptGaveUp,
    MessageType.ELEMENT_SELECTED: ElementSelected,
    MessageType.NAVIGATE_INTERNAL_LINK: NavigateInternalLink,
    MessageType.DEBUG: DebugMessage,
}


AnyMessage = Union[
    EnableSelection, DisableSelection, HostAck, ScriptReady, ScriptGaveUp,
    ElementSelected, NavigateInternalLink, DebugMessage,
]


def parse_message(data: Any) -> Optional[ProtocolMessage]:
    """Parse an inbound payload into a protocol message.

    Args:
        data: Raw payload received from the other side of the boundary

    Returns:
        The typed message, or None when the payload is not a mapping, has no
        recognized ``type`` or fails field validation
    """
    if not isinstance(data, dict):
        return None

    raw_type = data.get('type')
    if not isinstance(raw_type, str):
        return None

    try:
        message_type = MessageType(raw_type)
    except ValueError:
        return None

    try:
        return _MESSAGE_MODELS[message_type].model_validate(data)
    except ValidationError:
        return None
