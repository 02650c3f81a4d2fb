"""Page Picker data models package."""

from .capture import (
    ResourceKind,
    LoadStatus,
    PageDocument,
    ResourceReference,
    InlineResult,
    PageLoadResult,
)

from .selection import (
    LinkClassification,
    ElementDescriptor,
    PreviewMatch,
    SelectorPreview,
)

from .messages import (
    MessageType,
    ProtocolMessage,
    EnableSelection,
    DisableSelection,
    HostAck,
    ScriptReady,
    ScriptGaveUp,
    ElementSelected,
    NavigateInternalLink,
    DebugMessage,
    parse_message,
)

from .session import (
    SelectionState,
    SelectionSession,
    NavigationSession,
)

__all__ = [
    # Capture models
    'ResourceKind',
    'LoadStatus',
    'PageDocument',
    'ResourceReference',
    'InlineResult',
    'PageLoadResult',

    # Selection models
    'LinkClassification',
    'ElementDescriptor',
    'PreviewMatch',
    'SelectorPreview',

    # Protocol messages
    'MessageType',
    'ProtocolMessage',
    'EnableSelection',
    'DisableSelection',
    'HostAck',
    'ScriptReady',
    'ScriptGaveUp',
    'ElementSelected',
    'NavigateInternalLink',
    'DebugMessage',
    'parse_message',

    # Sessions
    'SelectionState',
    'SelectionSession',
    'NavigationSession',
]
