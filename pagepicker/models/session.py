"""Host-side mirrors of the in-page selection and navigation sessions.

The injected programs each keep one explicit session object per sandboxed
document. The host keeps these mirrors so it can reason about what the
sandbox is doing without sharing any state with it. Both sessions change
state only when a protocol message is applied.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from .messages import MessageType, ProtocolMessage, ElementSelected
from .selection import ElementDescriptor


class SelectionState(str, Enum):
    """States of the selection program."""
    DISABLED = "disabled"
    ENABLED = "enabled"


class SelectionSession(BaseModel):
    """Selection state for one sandboxed document."""

    state: SelectionState = Field(default=SelectionState.DISABLED)
    selected: Optional[ElementDescriptor] = Field(
        default=None,
        description="Last selected element, kept until the next selection or disable"
    )
    selections_made: int = Field(default=0, ge=0)

    @property
    def enabled(self) -> bool:
        return self.state == SelectionState.ENABLED

    def apply(self, message: ProtocolMessage) -> bool:
        """Apply a protocol message to the session.

        Args:
            message: Control message sent to, or outcome received from, the sandbox

        Returns:
            True if the session changed
        """
        if message.type == MessageType.ENABLE_SELECTION:
            if self.state == SelectionState.ENABLED:
                return False
            self.state = SelectionState.ENABLED
            return True

        if message.type == MessageType.DISABLE_SELECTION:
            if self.state == SelectionState.DISABLED:
                return False
            self.state = SelectionState.DISABLED
            self.selected = None
            return True

        if isinstance(message, ElementSelected):
            if self.state != SelectionState.ENABLED:
                return False
            self.selected = message.to_descriptor()
            self.selections_made += 1
            return True

        return False


class NavigationSession(BaseModel):
    """Navigation state for one sandboxed document.

    Navigation is active exactly when selection is not enabled; it follows the
    same control messages as :class:`SelectionSession` but never reads it.
    """

    active: bool = Field(default=True)
    navigations_requested: int = Field(default=0, ge=0)

    def apply(self, message: ProtocolMessage) -> bool:
        if message.type == MessageType.ENABLE_SELECTION:
            changed = self.active
            self.active = False
            return changed

        if message.type == MessageType.DISABLE_SELECTION:
            changed = not self.active
            self.active = True
            return changed

        if message.type == MessageType.NAVIGATE_INTERNAL_LINK:
            if not self.active:
                return False
            self.navigations_requested += 1
            return True

        return False
