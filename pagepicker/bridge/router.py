"""Host-side router for messages crossing the sandbox boundary.

Everything arriving from the sandbox is untrusted. Payloads that are not
mappings, carry no recognized ``type`` or fail validation are dropped with a
debug log and nothing else happens. Recognized messages update the host-side
session mirrors and are forwarded to the host's callbacks.

Control messages (``enable-selection``, ``disable-selection``) only go out
once a channel is attached and the sandbox has announced itself.
"""

import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

from ..models.messages import (
    CONTROL_MESSAGE_TYPES,
    DebugMessage,
    DisableSelection,
    ElementSelected,
    EnableSelection,
    HostAck,
    NavigateInternalLink,
    ProtocolMessage,
    ScriptGaveUp,
    ScriptReady,
    parse_message,
)
from ..models.selection import ElementDescriptor, LinkClassification
from ..models.session import NavigationSession, SelectionSession
from ..utils.url_normalizer import classify_link

logger = logging.getLogger(__name__)


class SandboxChannel(ABC):
    """Outbound half of the message channel into the sandbox."""

    @abstractmethod
    async def post(self, message: Dict[str, Any]) -> None:
        """Post a JSON-shaped message into the sandboxed document."""
        pass


class MessageRouter:
    """Validates inbound messages and drives the sandbox programs.

    Example:
        router = MessageRouter(on_element_selected=handle_selection)
        router.attach(channel)
        await router.dispatch({"type": "parser-script-ready", "scriptId": "x", "attempt": 1})
        await router.enable()
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        on_ready: Optional[Callable[[ScriptReady], Any]] = None,
        on_element_selected: Optional[Callable[[ElementDescriptor], Any]] = None,
        on_internal_link: Optional[Callable[[str], Any]] = None,
        on_debug: Optional[Callable[[str], Any]] = None,
        on_gave_up: Optional[Callable[[int], Any]] = None,
    ):
        """Initialize the router.

        Args:
            base_url: Base URL of the loaded page; link requests must be internal to it
            on_ready: Called once per document when the sandbox first announces itself
            on_element_selected: Called with the descriptor of each selected element
            on_internal_link: Called with the absolute URL of a clicked internal link
            on_debug: Called with diagnostic text from the sandbox
            on_gave_up: Called with the attempt count when the readiness probe gave up
        """
        self.base_url = base_url
        self.on_ready = on_ready
        self.on_element_selected = on_element_selected
        self.on_internal_link = on_internal_link
        self.on_debug = on_debug
        self.on_gave_up = on_gave_up

        self.channel: Optional[SandboxChannel] = None
        self.ready = False
        self.selection = SelectionSession()
        self.navigation = NavigationSession()
        self.dropped_messages = 0

    # Channel lifecycle

    def attach(self, channel: SandboxChannel) -> None:
        self.channel = channel
        logger.debug("Sandbox channel attached")

    def detach(self) -> None:
        self.channel = None
        self.ready = False
        logger.debug("Sandbox channel detached")

    def reset(self, base_url: Optional[str] = None) -> None:
        """Forget the previous document: not ready, selection disabled."""
        if base_url is not None:
            self.base_url = base_url
        self.ready = False
        self.selection = SelectionSession()
        self.navigation = NavigationSession()
        logger.debug(f"Router reset for {self.base_url}")

    @property
    def can_send(self) -> bool:
        return self.channel is not None and self.ready

    @property
    def selection_enabled(self) -> bool:
        return self.selection.enabled

    # Inbound

    async def dispatch(self, data: Any) -> Optional[ProtocolMessage]:
        """Handle one payload received from the sandbox.

        Returns:
            The accepted message, or None when it was dropped
        """
        message = parse_message(data)
        if message is None:
            self.dropped_messages += 1
            logger.debug(f"Dropped unrecognized sandbox message: {str(data)[:200]}")
            return None

        if message.type in CONTROL_MESSAGE_TYPES:
            self.dropped_messages += 1
            logger.debug(f"Dropped control message {message.type.value} received from sandbox")
            return None

        if isinstance(message, ScriptReady):
            await self._handle_ready(message)
        elif isinstance(message, ScriptGaveUp):
            await self._handle_gave_up(message)
        elif isinstance(message, ElementSelected):
            if not await self._handle_element_selected(message):
                return None
        elif isinstance(message, NavigateInternalLink):
            if not await self._handle_internal_link(message):
                return None
        elif isinstance(message, DebugMessage):
            logger.debug(f"[sandbox {message.script_id}] {message.message}")
            await self._invoke(self.on_debug, message.message)

        return message

    async def _handle_ready(self, message: ScriptReady) -> None:
        first = not self.ready
        self.ready = True
        # Acks may be lost, so every announcement gets one
        await self._post(HostAck(script_id=message.script_id or None))
        if first:
            logger.info(f"Sandbox script {message.script_id} ready (attempt {message.attempt})")
            await self._invoke(self.on_ready, message)

    async def _handle_gave_up(self, message: ScriptGaveUp) -> None:
        logger.warning(
            f"Sandbox script {message.script_id} stopped announcing after {message.attempts} attempts"
        )
        self.ready = True
        await self._invoke(self.on_gave_up, message.attempts)

    async def _handle_element_selected(self, message: ElementSelected) -> bool:
        if not self.selection.apply(message):
            logger.debug(f"Ignoring element-selected for {message.selector} while selection is disabled")
            return False
        logger.info(f"Element selected: {message.selector} ({message.similar_elements} similar)")
        await self._invoke(self.on_element_selected, self.selection.selected)
        return True

    async def _handle_internal_link(self, message: NavigateInternalLink) -> bool:
        if self.base_url and classify_link(message.url, self.base_url) != LinkClassification.INTERNAL:
            logger.debug(f"Ignoring navigation to external URL {message.url}")
            return False
        if not self.navigation.apply(message):
            logger.debug(f"Ignoring navigation to {message.url} while selection is enabled")
            return False
        logger.info(f"Internal link requested: {message.url}")
        await self._invoke(self.on_internal_link, message.url)
        return True

    # Outbound

    async def enable(self) -> bool:
        """Switch the sandbox into selection mode; False if nothing was sent."""
        return await self._send_control(EnableSelection())

    async def disable(self) -> bool:
        """Switch the sandbox back to navigation mode; False if nothing was sent."""
        return await self._send_control(DisableSelection())

    async def toggle(self) -> bool:
        if self.selection.enabled:
            return await self.disable()
        return await self.enable()

    async def _send_control(self, message: ProtocolMessage) -> bool:
        if not self.can_send:
            logger.debug(f"Not sending {message.type.value}: sandbox not attached or not ready")
            return False
        if not await self._post(message):
            return False
        self.selection.apply(message)
        self.navigation.apply(message)
        return True

    async def _post(self, message: ProtocolMessage) -> bool:
        if self.channel is None:
            return False
        try:
            await self.channel.post(message.to_wire())
            return True
        except Exception as e:
            logger.warning(f"Failed to post {message.type.value} into sandbox: {e}")
            return False

    async def _invoke(self, callback: Optional[Callable], *args) -> None:
        if callback is None:
            return
        try:
            outcome = callback(*args)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.error(f"Router callback {getattr(callback, '__name__', callback)} failed: {e}")
