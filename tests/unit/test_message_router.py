"""Unit tests for the host-side message router."""

from typing import Any, Dict, List
from unittest.mock import AsyncMock

import pytest

from pagepicker.bridge.router import MessageRouter, SandboxChannel
from pagepicker.models.messages import MessageType, ScriptReady


BASE_URL = "https://shop.example.com/products"
SCRIPT_ID = "parser-selection-script"

READY = {"type": "parser-script-ready", "scriptId": SCRIPT_ID, "attempt": 1}
SELECTED = {
    "type": "element-selected",
    "selector": "ul.products > li.item:nth-of-type(2)",
    "tagName": "li",
    "text": "$20",
    "attributes": {"class": "item"},
    "similarElements": 3,
    "similarSelector": "ul.products > li.item",
}


class RecordingChannel(SandboxChannel):
    """Channel that records every posted message."""

    def __init__(self):
        self.sent: List[Dict[str, Any]] = []

    async def post(self, message: Dict[str, Any]) -> None:
        self.sent.append(message)


class BrokenChannel(SandboxChannel):
    async def post(self, message: Dict[str, Any]) -> None:
        raise RuntimeError("frame detached")


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def router(channel):
    router = MessageRouter(base_url=BASE_URL)
    router.attach(channel)
    return router


async def make_ready(router: MessageRouter) -> None:
    await router.dispatch(READY)


class TestInboundValidation:
    """Tests for untrusted inbound payloads."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        {"foo": 1},
        "parser-script-ready",
        None,
        42,
        ["parser-script-ready"],
        {"type": 7},
        {"type": "unknown-type"},
        {"type": "element-selected"},
        {"type": "element-selected", "selector": "", "tagName": "div"},
        {"type": "navigate-internal-link", "url": "/relative"},
        {"type": "navigate-internal-link", "url": "javascript:alert(1)"},
    ])
    async def test_invalid_payloads_dropped(self, router, channel, payload):
        assert await router.dispatch(payload) is None
        assert router.dropped_messages == 1
        assert router.ready is False
        assert channel.sent == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("message_type", ["enable-selection", "disable-selection", "host-ack"])
    async def test_control_messages_from_sandbox_dropped(self, router, channel, message_type):
        assert await router.dispatch({"type": message_type}) is None
        assert router.dropped_messages == 1
        assert router.selection_enabled is False
        assert channel.sent == []


class TestReadiness:
    """Tests for the readiness handshake."""

    @pytest.mark.asyncio
    async def test_ready_is_acknowledged(self, router, channel):
        message = await router.dispatch(READY)

        assert isinstance(message, ScriptReady)
        assert router.ready is True
        assert router.can_send is True
        assert channel.sent == [{"type": "host-ack", "scriptId": SCRIPT_ID}]

    @pytest.mark.asyncio
    async def test_every_announcement_acknowledged_but_on_ready_once(self, channel):
        seen = []
        router = MessageRouter(base_url=BASE_URL, on_ready=seen.append)
        router.attach(channel)

        await router.dispatch(READY)
        await router.dispatch({**READY, "attempt": 2})

        assert len(channel.sent) == 2
        assert all(message["type"] == "host-ack" for message in channel.sent)
        assert [message.attempt for message in seen] == [1]

    @pytest.mark.asyncio
    async def test_ready_before_attach_is_not_acknowledged(self):
        router = MessageRouter()
        await router.dispatch(READY)

        assert router.ready is True
        assert router.can_send is False

    @pytest.mark.asyncio
    async def test_gave_up_marks_ready(self, router, channel):
        on_gave_up = AsyncMock()
        router.on_gave_up = on_gave_up

        message = await router.dispatch({"type": "parser-script-gave-up", "scriptId": SCRIPT_ID, "attempts": 8})

        assert message.type == MessageType.SCRIPT_GAVE_UP
        assert router.ready is True
        on_gave_up.assert_awaited_once_with(8)
        assert channel.sent == []


class TestSelectionControl:
    """Tests for enable/disable/toggle."""

    @pytest.mark.asyncio
    async def test_enable_is_noop_until_ready(self, router, channel):
        assert await router.enable() is False
        assert router.selection_enabled is False
        assert channel.sent == []

    @pytest.mark.asyncio
    async def test_enable_is_noop_without_channel(self):
        router = MessageRouter()
        await router.dispatch(READY)
        assert await router.enable() is False

    @pytest.mark.asyncio
    async def test_enable_and_disable(self, router, channel):
        await make_ready(router)
        channel.sent.clear()

        assert await router.enable() is True
        assert router.selection_enabled is True
        assert router.navigation.active is False

        assert await router.disable() is True
        assert router.selection_enabled is False
        assert router.navigation.active is True

        assert channel.sent == [{"type": "enable-selection"}, {"type": "disable-selection"}]

    @pytest.mark.asyncio
    async def test_toggle(self, router, channel):
        await make_ready(router)
        channel.sent.clear()

        await router.toggle()
        assert router.selection_enabled is True
        await router.toggle()
        assert router.selection_enabled is False
        assert [message["type"] for message in channel.sent] == ["enable-selection", "disable-selection"]

    @pytest.mark.asyncio
    async def test_failed_post_leaves_state(self):
        router = MessageRouter()
        router.attach(BrokenChannel())
        await router.dispatch(READY)

        assert await router.enable() is False
        assert router.selection_enabled is False

    @pytest.mark.asyncio
    async def test_reset_forgets_document(self, router, channel):
        await make_ready(router)
        await router.enable()

        router.reset("https://other.example.com/")

        assert router.ready is False
        assert router.selection_enabled is False
        assert router.navigation.active is True
        assert router.base_url == "https://other.example.com/"
        assert await router.enable() is False

    @pytest.mark.asyncio
    async def test_detach(self, router):
        await make_ready(router)
        router.detach()

        assert router.can_send is False
        assert await router.enable() is False


class TestElementSelection:
    """Tests for element-selected handling."""

    @pytest.mark.asyncio
    async def test_selection_forwarded_when_enabled(self, router):
        selected = []
        router.on_element_selected = selected.append
        await make_ready(router)
        await router.enable()

        message = await router.dispatch(SELECTED)

        assert message is not None
        assert len(selected) == 1
        descriptor = selected[0]
        assert descriptor.tag_name == "li"
        assert descriptor.selector_path == "ul.products > li.item:nth-of-type(2)"
        assert descriptor.similar_count == 3
        assert descriptor.similar_selector == "ul.products > li.item"
        assert descriptor.classes == ["item"]
        assert router.selection.selections_made == 1

    @pytest.mark.asyncio
    async def test_selection_ignored_when_disabled(self, router):
        selected = []
        router.on_element_selected = selected.append
        await make_ready(router)

        assert await router.dispatch(SELECTED) is None
        assert selected == []

    @pytest.mark.asyncio
    async def test_selection_cleared_on_disable(self, router):
        await make_ready(router)
        await router.enable()
        await router.dispatch(SELECTED)
        assert router.selection.selected is not None

        await router.disable()
        assert router.selection.selected is None

    @pytest.mark.asyncio
    async def test_long_text_truncated(self, router):
        selected = []
        router.on_element_selected = selected.append
        await make_ready(router)
        await router.enable()

        await router.dispatch({**SELECTED, "text": "x" * 500})

        assert len(selected[0].text) == 100

    @pytest.mark.asyncio
    async def test_callback_errors_are_contained(self, router):
        def broken(descriptor):
            raise RuntimeError("host crashed")

        router.on_element_selected = broken
        await make_ready(router)
        await router.enable()

        assert await router.dispatch(SELECTED) is not None


class TestInternalNavigation:
    """Tests for navigate-internal-link handling."""

    @pytest.mark.asyncio
    async def test_internal_link_forwarded(self, router):
        links = []
        router.on_internal_link = links.append

        message = await router.dispatch({"type": "navigate-internal-link", "url": "https://shop.example.com/about"})

        assert message is not None
        assert links == ["https://shop.example.com/about"]
        assert router.navigation.navigations_requested == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("url", [
        "https://other.example.org/",
        "http://shop.example.com/about",
        "https://sub.shop.example.com/",
    ])
    async def test_external_link_ignored(self, router, url):
        links = []
        router.on_internal_link = links.append

        assert await router.dispatch({"type": "navigate-internal-link", "url": url}) is None
        assert links == []

    @pytest.mark.asyncio
    async def test_link_ignored_while_selecting(self, router):
        links = []
        router.on_internal_link = links.append
        await make_ready(router)
        await router.enable()

        assert await router.dispatch({"type": "navigate-internal-link", "url": "https://shop.example.com/about"}) is None
        assert links == []


class TestDebugMessages:
    """Tests for diagnostic messages."""

    @pytest.mark.asyncio
    async def test_debug_forwarded(self, router):
        debug = []
        router.on_debug = debug.append

        await router.dispatch({"type": "parser-debug", "message": "click: boom", "scriptId": SCRIPT_ID})

        assert debug == ["click: boom"]
