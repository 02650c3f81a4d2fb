"""Playwright host page that renders captured documents in a sandboxed iframe.

The host page holds a single ``<iframe sandbox="allow-scripts">``; documents
are loaded into it through ``srcdoc``, so the frame has an opaque origin and
no network access beyond what the inlined document already carries. Messages
the frame posts to its parent are forwarded to Python through an exposed
function and handed to the :class:`MessageRouter`.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Union

from playwright.async_api import Page

from ..models.capture import PageDocument
from .router import MessageRouter, SandboxChannel

logger = logging.getLogger(__name__)


FRAME_ID = "pagepicker-sandbox"
DELIVER_FUNCTION = "__pagepickerDeliver"

HOST_PAGE = f"""<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>Page Picker</title>
<style>
html, body {{ margin: 0; height: 100%; }}
#{FRAME_ID} {{ border: 0; width: 100%; height: 100%; display: block; }}
</style>
</head>
<body>
<iframe id="{FRAME_ID}" sandbox="allow-scripts"></iframe>
</body>
</html>
"""

_INSTALL_LISTENER = f"""
() => {{
  const frame = document.getElementById('{FRAME_ID}');
  window.addEventListener('message', (event) => {{
    if (event.source !== frame.contentWindow) {{
      return;
    }}
    window.{DELIVER_FUNCTION}(event.data);
  }});
}}
"""

_POST_TO_FRAME = f"""
(message) => {{
  const frame = document.getElementById('{FRAME_ID}');
  if (frame && frame.contentWindow) {{
    frame.contentWindow.postMessage(message, '*');
  }}
}}
"""

_SET_SRCDOC = f"""
(html) => {{
  document.getElementById('{FRAME_ID}').srcdoc = html;
}}
"""


class PlaywrightChannel(SandboxChannel):
    """Posts messages into the sandbox frame of a host page."""

    def __init__(self, page: Page):
        self.page = page

    async def post(self, message: Dict[str, Any]) -> None:
        await self.page.evaluate(_POST_TO_FRAME, message)


class SandboxHost:
    """Hosts captured documents and wires the sandbox to a router.

    Example:
        async with factory.page() as page:
            host = SandboxHost(page, router)
            await host.setup()
            await host.show(result.document)
            await host.wait_until_ready()
            await router.enable()
    """

    def __init__(self, page: Page, router: MessageRouter):
        self.page = page
        self.router = router
        self.channel = PlaywrightChannel(page)
        self._ready_event = asyncio.Event()
        self._set_up = False

    async def setup(self) -> None:
        """Install the host page, the message bridge and the channel."""
        if self._set_up:
            return
        await self.page.expose_function(DELIVER_FUNCTION, self._deliver)
        await self.page.set_content(HOST_PAGE)
        await self.page.evaluate(_INSTALL_LISTENER)
        self.router.attach(self.channel)
        self._set_up = True
        logger.debug("Sandbox host page installed")

    async def _deliver(self, data: Any) -> None:
        message = await self.router.dispatch(data)
        if message is not None and self.router.ready:
            self._ready_event.set()

    async def show(self, document: Union[PageDocument, str], base_url: Optional[str] = None) -> None:
        """Load a document into the sandbox frame.

        Args:
            document: Final page document, or final HTML
            base_url: Base URL of the page; taken from ``document`` when omitted
        """
        if not self._set_up:
            await self.setup()

        if isinstance(document, PageDocument):
            html = document.final_html
            base_url = base_url or document.base_url
        else:
            html = document

        self.router.reset(base_url)
        self._ready_event = asyncio.Event()
        await self.page.evaluate(_SET_SRCDOC, html)
        logger.info(f"Sandbox showing {base_url or 'document'} ({len(html)} chars)")

    async def wait_until_ready(self, timeout_s: float = 15.0) -> bool:
        """Wait for the sandbox to announce itself; False on timeout."""
        try:
            await asyncio.wait_for(self._ready_event.wait(), timeout=timeout_s)
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Sandbox did not announce itself within {timeout_s}s")
            return False

    def frame_locator(self):
        return self.page.frame_locator(f"#{FRAME_ID}")

    async def click(self, selector: str) -> None:
        """Click the first element matching ``selector`` inside the sandbox."""
        await self.frame_locator().locator(selector).first.click()

    async def hover(self, selector: str) -> None:
        await self.frame_locator().locator(selector).first.hover()
