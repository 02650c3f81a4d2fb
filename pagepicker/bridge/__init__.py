"""Host side of the sandbox boundary.

Main Components:
- Message Router: validates inbound messages, sends control messages
- Browser Factory: Playwright browser lifecycle
- Sandbox Host: renders documents in a sandboxed iframe and bridges messages

Usage:
    from pagepicker.bridge import MessageRouter, SandboxHost, BrowserFactory
"""

__all__ = [
    "MessageRouter",
    "SandboxChannel",
    "BrowserFactory",
    "SandboxHost",
    "PlaywrightChannel",
]

from .router import MessageRouter, SandboxChannel
from .browser_factory import BrowserFactory
from .sandbox_host import SandboxHost, PlaywrightChannel
