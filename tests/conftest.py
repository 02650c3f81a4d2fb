"""Shared test fixtures and configuration for Page Picker tests."""

import sys
from pathlib import Path
from typing import Dict, List, Optional
from unittest.mock import AsyncMock

import pytest

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

from pagepicker.capture.backend import CaptureBackend
from pagepicker.capture.config import PagePickerConfig, reset_config


SAMPLE_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
<title>Shop</title>
<link rel="stylesheet" href="/styles/main.css">
<script src="/js/app.js"></script>
<script>window.tracker = 1;</script>
</head>
<body onload="init()">
<nav><a href="/about">About</a> <a href="https://other.example.org/">Elsewhere</a></nav>
<ul class="products">
  <li class="item"><span class="price">$10</span></li>
  <li class="item"><span class="price">$20</span></li>
  <li class="item"><span class="price">$30</span></li>
</ul>
<img src="/img/logo.png" alt="logo">
<a href="javascript:alert(1)" onclick="steal()">Bad link</a>
<noscript><img src="/pixel.gif"></noscript>
</body>
</html>
"""


class FakeBackend(CaptureBackend):
    """In-memory backend with call tracking through AsyncMock."""

    def __init__(
        self,
        pages: Optional[Dict[str, str]] = None,
        resources: Optional[Dict[str, bytes]] = None,
        cache_folder: Optional[str] = None,
    ):
        self.pages = pages or {}
        self.resources = resources or {}
        self.cache_folder = cache_folder
        self.saved: List[tuple] = []

        self.fetch_page = AsyncMock(side_effect=self._fetch_page)
        self.fetch_resource = AsyncMock(side_effect=self._fetch_resource)
        self.save_resource = AsyncMock(side_effect=self._save_resource)
        self.get_cache_folder_for_url = AsyncMock(side_effect=self._get_cache_folder_for_url)

    # Class-level implementations satisfy the ABC; instances shadow them with mocks
    async def fetch_page(self, url, force_refresh=False, site_id=None):
        return await self._fetch_page(url, force_refresh, site_id)

    async def fetch_resource(self, url):
        return await self._fetch_resource(url)

    async def save_resource(self, url, data, subfolder):
        return await self._save_resource(url, data, subfolder)

    async def get_cache_folder_for_url(self, url):
        return await self._get_cache_folder_for_url(url)

    async def _fetch_page(self, url, force_refresh=False, site_id=None):
        if url not in self.pages:
            raise RuntimeError(f"Page not found: {url}")
        return self.pages[url]

    async def _fetch_resource(self, url):
        if url not in self.resources:
            raise RuntimeError(f"Resource not found: {url}")
        return self.resources[url]

    async def _save_resource(self, url, data, subfolder):
        self.saved.append((url, data, subfolder))
        return f"{subfolder}/{url.rsplit('/', 1)[-1]}"

    async def _get_cache_folder_for_url(self, url):
        return self.cache_folder


@pytest.fixture
def sample_page():
    """Raw page HTML with scripts, handlers, a stylesheet and an image."""
    return SAMPLE_PAGE


@pytest.fixture
def fake_backend():
    """Backend serving the sample page and its resources."""
    return FakeBackend(
        pages={"https://shop.example.com/products": SAMPLE_PAGE},
        resources={
            "https://shop.example.com/styles/main.css": b"body { background: url('../img/bg.png'); }",
            "https://shop.example.com/img/logo.png": b"\x89PNG\r\n\x1a\nlogo",
        },
        cache_folder="saved_pages/page_1700000000000_shop_example_com",
    )


@pytest.fixture
def test_config():
    """Configuration with fast sandbox timings."""
    return PagePickerConfig(
        environment="test",
        sandbox={"ready_initial_delay_ms": 50, "ready_max_delay_ms": 200, "ready_max_attempts": 3},
        capture={"resource_timeout_s": 2.0},
    )


@pytest.fixture(autouse=True)
def clean_global_config(monkeypatch):
    """Isolate tests from the global configuration manager and PAGEPICKER_ENV."""
    monkeypatch.delenv("PAGEPICKER_ENV", raising=False)
    reset_config()
    yield
    reset_config()


# Test markers
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "slow: mark test as slow running")
    config.addinivalue_line("markers", "integration: mark test as integration test")


@pytest.fixture
def backend_factory():
    """Factory for in-memory backends with custom pages and resources."""
    return FakeBackend
