"""Capture pipeline for Page Picker.

This package turns a live page into a self-contained, instrumented document
that can be rendered inside the sandbox.

Main Components:
- Sanitizer: strips scripts, inline handlers and javascript: URLs
- Injector: embeds the client programs and overlay styles
- Resource Inliner: embeds stylesheets and images
- Backend: page/resource provider interface and HTTP reference implementation
- Page Loader: orchestrates one load cycle
- Config: YAML configuration with environment overrides

Usage:
    from pagepicker.capture import PageLoader, HttpCaptureBackend

    async with HttpCaptureBackend() as backend:
        loader = PageLoader(backend)
        result = await loader.load("https://example.com")
"""

__version__ = "1.0.0"

__all__ = [
    # Sanitizer
    "sanitize",
    "contains_executable_content",

    # Injector
    "inject",
    "escape_program_source",

    # Resource inlining
    "ResourceInliner",
    "inline",

    # Backend
    "CaptureBackend",
    "HttpCaptureBackend",

    # Orchestration
    "PageLoader",
    "validate_page_url",

    # Configuration
    "PagePickerConfig",
    "ConfigManager",
    "get_config",
]

from .sanitizer import sanitize, contains_executable_content
from .injector import inject, escape_program_source
from .resource_inliner import ResourceInliner, inline
from .backend import CaptureBackend, HttpCaptureBackend
from .page_loader import PageLoader, validate_page_url
from .config import PagePickerConfig, ConfigManager, get_config
