"""CLI module for Page Picker.

This package provides the command-line interface for capturing pages,
previewing selectors and picking elements in a sandboxed browser.
"""

from .main import app, cli_main, ExitCode

__all__ = [
    'app',
    'cli_main',
    'ExitCode',
]
