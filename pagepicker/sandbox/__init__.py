"""Client programs injected into the sandboxed page.

Main Components:
- Building blocks: typed constants and static blocks (blocks.py)
- Selection program: hover highlight, click-to-select, readiness probe
- Navigation program: internal link interception
- Overlay styles shared by both programs

Usage:
    from pagepicker.sandbox import build_selection_program, build_navigation_program

    selection = build_selection_program().render()
    navigation = build_navigation_program("https://example.com/").render()
"""

__all__ = [
    "JsConstant",
    "ProgramBlock",
    "ClientProgram",
    "build_selection_program",
    "build_navigation_program",
    "build_styles",
    "OVERLAY_CSS",
]

from .blocks import JsConstant, ProgramBlock, ClientProgram
from .selection_program import build_selection_program
from .navigation_program import build_navigation_program
from .styles import build_styles, OVERLAY_CSS
