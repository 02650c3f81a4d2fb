"""Overlay styles shared by the selection and navigation programs."""

from ..markers import (
    SELECTION_STYLES_ID,
    HOVER_BOX_ID,
    INFO_OVERLAY_ID,
    INTERNAL_LINK_HOVER_CLASS,
)


OVERLAY_CSS = f"""
#{HOVER_BOX_ID} {{
  position: absolute;
  pointer-events: none;
  z-index: 2147483646;
  border: 2px solid #1e88e5;
  background: rgba(30, 136, 229, 0.12);
  box-sizing: border-box;
  display: none;
}}
#{INFO_OVERLAY_ID} {{
  position: absolute;
  pointer-events: none;
  z-index: 2147483647;
  max-width: 360px;
  padding: 4px 8px;
  border-radius: 3px;
  background: #263238;
  color: #ffffff;
  font: 12px/1.4 monospace;
  white-space: nowrap;
  overflow: hidden;
  text-overflow: ellipsis;
  display: none;
}}
a.{INTERNAL_LINK_HOVER_CLASS} {{
  opacity: 0.85;
  text-decoration: underline;
  background-color: rgba(30, 136, 229, 0.08);
  cursor: pointer;
}}
"""


def build_styles() -> str:
    """Return the overlay stylesheet as a complete ``<style>`` element."""
    return f'<style id="{SELECTION_STYLES_ID}">{OVERLAY_CSS}</style>'
