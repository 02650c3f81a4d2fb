"""Identifiers the host and the injected programs agree on."""

BASE_URL_ATTRIBUTE = "data-base-url"
SELECTION_STYLES_ID = "parser-selection-styles"

NAVIGATION_SCRIPT_ID = "parser-navigation-script"
SELECTION_SCRIPT_ID = "parser-selection-script"

HOVER_BOX_ID = "parser-hover-box"
INFO_OVERLAY_ID = "parser-info-overlay"
INTERNAL_LINK_HOVER_CLASS = "parser-internal-link-hover"

# Classes carrying this marker belong to the overlay, never to the page
INTERNAL_CLASS_MARKER = "parser-"
