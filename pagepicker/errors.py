"""Exceptions raised across Page Picker."""


class PagePickerError(Exception):
    """Base class for Page Picker errors."""
    pass


class InvalidPageURLError(PagePickerError):
    """Raised when a page URL is empty or not a usable http(s) URL."""
    pass


class PageFetchError(PagePickerError):
    """Raised when the primary page fetch fails."""
    pass


class EmptyPageError(PageFetchError):
    """Raised when the page fetch returns no HTML."""
    pass


class ResourceFetchError(PagePickerError):
    """Raised when a single stylesheet or image cannot be fetched."""
    pass


class ResourceSaveError(PagePickerError):
    """Raised when a resource copy cannot be persisted."""
    pass


class ProgramAssemblyError(PagePickerError):
    """Raised when a client program is assembled from invalid blocks."""
    pass


class InvalidSelectorError(PagePickerError):
    """Raised when a CSS selector cannot be parsed."""
    pass
