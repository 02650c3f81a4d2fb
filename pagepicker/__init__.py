"""Page Picker - capture live pages and build CSS selectors by pointing at them.

Usage:
    from pagepicker.capture import PageLoader, HttpCaptureBackend

    loader = PageLoader(HttpCaptureBackend(cache_root=Path("cache")))
    html = await loader.load_page("https://example.com")
"""

__version__ = "1.0.0"
