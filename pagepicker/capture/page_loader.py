"""Page load orchestration.

One load cycle turns a URL into a self-contained, instrumented document:
validate the URL, fetch the page, sanitize it, inject the client programs and
overlay styles, then inline external resources. Only the page fetch itself can
fail a load; inlining is best-effort.

Every load gets a monotonically increasing request token. A load that
completes after a newer one has started is reported as stale and leaves the
loader state and callbacks alone.
"""

import inspect
import logging
import time
from datetime import datetime
from typing import Any, Callable, Optional, Union

from ..errors import EmptyPageError, InvalidPageURLError
from ..models.capture import LoadStatus, PageDocument, PageLoadResult
from ..sandbox import build_navigation_program, build_selection_program, build_styles
from ..utils.url_normalizer import URLNormalizationError, hostname_slug, normalize_page_url
from .backend import CaptureBackend
from .config import PagePickerConfig
from .injector import inject
from .resource_inliner import ResourceInliner
from .sanitizer import sanitize

logger = logging.getLogger(__name__)


SiteId = Optional[Union[int, str]]
SiteIdSource = Union[SiteId, Callable[[], SiteId]]


def validate_page_url(url: Optional[str]) -> str:
    """Normalize a page URL or raise :class:`InvalidPageURLError`."""
    if not url or not url.strip():
        raise InvalidPageURLError("URL cannot be empty")
    try:
        return normalize_page_url(url)
    except URLNormalizationError as e:
        raise InvalidPageURLError(f"Invalid URL '{url.strip()}': {e}") from e


def fallback_folder(url: str, saved_pages_root: str = "saved_pages") -> str:
    """Fresh resource folder for a page with no cache folder."""
    return f"{saved_pages_root}/page_{int(time.time() * 1000)}_{hostname_slug(url)}"


class PageLoader:
    """Loads pages through a :class:`CaptureBackend` and prepares them for the sandbox."""

    def __init__(
        self,
        backend: CaptureBackend,
        config: Optional[PagePickerConfig] = None,
        site_id: SiteIdSource = None,
        on_error: Optional[Callable[[str], Any]] = None,
        on_load_complete: Optional[Callable[[PageLoadResult], Any]] = None,
        inliner: Optional[ResourceInliner] = None,
    ):
        """Initialize the loader.

        Args:
            backend: Page and resource provider
            config: Configuration; defaults are used when omitted
            site_id: Site id, or a callable returning it at load time
            on_error: Called with the user-facing message of a failed load
            on_load_complete: Called with the result of a successful load
            inliner: Resource inliner; built from ``config`` when omitted
        """
        self.backend = backend
        self.config = config or PagePickerConfig()
        self.site_id = site_id
        self.on_error = on_error
        self.on_load_complete = on_load_complete

        capture = self.config.capture
        self.inliner = inliner or ResourceInliner(
            backend,
            max_concurrent_fetches=capture.max_concurrent_fetches,
            resource_timeout_s=capture.resource_timeout_s,
            excluded_prefixes=capture.excluded_prefixes,
            save_copies=capture.save_resource_copies,
        )

        self._latest_token = 0
        self._loading = False
        self._error: Optional[str] = None
        self._document: Optional[PageDocument] = None

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def document(self) -> Optional[PageDocument]:
        return self._document

    @property
    def processed_html(self) -> Optional[str]:
        return self._document.final_html if self._document else None

    def _resolve_site_id(self) -> SiteId:
        return self.site_id() if callable(self.site_id) else self.site_id

    async def _resolve_folder(self, url: str) -> str:
        try:
            folder = await self.backend.get_cache_folder_for_url(url)
        except Exception as e:
            logger.warning(f"Cache folder lookup failed for {url}: {e}")
            folder = None
        return folder or fallback_folder(url, self.config.capture.saved_pages_root)

    async def _notify(self, callback: Optional[Callable], *args) -> None:
        if callback is None:
            return
        try:
            outcome = callback(*args)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.error(f"Page loader callback {getattr(callback, '__name__', callback)} failed: {e}")

    def build_document(self, raw_html: str, base_url: str) -> PageDocument:
        """Sanitize and instrument raw HTML, without inlining resources."""
        sandbox = self.config.sandbox
        sanitized = sanitize(raw_html)
        selection_program = build_selection_program(
            ready_initial_delay_ms=sandbox.ready_initial_delay_ms,
            ready_max_delay_ms=sandbox.ready_max_delay_ms,
            ready_max_attempts=sandbox.ready_max_attempts,
        )
        navigation_program = build_navigation_program(
            base_url,
            link_debounce_ms=sandbox.link_debounce_ms,
        )
        injected = inject(sanitized, selection_program, navigation_program, build_styles(), base_url)
        return PageDocument(
            raw_html=raw_html,
            base_url=base_url,
            sanitized_html=sanitized,
            final_html=injected,
        )

    async def load(self, url: str, force_refresh: bool = False) -> PageLoadResult:
        """Run one load cycle.

        Args:
            url: Page URL as entered by the operator
            force_refresh: Bypass the backend's page cache

        Returns:
            PageLoadResult with status success, failed or stale
        """
        self._latest_token += 1
        token = self._latest_token
        self._loading = True
        self._error = None
        started_at = datetime.utcnow()
        start = time.perf_counter()

        result = PageLoadResult(url=url, status=LoadStatus.FAILED, request_token=token, started_at=started_at)
        try:
            normalized = validate_page_url(url)
            result.url = normalized
            site_id = self._resolve_site_id()
            logger.info(f"Loading page {normalized} (force_refresh={force_refresh}, site_id={site_id})")

            raw_html = await self.backend.fetch_page(normalized, force_refresh, site_id)
            if not raw_html or not raw_html.strip():
                raise EmptyPageError(f"Received empty HTML for {normalized}")

            document = self.build_document(raw_html, normalized)
            folder = await self._resolve_folder(normalized)
            result.resource_folder = folder

            if self.config.capture.inline_resources:
                try:
                    inlined = await self.inliner.inline_resources(document.final_html, normalized, folder)
                    result.resources = inlined.references
                    document = document.model_copy(update={"final_html": inlined.html})
                except Exception as e:
                    logger.warning(f"Continuing without inlined resources for {normalized}: {e}")

            result.document = document
            result.status = LoadStatus.SUCCESS

        except InvalidPageURLError as e:
            result.error = str(e)
            logger.warning(f"Rejected page URL {url!r}: {e}")
        except Exception as e:
            result.error = str(e) or f"Unknown error while loading page ({e.__class__.__name__})"
            logger.error(f"Failed to load page {url}: {result.error}")

        result.load_time_ms = (time.perf_counter() - start) * 1000

        if token != self._latest_token:
            logger.info(f"Discarding stale load of {result.url} (request {token}, latest {self._latest_token})")
            result.status = LoadStatus.STALE
            return result

        self._loading = False
        if result.is_success:
            self._document = result.document
            logger.info(
                f"Loaded {result.url} in {result.load_time_ms:.0f}ms "
                f"({result.document.size_bytes} bytes, {len(result.resources)} resources)"
            )
            await self._notify(self.on_load_complete, result)
        else:
            self._error = result.error
            await self._notify(self.on_error, result.error)
        return result

    async def load_page(self, url: str, force_refresh: bool = False) -> Optional[str]:
        """Load a page and return its final HTML, or None on failure."""
        result = await self.load(url, force_refresh)
        return result.html if result.is_success else None
