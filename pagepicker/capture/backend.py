"""Collaborators the capture pipeline calls for network and disk access.

The pipeline only ever talks to :class:`CaptureBackend`. The desktop shell
provides its own implementation; :class:`HttpCaptureBackend` is the reference
one used by the CLI and the tests: pages and resources are fetched with httpx
and cached under a ``saved_pages`` folder tracked by a JSON index.
"""

import asyncio
import hashlib
import json
import logging
import posixpath
import re
import time
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union
from urllib.parse import unquote, urlparse

import aiofiles
import httpx

from ..errors import PageFetchError, ResourceFetchError, ResourceSaveError
from ..utils.url_normalizer import hostname_slug

logger = logging.getLogger(__name__)


DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; PagePicker/1.0)"
PAGE_FILENAME = "page.html"
INDEX_FILENAME = "index.json"

_UNSAFE_FILENAME_CHARS_RE = re.compile(r"[^A-Za-z0-9._-]")


class CaptureBackend(ABC):
    """Abstract page/resource provider consumed by the capture pipeline.

    All operations are asynchronous and may fail; the pipeline decides which
    failures are fatal.
    """

    @abstractmethod
    async def fetch_page(
        self,
        url: str,
        force_refresh: bool = False,
        site_id: Optional[Union[int, str]] = None
    ) -> str:
        """Fetch the HTML of a page.

        Args:
            url: Normalized page URL
            force_refresh: Bypass any cached copy
            site_id: Site the page belongs to, if known

        Returns:
            Raw HTML of the page
        """
        pass

    @abstractmethod
    async def fetch_resource(self, url: str) -> bytes:
        """Fetch the raw bytes of a stylesheet or image."""
        pass

    @abstractmethod
    async def save_resource(self, url: str, data: bytes, subfolder: str) -> str:
        """Persist a resource copy and return the path it was written to."""
        pass

    @abstractmethod
    async def get_cache_folder_for_url(self, url: str) -> Optional[str]:
        """Return the cache folder of a previously fetched page, if any."""
        pass


def resource_filename(url: str) -> str:
    """Build a filesystem-safe, collision-free file name for a resource URL."""
    path = unquote(urlparse(url).path)
    name = posixpath.basename(path) or "resource"
    name = _UNSAFE_FILENAME_CHARS_RE.sub("_", name)[-100:]
    digest = hashlib.sha1(url.encode("utf-8")).hexdigest()[:10]
    return f"{digest}_{name}"


def page_folder_name(url: str, timestamp_ms: Optional[int] = None) -> str:
    """Folder name for a freshly captured page: ``page_<ms>_<host>``."""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"page_{timestamp_ms}_{hostname_slug(url)}"


class HttpCaptureBackend(CaptureBackend):
    """Fetches over HTTP and caches pages on disk.

    Folders are recorded relative to ``base_dir`` (for example
    ``saved_pages/page_1700000000000_example_com``) so the same strings can be
    handed back to :meth:`save_resource` as subfolders.
    """

    def __init__(
        self,
        base_dir: Union[str, Path] = ".",
        saved_pages_root: str = "saved_pages",
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        """Initialize the backend.

        Args:
            base_dir: Directory every cache path is relative to
            saved_pages_root: Folder holding one subfolder per captured page
            client: HTTP client to use; one is created (and owned) if omitted
            timeout: Request timeout in seconds for an owned client
            user_agent: User-Agent header for an owned client
        """
        self.base_dir = Path(base_dir)
        self.saved_pages_root = saved_pages_root.strip("/") or "saved_pages"
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout=timeout, connect=10.0),
            headers={"User-Agent": user_agent},
            follow_redirects=True,
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
        )
        self._lock = asyncio.Lock()

    async def __aenter__(self) -> "HttpCaptureBackend":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    @property
    def index_path(self) -> Path:
        return self.base_dir / self.saved_pages_root / INDEX_FILENAME

    async def _load_index(self) -> Dict[str, Dict[str, Any]]:
        if not self.index_path.exists():
            return {}

        try:
            async with aiofiles.open(self.index_path, 'r', encoding='utf-8') as f:
                content = await f.read()
                return json.loads(content) if content.strip() else {}
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Failed to load page index: {e}")
            return {}

    async def _save_index(self, index: Dict[str, Dict[str, Any]]) -> None:
        self.index_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(self.index_path, 'w', encoding='utf-8') as f:
            await f.write(json.dumps(index, indent=2, default=str))

    async def _get(self, url: str) -> httpx.Response:
        response = await self.client.get(url)
        response.raise_for_status()
        return response

    async def fetch_page(
        self,
        url: str,
        force_refresh: bool = False,
        site_id: Optional[Union[int, str]] = None
    ) -> str:
        async with self._lock:
            index = await self._load_index()
            entry = index.get(url)

            if entry and not force_refresh:
                cached = self.base_dir / entry["folder"] / PAGE_FILENAME
                if cached.exists():
                    async with aiofiles.open(cached, 'r', encoding='utf-8') as f:
                        html = await f.read()
                    logger.debug(f"Serving {url} from cache folder {entry['folder']}")
                    return html

            try:
                response = await self._get(url)
            except httpx.HTTPStatusError as e:
                raise PageFetchError(
                    f"HTTP {e.response.status_code} while fetching {url}"
                ) from e
            except httpx.HTTPError as e:
                raise PageFetchError(f"Failed to fetch {url}: {e}") from e

            html = response.text
            folder = f"{self.saved_pages_root}/{page_folder_name(url)}"
            page_path = self.base_dir / folder / PAGE_FILENAME
            page_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(page_path, 'w', encoding='utf-8') as f:
                await f.write(html)

            index[url] = {
                "folder": folder,
                "fetched_at": datetime.utcnow().isoformat(),
                "site_id": site_id,
            }
            await self._save_index(index)

        logger.info(f"Fetched {url} ({len(html)} chars) into {folder}")
        return html

    async def fetch_resource(self, url: str) -> bytes:
        try:
            response = await self._get(url)
        except httpx.HTTPStatusError as e:
            raise ResourceFetchError(f"HTTP {e.response.status_code} for {url}") from e
        except httpx.HTTPError as e:
            raise ResourceFetchError(f"Failed to fetch {url}: {e}") from e
        return response.content

    async def save_resource(self, url: str, data: bytes, subfolder: str) -> str:
        target = self.base_dir / subfolder / resource_filename(url)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(target, 'wb') as f:
                await f.write(data)
        except OSError as e:
            raise ResourceSaveError(f"Failed to save {url} to {target}: {e}") from e
        return str(target)

    async def get_cache_folder_for_url(self, url: str) -> Optional[str]:
        index = await self._load_index()
        entry = index.get(url)
        return entry.get("folder") if entry else None
