"""Inlining of external stylesheets and images into a captured page.

The sandboxed page has no network access of its own, so every stylesheet is
replaced by an inline ``<style>`` element and every image by a base64 data
URL. Each resource is best-effort: a failed fetch leaves its reference
untouched. The whole pass is fail-open and returns the input HTML when
something unexpected goes wrong.

Fetches of distinct resources run concurrently; text substitutions are applied
afterwards, one resource at a time, in discovery order.
"""

import asyncio
import base64
import html as html_lib
import logging
import re
from typing import Dict, Iterable, List, Optional, Tuple
from urllib.parse import urljoin

from ..models.capture import InlineResult, ResourceKind, ResourceReference
from ..utils.url_normalizer import (
    DEFAULT_EXCLUDED_PREFIXES,
    directory_of,
    guess_image_mime_type,
    is_absolute_reference,
    is_inlinable,
    resolve_url,
)
from .backend import CaptureBackend

logger = logging.getLogger(__name__)


CSS_SUBFOLDER = "css"
IMAGES_SUBFOLDER = "images"

_LINK_TAG_RE = re.compile(r"<link\b[^>]*>", re.IGNORECASE)
_HREF_RE = re.compile(r"(?<![\w-])href\s*=\s*[\"']([^\"']+)[\"']", re.IGNORECASE)
_STYLESHEET_REL_RE = re.compile(r"(?<![\w-])rel\s*=\s*[\"']?[^\"'>]*\bstylesheet\b", re.IGNORECASE)
_CSS_TYPE_RE = re.compile(r"(?<![\w-])type\s*=\s*[\"']?text/css\b", re.IGNORECASE)

_IMG_QUOTED_SRC_RE = re.compile(
    r"<img\b[^>]*?(?<![\w-])src\s*=\s*[\"']([^\"']+)[\"']", re.IGNORECASE
)
_IMG_UNQUOTED_SRC_RE = re.compile(
    r"<img\b[^>]*?(?<![\w-])src\s*=\s*([^\s\"'>]+)", re.IGNORECASE
)
_BACKGROUND_IMAGE_RE = re.compile(
    r"background-image\s*:\s*url\(\s*[\"']?([^\"')]+?)[\"']?\s*\)", re.IGNORECASE
)

_CSS_URL_RE = re.compile(r"url\(\s*([\"']?)([^\"')]+?)\1\s*\)", re.IGNORECASE)
_STYLE_CLOSE_RE = re.compile(r"</(style)", re.IGNORECASE)


def is_stylesheet_link(tag: str, href: str) -> bool:
    """Check a ``<link>`` tag against the three stylesheet patterns."""
    return bool(
        _STYLESHEET_REL_RE.search(tag)
        or _CSS_TYPE_RE.search(tag)
        or ".css" in href.lower()
    )


def rewrite_css_urls(css: str, stylesheet_url: str, base_url: str) -> str:
    """Make relative ``url(...)`` references in a stylesheet absolute.

    References are resolved against the stylesheet's own directory, falling
    back to ``base_url``. Absolute, protocol-relative, ``data:``, ``blob:`` and
    fragment references are left as they are.
    """
    css_dir = directory_of(stylesheet_url)

    def rewrite(match: re.Match) -> str:
        quote, reference = match.group(1), match.group(2).strip()
        if not reference or is_absolute_reference(reference):
            return match.group(0)
        try:
            absolute = urljoin(css_dir, reference)
        except ValueError:
            try:
                absolute = urljoin(base_url, reference)
            except ValueError:
                return match.group(0)
        return f"url({quote}{absolute}{quote})"

    return _CSS_URL_RE.sub(rewrite, css)


def build_inline_style(css: str) -> str:
    escaped = _STYLE_CLOSE_RE.sub(lambda m: "<\\/" + m.group(1), css)
    return f'<style type="text/css">{escaped}</style>'


def build_data_url(data: bytes, url: str) -> str:
    mime_type = guess_image_mime_type(url)
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


class ResourceInliner:
    """Makes a captured page self-contained.

    Example:
        inliner = ResourceInliner(backend)
        html = await inliner.inline(html, "https://example.com/", "saved_pages/page_1_example_com")
    """

    def __init__(
        self,
        backend: CaptureBackend,
        max_concurrent_fetches: int = 6,
        resource_timeout_s: Optional[float] = 20.0,
        excluded_prefixes: Optional[Iterable[str]] = None,
        save_copies: bool = True,
    ):
        """Initialize the inliner.

        Args:
            backend: Provider of ``fetch_resource`` / ``save_resource``
            max_concurrent_fetches: Upper bound on fetches in flight
            resource_timeout_s: Per-resource fetch timeout; None disables it
            excluded_prefixes: Reference prefixes that are never fetched
            save_copies: Persist fetched bytes under the target folder
        """
        self.backend = backend
        self.max_concurrent_fetches = max(1, max_concurrent_fetches)
        self.resource_timeout_s = resource_timeout_s
        self.excluded_prefixes = tuple(
            excluded_prefixes if excluded_prefixes is not None else DEFAULT_EXCLUDED_PREFIXES
        )
        self.save_copies = save_copies

    async def inline(self, html: str, base_url: str, target_folder: Optional[str]) -> str:
        """Inline stylesheets and images; returns the resulting HTML."""
        result = await self.inline_resources(html, base_url, target_folder)
        return result.html

    async def inline_resources(
        self,
        html: str,
        base_url: str,
        target_folder: Optional[str]
    ) -> InlineResult:
        """Inline stylesheets, then images.

        Args:
            html: Injected page HTML
            base_url: URL the page was loaded from
            target_folder: Folder resource copies are saved under

        Returns:
            InlineResult with the new HTML and every resource discovered. On an
            unexpected error the original HTML is returned with no references.
        """
        logger.info(f"Inlining resources for {base_url} ({len(html)} chars)")
        try:
            processed, stylesheets = await self._inline_stylesheets(html, base_url, target_folder)
            processed, images = await self._inline_images(processed, base_url, target_folder)
        except Exception as e:
            logger.error(f"Resource inlining failed for {base_url}, keeping original HTML: {e}")
            return InlineResult(html=html)

        result = InlineResult(html=processed, references=stylesheets + images)
        logger.info(
            f"Inlined {result.inlined_count} of {len(result.references)} resources "
            f"for {base_url} ({result.failed_count} failed)"
        )
        return result

    # Discovery

    def _register(
        self,
        found: Dict[str, ResourceReference],
        token: str,
        base_url: str,
        kind: ResourceKind,
    ) -> None:
        """Record a raw token under its absolute URL, deduplicating aliases."""
        if not is_inlinable(html_lib.unescape(token), self.excluded_prefixes):
            return
        try:
            absolute = resolve_url(html_lib.unescape(token), base_url)
        except ValueError as e:
            logger.warning(f"Skipping unresolvable {kind.value} reference {token!r}: {e}")
            return

        if not is_inlinable(absolute, self.excluded_prefixes):
            return

        reference = found.get(absolute)
        if reference is None:
            reference = ResourceReference(
                original_token=token,
                absolute_url=absolute,
                kind=kind,
                aliases=[token],
            )
            found[absolute] = reference
        else:
            reference.add_alias(token)

    def discover_stylesheets(self, html: str, base_url: str) -> List[ResourceReference]:
        found: Dict[str, ResourceReference] = {}
        for tag_match in _LINK_TAG_RE.finditer(html):
            tag = tag_match.group(0)
            href_match = _HREF_RE.search(tag)
            if not href_match:
                continue
            href = href_match.group(1)
            if is_stylesheet_link(tag, href):
                self._register(found, href, base_url, ResourceKind.STYLESHEET)
        return list(found.values())

    def discover_images(self, html: str, base_url: str) -> List[ResourceReference]:
        found: Dict[str, ResourceReference] = {}
        for match in _IMG_QUOTED_SRC_RE.finditer(html):
            self._register(found, match.group(1), base_url, ResourceKind.IMAGE)
        for match in _IMG_UNQUOTED_SRC_RE.finditer(html):
            token = match.group(1)
            if "=" not in token:
                self._register(found, token, base_url, ResourceKind.IMAGE)
        for match in _BACKGROUND_IMAGE_RE.finditer(html):
            self._register(found, match.group(1).strip(), base_url, ResourceKind.IMAGE)
        return list(found.values())

    # Fetching

    async def _fetch_all(self, references: List[ResourceReference]) -> List[Optional[bytes]]:
        semaphore = asyncio.Semaphore(self.max_concurrent_fetches)

        async def fetch_one(reference: ResourceReference) -> Optional[bytes]:
            async with semaphore:
                try:
                    fetch = self.backend.fetch_resource(reference.absolute_url)
                    if self.resource_timeout_s:
                        data = await asyncio.wait_for(fetch, timeout=self.resource_timeout_s)
                    else:
                        data = await fetch
                    return bytes(data)
                except asyncio.TimeoutError:
                    reference.error = f"Timed out after {self.resource_timeout_s}s"
                except Exception as e:
                    reference.error = str(e) or e.__class__.__name__
                logger.warning(
                    f"Failed to fetch {reference.kind.value} {reference.absolute_url}: {reference.error}"
                )
                return None

        return await asyncio.gather(*(fetch_one(ref) for ref in references))

    async def _save_copy(self, reference: ResourceReference, data: bytes, folder: Optional[str], subfolder: str) -> None:
        if not self.save_copies or not folder:
            return
        try:
            path = await self.backend.save_resource(reference.absolute_url, data, f"{folder}/{subfolder}")
            logger.debug(f"Saved {reference.absolute_url} to {path}")
        except Exception as e:
            logger.warning(f"Failed to save {reference.absolute_url} to {folder}/{subfolder}: {e}")

    # Substitution

    async def _inline_stylesheets(
        self,
        html: str,
        base_url: str,
        folder: Optional[str]
    ) -> Tuple[str, List[ResourceReference]]:
        references = self.discover_stylesheets(html, base_url)
        logger.debug(f"Found {len(references)} external stylesheets")
        payloads = await self._fetch_all(references)

        processed = html
        for reference, data in zip(references, payloads):
            if data is None:
                continue
            css = data.decode("utf-8", errors="replace")
            css = rewrite_css_urls(css, reference.absolute_url, base_url)
            reference.inline_form = build_inline_style(css)
            await self._save_copy(reference, data, folder, CSS_SUBFOLDER)
            processed = self._replace_links(processed, reference)
            logger.debug(f"Inlined stylesheet {reference.absolute_url}")
        return processed, references

    @staticmethod
    def _replace_links(html: str, reference: ResourceReference) -> str:
        tokens = set(reference.aliases) | {reference.absolute_url}

        def replace(match: re.Match) -> str:
            href_match = _HREF_RE.search(match.group(0))
            if href_match and href_match.group(1) in tokens:
                return reference.inline_form
            return match.group(0)

        return _LINK_TAG_RE.sub(replace, html)

    async def _inline_images(
        self,
        html: str,
        base_url: str,
        folder: Optional[str]
    ) -> Tuple[str, List[ResourceReference]]:
        references = self.discover_images(html, base_url)
        logger.debug(f"Found {len(references)} images")
        payloads = await self._fetch_all(references)

        processed = html
        for reference, data in zip(references, payloads):
            if data is None:
                continue
            reference.inline_form = build_data_url(data, reference.absolute_url)
            await self._save_copy(reference, data, folder, IMAGES_SUBFOLDER)
            processed = self._replace_image_tokens(processed, reference)
            logger.debug(f"Inlined image {reference.absolute_url}")
        return processed, references

    @staticmethod
    def _replace_image_tokens(html: str, reference: ResourceReference) -> str:
        data_url = reference.inline_form
        tokens = list(reference.aliases)
        if reference.absolute_url not in tokens:
            tokens.append(reference.absolute_url)

        for token in tokens:
            escaped = re.escape(token)
            patterns = (
                re.compile(r"((?<![\w-])src\s*=\s*[\"'])" + escaped + r"([\"'])", re.IGNORECASE),
                re.compile(r"((?<![\w-])src\s*=\s*)" + escaped + r"()(?=[\s>])", re.IGNORECASE),
                re.compile(
                    r"(background-image\s*:\s*url\(\s*[\"']?)" + escaped + r"([\"']?\s*\))",
                    re.IGNORECASE,
                ),
            )
            for pattern in patterns:
                html = pattern.sub(lambda m: m.group(1) + data_url + m.group(2), html)
        return html


async def inline(
    html: str,
    base_url: str,
    target_folder: Optional[str],
    backend: CaptureBackend,
    **options
) -> str:
    """Inline resources with a one-off :class:`ResourceInliner`."""
    return await ResourceInliner(backend, **options).inline(html, base_url, target_folder)
