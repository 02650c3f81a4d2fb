"""URL helpers for page loading, resource resolution and link classification.

This module provides URL canonicalization for pages the operator asks to load,
resolution of references found inside captured documents, and the
internal/external link classification shared with the in-page navigation
program.
"""

import posixpath
from urllib.parse import urljoin, urlparse, urlunparse, unquote, quote
from typing import Iterable, Optional

from ..models.selection import LinkClassification


class URLNormalizationError(Exception):
    """Raised when URL normalization fails."""
    pass


# References that are never fetched for inlining
DEFAULT_EXCLUDED_PREFIXES = (
    "data:",
    "blob:",
    "http://localhost",
    "https://localhost",
    "http://127.0.0.1",
)

_IMAGE_MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
}

DEFAULT_IMAGE_MIME_TYPE = "image/png"


def normalize(url: str) -> str:
    """Normalize a URL for consistent fetching and comparison.

    Args:
        url: The URL to normalize

    Returns:
        The normalized URL string

    Raises:
        URLNormalizationError: If the URL cannot be normalized

    Example:
        >>> normalize("HTTP://Example.COM:443/Path/?param=value#fragment")
        "https://example.com/Path/?param=value"
    """
    if not url or not isinstance(url, str):
        raise URLNormalizationError("URL must be a non-empty string")

    url = url.strip()
    if not url:
        raise URLNormalizationError("URL cannot be empty or whitespace only")

    try:
        parsed = urlparse(url)

        if not parsed.scheme:
            raise URLNormalizationError(f"URL missing scheme: {url}")
        if not parsed.netloc:
            raise URLNormalizationError(f"URL missing netloc: {url}")

        scheme = parsed.scheme.lower()
        if scheme not in ('http', 'https'):
            raise URLNormalizationError(f"Unsupported URL scheme: {scheme}")

        netloc = parsed.netloc.lower()
        userinfo = None
        if '@' in netloc:
            userinfo, host_port = netloc.rsplit('@', 1)
        else:
            host_port = netloc

        if host_port.startswith('['):
            # [IPv6] or [IPv6]:port
            if ']:' in host_port:
                ipv6_part, port_str = host_port.rsplit(']:', 1)
                try:
                    port_num = int(port_str)
                    if _is_default_port(scheme, port_num):
                        host_port = ipv6_part + ']'
                    else:
                        host_port = f"{ipv6_part}]:{port_num}"
                except ValueError:
                    pass
        else:
            host, port_num = host_port, None
            if ':' in host_port:
                host, port = host_port.rsplit(':', 1)
                try:
                    port_num = int(port)
                except ValueError:
                    host, port_num = host_port, None
            try:
                host = host.encode('idna').decode('ascii')
            except UnicodeError:
                # IDN encoding failed, keep original
                pass
            if port_num is None or _is_default_port(scheme, port_num):
                host_port = host
            else:
                host_port = f"{host}:{port_num}"

        netloc = f"{userinfo}@{host_port}" if userinfo else host_port

        path = parsed.path
        if not path:
            path = '/'
        else:
            try:
                path = quote(unquote(path), safe='/~@:+,;=!$&\'()*')
            except (UnicodeDecodeError, UnicodeEncodeError):
                pass

        # Fragment is never sent to the server
        return urlunparse((scheme, netloc, path, parsed.params, parsed.query, ''))

    except Exception as e:
        if isinstance(e, URLNormalizationError):
            raise
        raise URLNormalizationError(f"Failed to normalize URL '{url}': {e}")


def _is_default_port(scheme: str, port: int) -> bool:
    return (scheme == 'http' and port == 80) or (scheme == 'https' and port == 443)


def normalize_page_url(url: str) -> str:
    """Normalize a URL entered by the operator before loading it.

    Applies :func:`normalize` and then drops a trailing slash from non-root
    paths without a query, so that ``/docs/`` and ``/docs`` address the same
    cached page. Query strings are never touched.

    Raises:
        URLNormalizationError: If the URL is empty or not an http(s) URL
    """
    normalized = normalize(url)
    parsed = urlparse(normalized)
    if not parsed.query and len(parsed.path) > 1 and parsed.path.endswith('/'):
        normalized = urlunparse(parsed._replace(path=parsed.path[:-1]))
    return normalized


def is_valid_http_url(url: str) -> bool:
    """Check if a URL is a valid HTTP/HTTPS URL."""
    try:
        normalize(url)
        return True
    except URLNormalizationError:
        return False


def resolve_url(reference: str, base_url: str) -> str:
    """Resolve a reference found in a document against a base URL.

    Raises:
        ValueError: If the reference cannot be resolved
    """
    resolved = urljoin(base_url, reference.strip())
    if not urlparse(resolved).scheme:
        raise ValueError(f"Cannot resolve '{reference}' against '{base_url}'")
    return resolved


def directory_of(url: str) -> str:
    """Return the URL up to and including the last ``/`` of its path."""
    return urljoin(url, ".")


def is_absolute_reference(reference: str) -> bool:
    """Check whether a reference needs no resolution (absolute or embedded)."""
    lowered = reference.strip().lower()
    return lowered.startswith(('data:', 'blob:', 'http://', 'https://', '//', '#'))


def is_inlinable(reference: str, excluded_prefixes: Optional[Iterable[str]] = None) -> bool:
    """Check whether a discovered reference should be fetched and inlined.

    Args:
        reference: Reference as written in the document
        excluded_prefixes: Prefixes never fetched (data/blob/dev-server URLs)

    Returns:
        False for empty references and excluded prefixes
    """
    token = reference.strip()
    if not token:
        return False
    prefixes = tuple(excluded_prefixes) if excluded_prefixes is not None else DEFAULT_EXCLUDED_PREFIXES
    return not token.lower().startswith(tuple(p.lower() for p in prefixes))


def classify_link(href: str, base_url: str) -> LinkClassification:
    """Classify a link against the base URL of the captured page.

    A link is internal when its resolved absolute URL shares hostname and
    scheme with ``base_url``. Unparseable links are external.

    Example:
        >>> classify_link("/relative", "https://example.com/a")
        LinkClassification.INTERNAL
        >>> classify_link("https://other.com/b", "https://example.com/a")
        LinkClassification.EXTERNAL
    """
    try:
        link = urlparse(urljoin(base_url, href.strip()))
        base = urlparse(base_url)
        if link.hostname and link.hostname == base.hostname and link.scheme == base.scheme:
            return LinkClassification.INTERNAL
    except ValueError:
        pass
    return LinkClassification.EXTERNAL


def guess_image_mime_type(url: str) -> str:
    """Pick an image MIME type from the file extension of a URL path."""
    try:
        path = urlparse(url).path
    except ValueError:
        path = url
    extension = posixpath.splitext(path.lower())[1]
    return _IMAGE_MIME_TYPES.get(extension, DEFAULT_IMAGE_MIME_TYPE)


def hostname_slug(url: str) -> str:
    """Hostname with dots replaced by underscores, for folder names."""
    hostname = urlparse(url).hostname or "unknown"
    return hostname.replace('.', '_')
