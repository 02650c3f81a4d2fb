"""Page Picker utilities package."""

from .url_normalizer import (
    URLNormalizationError,
    normalize,
    normalize_page_url,
    is_valid_http_url,
    resolve_url,
    classify_link,
    guess_image_mime_type,
)

__all__ = [
    'URLNormalizationError',
    'normalize',
    'normalize_page_url',
    'is_valid_http_url',
    'resolve_url',
    'classify_link',
    'guess_image_mime_type',
]
