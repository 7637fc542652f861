"""Response header policies for Stagedoor.

Three fixed tables decide the headers added on top of an asset's own
Content-Type:

- CACHE_CONTROL: Cache-Control directive per MIME type, with a default entry.
- SECURITY_HEADERS: Hardening headers sent on every response, errors included.
- CORS_HEADERS: Sent only for paths under CORS_PREFIXES.

All tables are read-only mappings built at import time.
"""

from __future__ import annotations

from collections.abc import MutableMapping
from types import MappingProxyType

DEFAULT_POLICY = "default"

_IMMUTABLE = "public, max-age=31536000, immutable"
_ONE_WEEK = "public, max-age=604800"

CACHE_CONTROL = MappingProxyType(
    {
        # HTML revalidates every five minutes.
        "text/html": "public, max-age=300, must-revalidate",
        "image/jpeg": _IMMUTABLE,
        "image/png": _IMMUTABLE,
        "image/webp": _IMMUTABLE,
        "image/svg+xml": _IMMUTABLE,
        "text/css": _ONE_WEEK,
        "application/javascript": _ONE_WEEK,
        "text/javascript": _ONE_WEEK,
        "application/json": "public, max-age=3600",
        "font/woff2": _IMMUTABLE,
        "font/woff": _IMMUTABLE,
        DEFAULT_POLICY: "public, max-age=86400",
    }
)

SECURITY_HEADERS = MappingProxyType(
    {
        "X-Frame-Options": "DENY",
        "X-Content-Type-Options": "nosniff",
        "Referrer-Policy": "strict-origin-when-cross-origin",
    }
)

CORS_PREFIXES = ("/api/", "/contact/")

CORS_HEADERS = MappingProxyType(
    {
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type",
    }
)


def media_type(content_type: str) -> str:
    """Strip parameters from a Content-Type value.

    Examples:
        >>> media_type("text/html; charset=utf-8")
        'text/html'
    """
    return content_type.split(";", 1)[0].strip().lower()


def resolve_cache_control(content_type: str) -> str:
    """Return the Cache-Control directive for a content type.

    Parameters such as ``charset`` are ignored. Unknown or empty types get the
    default policy, so this never fails.

    Args:
        content_type: Content-Type header value.

    Returns:
        Cache-Control header value.
    """
    return CACHE_CONTROL.get(media_type(content_type or ""), CACHE_CONTROL[DEFAULT_POLICY])


def has_header(headers: MutableMapping[str, str], name: str) -> bool:
    """Check for a header name, ignoring case."""
    lowered = name.lower()
    return any(key.lower() == lowered for key in headers)


def _merge_missing(headers: MutableMapping[str, str], extra) -> MutableMapping[str, str]:
    for name, value in extra.items():
        if not has_header(headers, name):
            headers[name] = value
    return headers


def apply_security_headers(headers: MutableMapping[str, str]) -> MutableMapping[str, str]:
    """Add the security headers, keeping any value the caller already set.

    Args:
        headers: Response headers, updated in place.

    Returns:
        The same mapping.
    """
    return _merge_missing(headers, SECURITY_HEADERS)


def is_cors_path(request_path: str) -> bool:
    return request_path.startswith(CORS_PREFIXES)


def apply_cors_headers(
    headers: MutableMapping[str, str], request_path: str
) -> MutableMapping[str, str]:
    """Add CORS headers when the request path is under an API-like prefix.

    Args:
        headers: Response headers, updated in place.
        request_path: Decoded request path (before normalization).

    Returns:
        The same mapping.
    """
    if is_cors_path(request_path):
        _merge_missing(headers, CORS_HEADERS)
    return headers
