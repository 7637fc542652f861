"""Request path handling for Stagedoor.

Key functions:
    normalize_path: Map a request path to a store lookup key.
    request_path_from_target: Extract the decoded path from a raw request target.

Key classes:
    HeuristicPathNormalizer: Directory detection by the "no dot in the last segment" rule.
    ManifestPathNormalizer: Directory detection backed by the keys a store holds.
"""

from __future__ import annotations

from collections.abc import Iterable
from urllib.parse import unquote, urlsplit

INDEX_FILE = "index.html"


def normalize_path(request_path: str) -> str:
    """Map a request path to the key used to query the asset store.

    The root maps to ``/index.html``. One trailing slash is stripped from any
    other path, and a path whose last segment has no dot is treated as a
    directory and gets ``/index.html`` appended.

    Args:
        request_path: Decoded URL path.

    Returns:
        Lookup key.

    Examples:
        >>> normalize_path("/")
        '/index.html'

        >>> normalize_path("/about/")
        '/about/index.html'

        >>> normalize_path("/styles.css")
        '/styles.css'
    """
    if request_path == "/":
        return f"/{INDEX_FILE}"
    path = request_path
    if path.endswith("/"):
        path = path[:-1]
    if not _looks_like_file(path):
        return f"{path}/{INDEX_FILE}"
    return path


def _looks_like_file(path: str) -> bool:
    return "." in path.rsplit("/", 1)[-1]


def request_path_from_target(target: str) -> str:
    """Extract the decoded path from a raw HTTP request target.

    Query string and fragment are dropped and percent escapes decoded.

    Args:
        target: Request target as sent on the request line (``/a%20b/?x=1``).

    Returns:
        Decoded path, ``/`` when the target carries none.
    """
    if "://" in target:
        raw = urlsplit(target).path
    else:
        # "//host"-looking origin-form targets are paths, not authorities.
        raw = target.split("#", 1)[0].split("?", 1)[0]
    path = unquote(raw)
    if not path.startswith("/"):
        path = "/" + path
    return path


class HeuristicPathNormalizer:
    """Normalizer using the dot-in-last-segment rule of normalize_path."""

    def normalize(self, request_path: str) -> str:
        return normalize_path(request_path)


class ManifestPathNormalizer:
    """Normalizer that consults the store's key list before guessing.

    A directory literally named ``tour.2025`` would be taken for a file by the
    dot rule; when the store holds ``/tour.2025/index.html`` this normalizer
    routes there instead. Paths it knows nothing about fall back to
    normalize_path.

    Attributes:
        keys: Keys known to exist in the store.
    """

    def __init__(self, keys: Iterable[str]):
        self.keys = frozenset(keys)

    def normalize(self, request_path: str) -> str:
        if request_path == "/":
            return normalize_path(request_path)
        path = request_path[:-1] if request_path.endswith("/") else request_path
        index_key = f"{path}/{INDEX_FILE}"
        if index_key in self.keys:
            return index_key
        if path in self.keys:
            return path
        return normalize_path(request_path)
