"""Asset stores for Stagedoor.

A store maps canonical lookup keys to AssetRecord objects. Stores are filled
once, before serving starts, and are read-only afterwards; a redeploy builds a
new store and the server publishes it in one assignment.

Key classes:
- AssetRecord: One deployable file.
- MemoryAssetStore: Records held in a dict.
- DirectoryAssetStore: A build output directory, indexed up front and read lazily.
"""

from __future__ import annotations

import asyncio
import mimetypes
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Types the site ships whose registration varies between platforms.
CONTENT_TYPES = {
    ".html": "text/html",
    ".htm": "text/html",
    ".css": "text/css",
    ".js": "application/javascript",
    ".mjs": "application/javascript",
    ".json": "application/json",
    ".webmanifest": "application/manifest+json",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".xml": "application/xml",
    ".txt": "text/plain",
}


class StoreError(Exception):
    """Error raised when a store cannot produce an asset it claims to hold.

    Attributes:
        key: The lookup key being read.
        message: Human-readable description of the failure.
    """

    def __init__(self, key: str, message: str):
        self.key = key
        self.message = message
        super().__init__(f"{key}: {message}")


@dataclass(frozen=True)
class AssetRecord:
    """One deployable file.

    Attributes:
        path: Canonical lookup key, e.g. ``/images/large/foo.jpg``.
        body: File contents.
        content_type: MIME type assigned when the store was populated.
    """

    path: str
    body: bytes
    content_type: str


def guess_content_type(path: str | Path) -> str:
    """Guess a MIME type from a file extension.

    Args:
        path: File path or lookup key.

    Returns:
        MIME type, ``application/octet-stream`` when unknown.
    """
    suffix = Path(path).suffix.lower()
    if suffix in CONTENT_TYPES:
        return CONTENT_TYPES[suffix]
    guessed, _ = mimetypes.guess_type(str(path))
    return guessed or DEFAULT_CONTENT_TYPE


class MemoryAssetStore:
    """Asset store backed by a dictionary.

    Accepts either AssetRecord objects or a ``{path: (body, content_type)}``
    mapping.
    """

    def __init__(
        self,
        records: Iterable[AssetRecord] | Mapping[str, tuple[bytes, str]] = (),
    ):
        if isinstance(records, Mapping):
            records = [
                AssetRecord(path=path, body=body, content_type=content_type)
                for path, (body, content_type) in records.items()
            ]
        self._records: dict[str, AssetRecord] = {record.path: record for record in records}

    async def get(self, key: str) -> AssetRecord | None:
        return self._records.get(key)

    def keys(self) -> list[str]:
        return sorted(self._records)

    def __len__(self) -> int:
        return len(self._records)


class DirectoryAssetStore:
    """Asset store over a build output directory.

    The directory is walked once at construction to build the key index and
    assign content types. File contents are read on demand in a worker thread,
    so a slow disk never blocks the event loop.

    Attributes:
        root: Build output directory.
    """

    def __init__(self, root: Path):
        self.root = root.resolve()
        if not self.root.is_dir():
            raise FileNotFoundError(f"Expected build output directory at {root}")
        self._index = self._scan()

    def _scan(self) -> dict[str, tuple[Path, str]]:
        index: dict[str, tuple[Path, str]] = {}
        for path in sorted(self.root.rglob("*")):
            if not path.is_file():
                continue
            resolved = path.resolve()
            # Symlinks pointing outside the build directory are never served.
            try:
                resolved.relative_to(self.root)
            except ValueError:
                continue
            key = "/" + path.relative_to(self.root).as_posix()
            index[key] = (resolved, guess_content_type(path))
        return index

    async def get(self, key: str) -> AssetRecord | None:
        entry = self._index.get(key)
        if entry is None:
            return None
        file_path, content_type = entry
        try:
            body = await asyncio.to_thread(file_path.read_bytes)
        except OSError as exc:
            raise StoreError(key, f"cannot read {file_path.name}: {exc.strerror or exc}") from exc
        return AssetRecord(path=key, body=body, content_type=content_type)

    def keys(self) -> list[str]:
        return sorted(self._index)

    def content_type(self, key: str) -> str | None:
        entry = self._index.get(key)
        return entry[1] if entry else None

    def __len__(self) -> int:
        return len(self._index)

