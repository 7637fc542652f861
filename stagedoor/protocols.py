"""Protocol definitions for Stagedoor.

The responder depends on these interfaces rather than on concrete stores or
normalizers, so a build directory, an in-memory map or any other backend can
be substituted without touching the request logic.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .stores import AssetRecord


@runtime_checkable
class AssetStore(Protocol):
    """Protocol for read-only asset stores.

    Stores are populated once, before any request is served, and are never
    mutated while requests are in flight.
    """

    @abstractmethod
    async def get(self, key: str) -> AssetRecord | None:
        """Look up an asset by its exact key.

        Args:
            key: Canonical lookup key such as ``/images/large/foo.jpg``.

        Returns:
            The stored record, or None when the key is absent.

        Raises:
            StoreError: If the underlying storage cannot be read.
        """
        ...

    @abstractmethod
    def keys(self) -> list[str]:
        """Return every key held by the store, sorted."""
        ...


@runtime_checkable
class PathNormalizer(Protocol):
    """Protocol for mapping request paths to store lookup keys."""

    @abstractmethod
    def normalize(self, request_path: str) -> str:
        """Map a decoded request path to a lookup key.

        Args:
            request_path: URL path without query string, percent-decoded.

        Returns:
            The key to query the asset store with.
        """
        ...
