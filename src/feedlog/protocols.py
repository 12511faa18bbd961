"""Protocol interfaces for swappable components.

The fetcher and AppState reference these protocols, not the concrete
implementations, so tests can use lightweight in-memory stand-ins.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from collections.abc import Iterable

    from feedlog.models.feed import JsonFeed


class MetadataStoreProtocol(Protocol):
    """Interface for the conditional-request metadata store."""

    def get(self, key: str) -> str | None: ...

    def put(self, key: str, value: str) -> None: ...


class ItemSinkProtocol(Protocol):
    """Interface for the append-only item log."""

    def append(self, items: Iterable[dict[str, Any]]) -> int: ...


class FeedDecoder(Protocol):
    """Turns raw feed text into a JsonFeed. Raises FeedDecodeError on failure."""

    def __call__(self, text: str, *, normalize: bool = True) -> JsonFeed: ...


class FetcherProtocol(Protocol):
    """Interface for the per-URL conditional fetcher."""

    async def fetch(self, url: str, force: bool = False) -> JsonFeed | None: ...
