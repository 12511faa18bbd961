"""Application state container.

AppState is created once per run by ``cli.run`` and holds the single metadata
store for the cache directory, so every fetch shares it explicitly rather than
through module globals.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from feedlog.config import Settings
    from feedlog.protocols import FetcherProtocol, ItemSinkProtocol, MetadataStoreProtocol


@dataclass
class AppState:
    """Holds all shared runtime state for one batch run."""

    settings: Settings
    http_client: httpx.AsyncClient | None = None
    store: MetadataStoreProtocol | None = None
    sink: ItemSinkProtocol | None = None
    fetcher: FetcherProtocol | None = None
