from __future__ import annotations

from feedlog.models.feed import JsonFeed
from feedlog.models.store import LoadResult, RecoverableLoadError

__all__ = [
    # feed
    "JsonFeed",
    # store
    "LoadResult",
    "RecoverableLoadError",
]
