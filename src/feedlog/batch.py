"""Bounded-concurrency batch driver for the conditional fetcher."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from feedlog.errors import InvalidArgumentError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from feedlog.models.feed import JsonFeed
    from feedlog.protocols import FetcherProtocol

log = structlog.get_logger()


def chunked(urls: Sequence[str], size: int) -> list[list[str]]:
    """Split ``urls`` into consecutive groups of at most ``size``."""
    if size < 1:
        raise InvalidArgumentError(f"chunk size must be a positive integer, got {size}")
    return [list(urls[start : start + size]) for start in range(0, len(urls), size)]


async def fetch_all(
    fetcher: FetcherProtocol,
    urls: Sequence[str],
    chunk_size: int = 10,
    force: bool = False,
) -> list[JsonFeed]:
    """Fetch every URL, ``chunk_size`` at a time, and return the feeds that changed.

    Groups run one after another; each group is fully awaited before the next
    starts, so at most ``chunk_size`` requests are in flight. URLs that were
    not modified or failed are dropped. There is no retry.
    """
    results: list[JsonFeed] = []
    groups = chunked(urls, chunk_size)

    for index, group in enumerate(groups):
        values = await asyncio.gather(*(fetcher.fetch(url, force) for url in group))
        fetched = [value for value in values if value is not None]
        results.extend(fetched)
        log.debug(
            "batch_group_complete",
            group=index + 1,
            groups=len(groups),
            size=len(group),
            fetched=len(fetched),
        )

    log.info("batch_complete", urls=len(urls), fetched=len(results))
    return results
