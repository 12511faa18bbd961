"""Command-line entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Read feed URLs from stdin, one per line
- Wire the store, sink and fetcher into an AppState
- Run the batch and write fetched feeds to stdout as JSON lines
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import TYPE_CHECKING, TextIO

import structlog

from feedlog import __version__
from feedlog.batch import fetch_all
from feedlog.config import Settings
from feedlog.fetcher import ConditionalFetcher, build_http_client
from feedlog.sink import ItemSink
from feedlog.state import AppState
from feedlog.store import MetadataStore

if TYPE_CHECKING:
    from feedlog.models.feed import JsonFeed

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # Logs go to stderr; stdout carries the fetched feeds
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Run
# ---------------------------------------------------------------------------


def read_urls(stream: TextIO) -> list[str]:
    """One URL per line; surrounding whitespace and blank lines are ignored."""
    return [line.strip() for line in stream if line.strip()]


async def run(urls: list[str], settings: Settings) -> list[JsonFeed]:
    """Load the metadata cache and fetch every URL in bounded groups."""
    cache_dir = settings.cache.cache_dir
    cache_dir.mkdir(parents=True, exist_ok=True)

    store = MetadataStore(settings.cache.metadata_path)
    store.load(compact=settings.cache.compact_on_load)
    sink = ItemSink(settings.cache.items_path)

    async with build_http_client(settings.fetcher) as http_client:
        state = AppState(
            settings=settings,
            http_client=http_client,
            store=store,
            sink=sink,
            fetcher=ConditionalFetcher(http_client, store, sink),
        )
        return await run_batch(state, urls)


async def run_batch(state: AppState, urls: list[str]) -> list[JsonFeed]:
    if state.fetcher is None:
        raise RuntimeError("Fetcher not initialized")
    return await fetch_all(
        state.fetcher,
        urls,
        chunk_size=state.settings.fetcher.chunk_size,
        force=state.settings.fetcher.force,
    )


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main() -> None:
    settings = Settings()
    _setup_logging(settings)

    urls = read_urls(sys.stdin)
    log.info("run_starting", version=__version__, urls=len(urls), force=settings.fetcher.force)

    feeds = asyncio.run(run(urls, settings))
    for feed in feeds:
        sys.stdout.write(feed.model_dump_json(exclude_none=True) + "\n")

    log.info("run_finished", fetched=len(feeds), items=sum(len(feed.items) for feed in feeds))


if __name__ == "__main__":
    main()
