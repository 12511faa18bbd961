"""Conditional HTTP feed fetcher.

All network I/O for feeds goes through a single ConditionalFetcher instance
shared across a batch. The fetcher receives an httpx.AsyncClient, the metadata
store and the item sink via constructor injection; the caller owns their
lifecycle.
"""

from __future__ import annotations

import asyncio
import re
from datetime import UTC, datetime
from email.utils import format_datetime
from typing import TYPE_CHECKING

import httpx
import structlog
from pydantic import ValidationError

from feedlog.config import FetcherSettings
from feedlog.decoder import decode_feed
from feedlog.errors import ErrorCode, FeedDecodeError, FeedLogError, FetchError, LockedError
from feedlog.models.feed import JsonFeed

if TYPE_CHECKING:
    from feedlog.protocols import FeedDecoder, ItemSinkProtocol, MetadataStoreProtocol

log = structlog.get_logger()

ETAG_SUFFIX = "-etag"
LAST_MODIFIED_SUFFIX = "-lastModified"

_LEADING_SCHEME = re.compile(r"^https?://")


def to_canonical_url(url: str) -> str:
    """Strip a leading ``http://`` or ``https://``. Nothing else is normalised."""
    return _LEADING_SCHEME.sub("", url, count=1)


def build_http_client(settings: FetcherSettings | None = None) -> httpx.AsyncClient:
    """Create the shared httpx client. Called once per run."""
    settings = settings or FetcherSettings()
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=httpx.Timeout(settings.timeout_seconds),
        headers={"User-Agent": settings.user_agent},
        limits=httpx.Limits(
            max_connections=settings.chunk_size,
            max_keepalive_connections=settings.chunk_size,
        ),
    )


def _http_date_now() -> str:
    return format_datetime(datetime.now(UTC), usegmt=True)


class ConditionalFetcher:
    """Fetches one feed URL, skipping the download when the server says 304."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        store: MetadataStoreProtocol,
        sink: ItemSinkProtocol,
        decoder: FeedDecoder = decode_feed,
    ) -> None:
        self._client = client
        self._store = store
        self._sink = sink
        self._decoder = decoder

    def conditional_headers(self, canonical_url: str) -> dict[str, str]:
        """Validators cached for ``canonical_url``. Missing values are omitted."""
        headers: dict[str, str] = {}
        etag = self._store.get(canonical_url + ETAG_SUFFIX)
        if etag:
            # A fallback timestamp is not an entity-tag
            if etag.startswith(('"', 'W/"')):
                headers["If-None-Match"] = etag
            headers["ETag"] = etag
        last_modified = self._store.get(canonical_url + LAST_MODIFIED_SUFFIX)
        if last_modified:
            headers["If-Modified-Since"] = last_modified
        return headers

    async def fetch(self, url: str, force: bool = False) -> JsonFeed | None:
        """Fetch and decode a feed.

        Returns the decoded feed on success, or None when the server answered
        304 or anything went wrong. Failures are logged here and never raised.
        """
        try:
            return await self._fetch(url, force)
        except FetchError as exc:
            log.warning(
                "fetch_failed",
                url=url,
                code=exc.code,
                status_code=exc.status_code,
                message=exc.message,
                recoverable=exc.recoverable,
            )
        except FeedLogError as exc:
            log.warning("fetch_failed", url=url, code=exc.code, message=exc.message)
        except Exception:
            log.error("fetch_unexpected_error", url=url, exc_info=True)
        return None

    async def _fetch(self, url: str, force: bool) -> JsonFeed | None:
        canonical_url = to_canonical_url(url)
        headers = {} if force else self.conditional_headers(canonical_url)

        try:
            response = await self._client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            raise FetchError(
                f"Network error fetching {url}: {exc}",
                url=url,
                code=ErrorCode.NETWORK_ERROR,
            ) from exc

        status_code = response.status_code
        if status_code < 200 or status_code >= 400:
            raise FetchError(
                f"Wrong status code {status_code} fetching {url}",
                url=url,
                status_code=status_code,
                code=ErrorCode.HTTP_STATUS,
                recoverable=status_code >= 500 or status_code in {408, 429},
            )

        if status_code == 304:
            log.info("fetch_not_modified", url=url, status_code=status_code)
            return None

        # Validators are only recorded for a body that decoded
        feed = await self._decode(url, response)

        now = _http_date_now()
        self._save_validators(
            canonical_url,
            etag=response.headers.get("etag") or now,
            last_modified=response.headers.get("last-modified") or now,
        )
        written = self._sink.append(feed.items)
        log.info("fetch_complete", url=url, status_code=status_code, items=written)
        return feed

    def _save_validators(self, canonical_url: str, *, etag: str, last_modified: str) -> None:
        # Best-effort: a locked store must not cost us the feed itself.
        try:
            self._store.put(canonical_url + ETAG_SUFFIX, etag)
            self._store.put(canonical_url + LAST_MODIFIED_SUFFIX, last_modified)
        except LockedError as exc:
            log.warning(
                "metadata_write_skipped",
                url=canonical_url,
                code=exc.code,
                message=exc.message,
            )

    async def _decode(self, url: str, response: httpx.Response) -> JsonFeed:
        content_type = response.headers.get("content-type", "")
        text = response.text

        if "json" in content_type:
            try:
                return JsonFeed.model_validate_json(text)
            except ValidationError as exc:
                raise FeedDecodeError(f"Invalid JSON feed from {url}: {exc}") from exc

        # feedparser is sync; run it off the event loop
        return await asyncio.to_thread(self._decoder, text, normalize=True)
