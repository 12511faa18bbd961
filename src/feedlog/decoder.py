"""RSS / Atom / RDF decoding via feedparser.

``decode_feed`` is the one seam between feedlog and the wire formats: it takes
raw body text and returns a JsonFeed. With ``normalize`` the entries are mapped
onto JSON Feed 1.1 item fields; without it the raw feedparser entries are
passed through (minus the ``*_parsed`` struct_time values, which are not JSON
serialisable).
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import feedparser

from feedlog.errors import FeedDecodeError
from feedlog.models.feed import JsonFeed

if TYPE_CHECKING:
    from time import struct_time

JSON_FEED_VERSION = "https://jsonfeed.org/version/1.1"


def _isoformat(parsed: struct_time | None) -> str | None:
    if not parsed:
        return None
    return datetime(*parsed[:6], tzinfo=UTC).isoformat()


def _self_link(links: list[dict[str, Any]]) -> str | None:
    for link in links:
        if link.get("rel") == "self" and link.get("href"):
            return link["href"]
    return None


def _normalize_entry(entry: dict[str, Any]) -> dict[str, Any]:
    contents = entry.get("content") or []
    authors = [
        {key: value for key, value in (("name", a.get("name")), ("url", a.get("href"))) if value}
        for a in entry.get("authors") or []
    ]
    item: dict[str, Any] = {
        "id": entry.get("id") or entry.get("link") or entry.get("title"),
        "url": entry.get("link"),
        "title": entry.get("title"),
        "content_html": contents[0].get("value") if contents else None,
        "summary": entry.get("summary"),
        "date_published": _isoformat(entry.get("published_parsed")),
        "date_modified": _isoformat(entry.get("updated_parsed")),
        "authors": [a for a in authors if a] or None,
        "tags": [t["term"] for t in entry.get("tags") or [] if t.get("term")] or None,
    }
    if item["content_html"] is None and item["summary"] is not None:
        item["content_html"] = item["summary"]
    return {key: value for key, value in item.items() if value is not None}


def _raw_entry(entry: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in entry.items() if not key.endswith("_parsed")}


def decode_feed(text: str, *, normalize: bool = True) -> JsonFeed:
    """Decode an XML feed document into a JsonFeed.

    Raises FeedDecodeError when the text is neither a recognisable feed nor
    yields any entries, including an empty body, which feedparser does not
    flag as bozo.
    """
    parsed = feedparser.parse(text)
    version = parsed.get("version")
    if not parsed.entries and not version:
        reason = parsed.get("bozo_exception")
        raise FeedDecodeError(f"Unable to decode feed: {reason or 'unknown format'}")

    channel = parsed.feed
    convert = _normalize_entry if normalize else _raw_entry
    return JsonFeed(
        version=JSON_FEED_VERSION if normalize else version or None,
        title=channel.get("title"),
        home_page_url=channel.get("link"),
        feed_url=_self_link(channel.get("links") or []),
        description=channel.get("subtitle"),
        items=[convert(entry) for entry in parsed.entries],
    )
