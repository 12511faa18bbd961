from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class JsonFeed(BaseModel):
    """A decoded feed in JSON Feed shape.

    Items are kept as opaque dicts: feedlog forwards them to the item sink
    without interpreting their fields. Unknown top-level keys are preserved.
    """

    model_config = ConfigDict(extra="allow")

    version: str | None = None
    title: str | None = None
    home_page_url: str | None = None
    feed_url: str | None = None
    description: str | None = None
    items: list[dict[str, Any]] = []
