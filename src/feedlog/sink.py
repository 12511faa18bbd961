"""Append-only NDJSON sink for decoded feed items."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable


class ItemSink:
    """Writes one compact JSON line per item. The file is never truncated."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def append(self, items: Iterable[dict[str, Any]]) -> int:
        lines = [json.dumps(item, ensure_ascii=False, separators=(",", ":")) for item in items]
        if not lines:
            return 0
        with self._path.open("a", encoding="utf-8") as file_obj:
            for line in lines:
                file_obj.write(line + "\n")
        return len(lines)
