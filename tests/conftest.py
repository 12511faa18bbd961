"""Shared test fixtures for the feedlog test suite."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from feedlog.config import Settings
from feedlog.sink import ItemSink
from feedlog.store import MetadataStore

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture()
def store_path(tmp_path: Path) -> Path:
    return tmp_path / "last-updated.kv"


@pytest.fixture()
def store(store_path: Path) -> MetadataStore:
    """An empty, loaded store backed by a file in tmp_path."""
    kv = MetadataStore(store_path)
    kv.load()
    return kv


@pytest.fixture()
def sink(tmp_path: Path) -> ItemSink:
    return ItemSink(tmp_path / "allitems.ndjson")


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """Settings pointing every cache file into tmp_path."""
    return Settings(cache={"dir": str(tmp_path / "cache")})
