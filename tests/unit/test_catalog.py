"""Unit tests for InMemoryBookCatalog and its file loader."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml

from bookrec.providers.catalog.memory_catalog import InMemoryBookCatalog
from bookrec.utils.errors import ConfigurationError

_REPO_CATALOG = Path(__file__).resolve().parents[2] / "data" / "catalog.json"

_RECORD = {
    "book_id": "b-1",
    "title": "The Lighthouse",
    "author": "A. Keeper",
    "genre": "mystery",
    "features": {"genre:mystery": 1.0},
    "popularity": 12,
}


class TestInMemoryBookCatalog:
    @pytest.mark.asyncio
    async def test_lookup_and_sorted_listing(self, catalog: InMemoryBookCatalog) -> None:
        assert (await catalog.get_book("m-2")).genre == "mystery"
        assert await catalog.get_book("nope") is None
        ids = [b.book_id for b in await catalog.all_books()]
        assert ids == sorted(ids)
        assert len(catalog) == 7

    @pytest.mark.asyncio
    async def test_add_replaces_by_id(self, catalog: InMemoryBookCatalog, make_book) -> None:
        catalog.add(make_book("m-1", "mystery", popularity=1.0))
        assert (await catalog.get_book("m-1")).popularity == 1.0
        assert len(catalog) == 7


class TestFromFile:
    @pytest.mark.asyncio
    async def test_json_with_books_key(self, tmp_path: Path) -> None:
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps({"books": [_RECORD]}), encoding="utf-8")

        catalog = InMemoryBookCatalog.from_file(path)

        book = await catalog.get_book("b-1")
        assert book is not None and book.features == {"genre:mystery": 1.0}

    def test_yaml_bare_list(self, tmp_path: Path) -> None:
        path = tmp_path / "catalog.yaml"
        path.write_text(yaml.safe_dump([_RECORD]), encoding="utf-8")
        assert len(InMemoryBookCatalog.from_file(path)) == 1

    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        assert len(InMemoryBookCatalog.from_file(tmp_path / "absent.json")) == 0

    def test_unparseable_file(self, tmp_path: Path) -> None:
        path = tmp_path / "catalog.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Cannot parse"):
            InMemoryBookCatalog.from_file(path)

    def test_invalid_record(self, tmp_path: Path) -> None:
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps([{**_RECORD, "popularity": -5}]), encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Invalid book"):
            InMemoryBookCatalog.from_file(path)

    def test_books_must_be_a_list(self, tmp_path: Path) -> None:
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps({"books": {"b-1": _RECORD}}), encoding="utf-8")
        with pytest.raises(ConfigurationError):
            InMemoryBookCatalog.from_file(path)

    def test_repository_sample_catalog_loads(self) -> None:
        assert len(InMemoryBookCatalog.from_file(_REPO_CATALOG)) == 12
