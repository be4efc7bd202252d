"""In-memory book catalog, optionally loaded from a JSON or YAML file.

File format: either a list of book mappings or ``{"books": [...]}``, each
mapping using the :class:`~bookrec.models.book.Book` field names.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable

import yaml
from pydantic import ValidationError as PydanticValidationError

from bookrec.interfaces.book_catalog import IBookCatalog
from bookrec.models.book import Book
from bookrec.utils.errors import ConfigurationError
from bookrec.utils.logging import get_logger

logger = get_logger(__name__)


class InMemoryBookCatalog(IBookCatalog):
    """Catalog held in a dict keyed by ``book_id``."""

    def __init__(self, books: Iterable[Book] = ()) -> None:
        self._books: dict[str, Book] = {}
        for book in books:
            self._books[book.book_id] = book

    @classmethod
    def from_file(cls, path: str | Path) -> InMemoryBookCatalog:
        """Load a catalog file; a missing file yields an empty catalog.

        Raises
        ------
        ConfigurationError
            If the file exists but cannot be parsed into books.
        """
        file_path = Path(path)
        if not file_path.exists():
            logger.warning("catalog_file_missing", path=str(file_path))
            return cls()

        with open(file_path, encoding="utf-8") as f:
            try:
                if file_path.suffix.lower() in (".yaml", ".yml"):
                    raw: Any = yaml.safe_load(f)
                else:
                    raw = json.load(f)
            except (json.JSONDecodeError, yaml.YAMLError) as exc:
                raise ConfigurationError(f"Cannot parse catalog {file_path}: {exc}") from exc

        records = raw.get("books", []) if isinstance(raw, dict) else raw
        if not isinstance(records, list):
            raise ConfigurationError(f"Catalog {file_path} must contain a list of books")
        try:
            books = [Book.model_validate(record) for record in records]
        except PydanticValidationError as exc:
            raise ConfigurationError(f"Invalid book in {file_path}: {exc}") from exc

        logger.info("catalog_loaded", path=str(file_path), books=len(books))
        return cls(books)

    async def get_book(self, book_id: str) -> Book | None:
        return self._books.get(book_id)

    async def all_books(self) -> list[Book]:
        return [self._books[book_id] for book_id in sorted(self._books)]

    def add(self, book: Book) -> None:
        self._books[book.book_id] = book

    def __len__(self) -> int:
        return len(self._books)

    def get_provider_name(self) -> str:
        return "memory_catalog"
