"""Abstract base class for the book catalog.

The catalog is owned by another system; bookrec only reads it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from bookrec.models.book import Book


class IBookCatalog(ABC):
    """Read-only access to catalog records."""

    @abstractmethod
    async def get_book(self, book_id: str) -> Book | None:
        """Return the book or ``None`` if it is not in the catalog."""

    @abstractmethod
    async def all_books(self) -> list[Book]:
        """Return every book, ordered by ``book_id``."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier for this catalog backend."""
