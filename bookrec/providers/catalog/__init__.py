"""Book catalog adapters."""

from bookrec.providers.catalog.memory_catalog import InMemoryBookCatalog

__all__ = ["InMemoryBookCatalog"]
