"""Shared pytest fixtures for the bookrec test suite."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from bookrec.config.settings import Settings
from bookrec.models.book import Book
from bookrec.models.recommendation import Candidate, RecommendationSet
from bookrec.providers.catalog.memory_catalog import InMemoryBookCatalog

# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------

T0 = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)  # noqa: UP017


class FakeClock:
    """Manually advanced UTC clock, callable like ``utc_now``."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


def _make_book(book_id: str, genre: str = "mystery", popularity: float = 100.0, **kwargs: Any) -> Book:
    features = kwargs.pop("features", {f"genre:{genre}": 1.0})
    return Book(
        book_id=book_id,
        title=kwargs.pop("title", book_id.replace("-", " ").title()),
        author=kwargs.pop("author", "Anon"),
        genre=genre,
        features=features,
        popularity=popularity,
        **kwargs,
    )


def _sample_books() -> list[Book]:
    """Three mysteries, two fantasy novels, one science book, one short story."""
    return [
        _make_book("m-1", "mystery", 900, features={"genre:mystery": 1.0, "author:ellery": 1.0}, word_count=80_000),
        _make_book("m-2", "mystery", 500, features={"genre:mystery": 0.9, "genre:thriller": 0.4}, word_count=90_000),
        _make_book("m-3", "mystery", 40, features={"genre:mystery": 0.8, "topic:sea": 0.6}, word_count=6_000),
        _make_book("f-1", "fantasy", 1200, features={"genre:fantasy": 1.0, "topic:quest": 0.8}, word_count=130_000),
        _make_book("f-2", "fantasy", 30, features={"genre:fantasy": 0.9}, word_count=110_000, language="de"),
        _make_book("s-1", "science", 300, features={"genre:science": 1.0}, word_count=60_000),
        _make_book("ss-1", "short-stories", 10, features={"genre:short-stories": 1.0}, word_count=4_000),
    ]


@pytest.fixture()
def make_book() -> Callable[..., Book]:
    """Factory: ``make_book("id", "genre", popularity, **book_fields)``."""
    return _make_book


@pytest.fixture()
def books() -> list[Book]:
    return _sample_books()


@pytest.fixture()
def catalog(books: list[Book]) -> InMemoryBookCatalog:
    return InMemoryBookCatalog(books)


# ---------------------------------------------------------------------------
# Recommendation sets
# ---------------------------------------------------------------------------


def _make_set(
    user_id: str = "u1",
    book_ids: tuple[str, ...] = ("m-1",),
    generated_at: datetime = T0,
    ttl: timedelta = timedelta(minutes=15),
    request_key: str = "personalized:abc",
) -> RecommendationSet:
    return RecommendationSet(
        user_id=user_id,
        candidates=tuple(Candidate(book_id=b, combined_score=1.0) for b in book_ids),
        generated_at=generated_at,
        expires_at=generated_at + ttl,
        strategy_mix=("personalized",),
        request_key=request_key,
    )


@pytest.fixture()
def make_set() -> Callable[..., RecommendationSet]:
    return _make_set


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture()
def settings(tmp_path) -> Settings:
    """Settings isolated from the developer's environment and files."""
    return Settings(
        _env_file=None,
        catalog_path=str(tmp_path / "missing-catalog.json"),
        config_path=str(tmp_path / "missing-config.yaml"),
        feedback_db_path="",
        oracle_url="",
        orchestration_timeout_seconds=2.0,
    )
