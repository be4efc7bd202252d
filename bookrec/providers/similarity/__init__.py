"""Similarity payload sources."""

from bookrec.providers.similarity.content_similarity_source import (
    ContentSimilaritySource,
    cosine_pairs,
)

__all__ = ["ContentSimilaritySource", "cosine_pairs"]
