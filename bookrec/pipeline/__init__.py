"""Recommendation pipeline: strategy fan-out, merging and ranking."""

from bookrec.pipeline.orchestrator import RecommendationOrchestrator

__all__ = ["RecommendationOrchestrator"]
