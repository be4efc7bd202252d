"""Scoring oracle adapters."""

from bookrec.providers.oracle.http_oracle import HttpScoringOracle

__all__ = ["HttpScoringOracle"]
