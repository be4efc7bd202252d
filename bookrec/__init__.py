"""bookrec — book recommendation orchestration and freshness service."""

__version__ = "0.1.0"
