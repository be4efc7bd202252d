"""Configuration for bookrec: env-driven Settings, YAML tables, domain knowledge."""

from bookrec.config.loader import load_config
from bookrec.config.settings import Settings

__all__ = ["Settings", "load_config"]
