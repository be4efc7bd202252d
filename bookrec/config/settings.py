"""Application settings loaded from environment variables via pydantic-settings.

Values come from (highest priority first):

  1. Environment variables, e.g. ``CACHE_TTL_SECONDS=60``
  2. A ``.env`` file in the working directory
  3. The defaults declared below

Field ``cache_ttl_seconds`` maps to env var ``CACHE_TTL_SECONDS``.  Tables
(strategy weights, context boosts) do not live here; see
``config/config.yaml`` and :mod:`bookrec.config.loader`.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """bookrec application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === User profiles ===
    # Smoothing factor of the exponentially weighted interest update.
    profile_alpha: float = Field(default=0.3, gt=0.0, le=1.0)
    profile_window_capacity: int = Field(default=200, ge=1)

    # === Recommendation cache ===
    cache_ttl_seconds: int = Field(default=900, ge=1)
    cache_max_size: int = Field(default=10_000, ge=1)

    # === Orchestration ===
    orchestration_timeout_seconds: float = Field(default=3.0, gt=0.0)
    default_count: int = Field(default=10, ge=1, le=50)
    exploration_quantile: float = Field(default=0.3, gt=0.0, le=1.0)
    social_top_k: int = Field(default=5, ge=1)

    # === Scoring oracle ===
    # Empty string = no oracle configured; personalized scoring uses the
    # dot-product baseline only.
    oracle_url: str = ""
    oracle_timeout_seconds: float = Field(default=0.8, gt=0.0)
    oracle_blend: float = Field(default=0.5, ge=0.0, le=1.0)

    # === Feedback ===
    # Empty string = in-memory store (tests, local runs).
    feedback_db_path: str = ""
    feedback_exclusion_days: int = Field(default=30, ge=0)

    # === Catalog ===
    catalog_path: str = "data/catalog.json"

    # === Freshness signals ===
    signal_dedup_ttl_seconds: int = Field(default=86_400, ge=1)

    # === App Config ===
    config_path: str = "config/config.yaml"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"
