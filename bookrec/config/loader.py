"""YAML configuration loader.

Configuration is layered (later layers win):

  1. Built-in tables in :mod:`bookrec.config.domain_knowledge`
  2. The YAML file at ``Settings.config_path`` (``config/config.yaml``)

Scalars (timeouts, TTLs, paths, host and port) are read straight from
:class:`~bookrec.config.settings.Settings`; the YAML file only holds tables.

``_deep_merge`` merges nested dicts recursively:

    base = {"strategy_weights": {"personalized": 1.0}}
    overrides = {"strategy_weights": {"social": 0.5}}
    result = {"strategy_weights": {"personalized": 1.0, "social": 0.5}}
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any

import yaml

from bookrec.config.domain_knowledge import CONTEXT_BOOSTS, DEFAULT_STRATEGY_WEIGHTS
from bookrec.config.settings import Settings
from bookrec.utils.errors import ConfigurationError


def load_config(path: str | None = None, settings: Settings | None = None) -> dict[str, Any]:
    """Load the YAML tables and merge them over the built-in defaults.

    Args:
        path: Path to the YAML configuration file.  A missing file is fine.
            Defaults to ``settings.config_path``.
        settings: Settings instance; a fresh one is created when needed.

    Returns:
        Dictionary with ``strategy_weights`` and ``context_boosts``.

    Raises:
        ConfigurationError: If the YAML cannot be parsed or a weight table
            holds non-numeric values.
    """
    if path is None:
        path = (settings or Settings()).config_path

    config: dict[str, Any] = {
        "strategy_weights": dict(DEFAULT_STRATEGY_WEIGHTS),
        "context_boosts": copy.deepcopy(CONTEXT_BOOSTS),
    }

    config_path = Path(path)
    if config_path.exists():
        try:
            with open(config_path) as f:
                yaml_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Cannot parse {config_path}: {exc}") from exc
        if not isinstance(yaml_config, dict):
            raise ConfigurationError(f"{config_path} must contain a mapping at the top level")
        _deep_merge(config, yaml_config)

    _validate_weights(config["strategy_weights"])
    return config


def _validate_weights(weights: Any) -> None:
    if not isinstance(weights, dict):
        raise ConfigurationError("strategy_weights must be a mapping")
    for name, value in weights.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigurationError(f"strategy weight for {name!r} must be a number, got {value!r}")


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
