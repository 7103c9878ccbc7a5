"""YAML configuration loader with environment variable overrides.

Configuration is layered (later layers override earlier):

  1. config/config.yaml  -- static defaults checked into the repo
  2. .env file           -- local developer overrides (not committed)
  3. Environment vars    -- set by the deployment

``load_config`` reads the YAML file first, then deep-merges the values
resolved by :class:`Settings` on top.
"""

from pathlib import Path

import yaml

from autoreply.config.settings import Settings


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.  A missing file is
            treated as empty.
        settings: Pre-built Settings; a fresh instance is read from the
            environment when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "chunking": {
            "size": settings.chunk_size,
            "overlap": settings.chunk_overlap,
            "unit": settings.chunk_unit,
        },
        "retrieval": {
            "reply_top_k": settings.reply_top_k,
            "candidate_window": settings.retrieval_candidate_window,
        },
        "pipeline": {
            "max_workers": settings.reply_max_workers,
            "timeouts": {
                "embedding": settings.embedding_timeout_seconds,
                "generation": settings.generation_timeout_seconds,
                "delivery": settings.delivery_timeout_seconds,
            },
        },
        "providers": {
            "available": settings.get_available_providers(),
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
