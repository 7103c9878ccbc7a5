"""Configuration module: exports Settings and load_config."""

from autoreply.config.loader import load_config
from autoreply.config.settings import Settings

__all__ = ["Settings", "load_config"]
