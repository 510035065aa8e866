"""Configuration models and parser for tether.yaml."""

from tether.config.models import ProvidersConfig, TetherConfig
from tether.config.parser import ConfigError, load_config

__all__ = [
    "ConfigError",
    "ProvidersConfig",
    "TetherConfig",
    "load_config",
]
