"""Configuration system for btrfs-snap.

This module provides TOML-based configuration loading, validation,
and schema definitions for profiles and their retention tiers.
"""

from .loader import ConfigError, find_config_file, load_config, parse_config
from .schema import Config, GlobalConfig, ProfileConfig, TierConfig

__all__ = [
    "Config",
    "GlobalConfig",
    "ProfileConfig",
    "TierConfig",
    "load_config",
    "parse_config",
    "find_config_file",
    "ConfigError",
]
