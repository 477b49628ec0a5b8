"""TOML configuration loading and validation.

Handles config file discovery, parsing, and validation with helpful error messages.
"""

import tomllib
from datetime import timedelta
from pathlib import Path
from typing import Any

from .. import __util__
from .schema import Config, GlobalConfig, ProfileConfig, TierConfig


class ConfigError(Exception):
    """Configuration loading or validation error."""

    pass


# Config file search paths in priority order
CONFIG_PATHS = [
    Path.home() / ".config" / "btrfs-snap" / "config.toml",
    Path("/etc/btrfs-snap/config.toml"),
]


def find_config_file(explicit_path: str | None = None) -> Path | None:
    """Find configuration file.

    Args:
        explicit_path: Explicitly specified config path (highest priority)

    Returns:
        Path to config file, or None if not found
    """
    if explicit_path:
        path = Path(explicit_path)
        if path.exists():
            return path
        raise ConfigError(f"Config file not found: {explicit_path}")

    for path in CONFIG_PATHS:
        if path.exists():
            return path

    return None


def parse_interval(text: Any) -> timedelta:
    """Parse an interval literal, raising ConfigError if it is invalid."""
    if not isinstance(text, str):
        raise ConfigError(f"invalid interval {text!r}: must be a string like '1h'")
    try:
        return __util__.parse_interval(text)
    except ValueError as e:
        raise ConfigError(str(e)) from e


def _check_table(data: Any, what: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ConfigError(f"{what} must be a table, got {data!r}")
    return data


def _get_string(data: dict[str, Any], key: str, prefix: str) -> str | None:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ConfigError(f"{prefix}{key} must be a string, got {value!r}")
    return value


def _parse_tier(data: dict[str, Any]) -> TierConfig:
    """Parse tier configuration from dict."""
    data = _check_table(data, "tier")
    if "interval" not in data:
        raise ConfigError("interval is missing")
    if "size" not in data:
        raise ConfigError("size is missing")

    size = data["size"]
    if not isinstance(size, int) or isinstance(size, bool) or size <= 0:
        raise ConfigError(f"size must be a positive integer, got {size!r}")

    return TierConfig(
        interval=parse_interval(data["interval"]),
        size=size,
        source=data["interval"],
    )


def _parse_profile(name: str, data: dict[str, Any]) -> ProfileConfig:
    """Parse profile configuration from dict."""
    prefix = f"profile {name!r}: "
    data = _check_table(data, f"profile {name!r}")
    storage = _get_string(data, "storage", prefix)
    if storage is None:
        raise ConfigError(f"{prefix}storage is missing")

    subvolume = _get_string(data, "subvolume", prefix)
    backup = _get_string(data, "backup", prefix)
    if subvolume is None and backup is None:
        raise ConfigError(f"profile {name!r}: needs either subvolume or backup")
    if subvolume is not None and backup is not None:
        raise ConfigError(f"profile {name!r}: subvolume and backup are exclusive")

    raw_tiers = data.get("tiers", [])
    if not isinstance(raw_tiers, list):
        raise ConfigError(f"{prefix}tiers must be an array of tables")
    tiers = []
    for i, tier_data in enumerate(raw_tiers):
        try:
            tiers.append(_parse_tier(tier_data))
        except ConfigError as e:
            raise ConfigError(
                f"profile {name!r}: tier #{i + 1}/{len(raw_tiers)}: {e}"
            ) from e

    return ProfileConfig(
        name=name,
        storage=storage,
        subvolume=subvolume,
        backup=backup,
        tiers=tiers,
    )


def _parse_global(data: dict[str, Any]) -> GlobalConfig:
    """Parse global configuration from dict."""
    data = _check_table(data, "global")
    return GlobalConfig(
        btrfs_bin=_get_string(data, "btrfs_bin", "global: ") or "btrfs",
    )


def _validate_config(config: Config) -> list[str]:
    """Validate configuration and return list of warnings.

    Raises:
        ConfigError: If a backup profile refers to an unknown profile
    """
    warnings = []

    if not config.profiles:
        warnings.append("No profiles configured")

    for name, profile in config.profiles.items():
        if profile.backup is not None:
            if profile.backup not in config.profiles:
                raise ConfigError(
                    f"profile {name!r}: backup source {profile.backup!r} is not a known profile"
                )
            if profile.backup == name:
                raise ConfigError(f"profile {name!r}: cannot back up itself")

        if not profile.tiers:
            warnings.append(
                f"Profile '{name}' has no tiers, pruning would delete all its snapshots"
            )

    # Check for shared storage directories
    storages = [str(Path(p.storage)) for p in config.profiles.values()]
    if len(storages) != len(set(storages)):
        warnings.append("Several profiles share a storage directory")

    return warnings


def load_config(path: Path | str) -> tuple[Config, list[str]]:
    """Load and validate configuration from TOML file.

    Args:
        path: Path to configuration file

    Returns:
        Tuple of (Config object, list of warnings)

    Raises:
        ConfigError: If config is invalid or cannot be parsed
    """
    path = Path(path)

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML syntax: {e}")
    except OSError as e:
        raise ConfigError(f"Cannot read config file: {e}")

    return parse_config(data)


def parse_config(data: dict[str, Any]) -> tuple[Config, list[str]]:
    """Build and validate a Config from already decoded TOML data."""
    global_config = _parse_global(data.get("global", {}))

    profiles = {}
    raw_profiles = _check_table(data.get("profiles", {}), "profiles")
    for name, profile_data in raw_profiles.items():
        profiles[name] = _parse_profile(name, profile_data)

    config = Config(global_config=global_config, profiles=profiles)

    # Validate and collect warnings
    warnings = _validate_config(config)

    return config, warnings


def generate_example_config() -> str:
    """Generate example configuration file content."""
    return """# btrfs-snap configuration

[global]
btrfs_bin = "btrfs"

# Local snapshots of /home, taken by a timer every 15 minutes
[profiles.home]
subvolume = "/home"
storage = "/.snapshots/home"

# Tiers go from the finest to the coarsest interval. Intervals are
# <number><unit> with s, m (minutes), h, d, w, M (months), y.
[[profiles.home.tiers]]
interval = "15m"
size = 8

[[profiles.home.tiers]]
interval = "1h"
size = 24

[[profiles.home.tiers]]
interval = "1d"
size = 7

# Off-device copy of the home snapshots with a longer history
[profiles.home-usb]
backup = "home"
storage = "/mnt/usb/snapshots/home"

[[profiles.home-usb.tiers]]
interval = "1d"
size = 14

[[profiles.home-usb.tiers]]
interval = "1w"
size = 8

[[profiles.home-usb.tiers]]
interval = "1M"
size = 12
"""
