"""Configuration schema definitions using dataclasses.

Defines the structure for TOML configuration with sensible defaults.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional


@dataclass
class TierConfig:
    """Retention tier configuration.

    Attributes:
        interval: Minimum time between two snapshots kept by this tier
        size: Number of snapshots this tier keeps
        source: Interval literal as written in the config file (e.g. "1h")
    """

    interval: timedelta
    size: int
    source: str = ""


@dataclass
class ProfileConfig:
    """Profile configuration.

    A snapshot profile has ``subvolume`` set and takes snapshots of it.
    A backup profile has ``backup`` set to the name of another profile and
    copies that profile's snapshots into its own storage.

    Attributes:
        name: Profile name (key in the profiles table)
        storage: Directory holding this profile's snapshots
        subvolume: Subvolume to snapshot (snapshot profiles)
        backup: Name of the source profile (backup profiles)
        tiers: Retention tiers, finest first
    """

    name: str
    storage: str
    subvolume: Optional[str] = None
    backup: Optional[str] = None
    tiers: list[TierConfig] = field(default_factory=list)

    @property
    def is_backup(self) -> bool:
        return self.backup is not None


@dataclass
class GlobalConfig:
    """Global configuration settings.

    Attributes:
        btrfs_bin: Name or path of the btrfs binary
    """

    btrfs_bin: str = "btrfs"


@dataclass
class Config:
    """Root configuration object.

    Attributes:
        global_config: Global settings
        profiles: Profiles keyed by name
    """

    global_config: GlobalConfig = field(default_factory=GlobalConfig)
    profiles: dict[str, ProfileConfig] = field(default_factory=dict)

    def get_profile(self, name: str) -> ProfileConfig:
        """Look up a profile by name.

        Raises:
            KeyError: With the list of known profiles if ``name`` is unknown
        """
        try:
            return self.profiles[name]
        except KeyError:
            known = ", ".join(repr(n) for n in sorted(self.profiles)) or "none"
            raise KeyError(
                f"profile {name!r} unknown, known profiles are: {known}"
            ) from None

    def get_source_profile(self, profile: ProfileConfig) -> ProfileConfig:
        """Return the profile a backup profile copies from."""
        if profile.backup is None:
            raise ValueError(f"profile {profile.name!r} is not a backup profile")
        return self.get_profile(profile.backup)
