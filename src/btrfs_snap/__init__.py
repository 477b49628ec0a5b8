"""btrfs-snap: btrfs_snap/__init__.py."""


__version__ = "0.3.0"
