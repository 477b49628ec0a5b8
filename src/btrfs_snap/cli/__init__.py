"""Command line interface for btrfs-snap."""
