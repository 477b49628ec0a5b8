# pyright: standard

"""btrfs-snap: btrfs_snap/__main__.py.

Take btrfs snapshots, prune them along retention tiers and back them up
incrementally to another location.
"""

import sys

from .cli.dispatcher import main

if __name__ == "__main__":
    sys.exit(main())
