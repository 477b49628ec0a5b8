# pyright: standard

"""btrfs-snap: btrfs_snap/__logger__.py
A common rich logger for all commands.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

# Initialize basic console and handler
cons = Console(stderr=True)
rich_handler = RichHandler(console=cons, show_path=False)
# Package logger, every module logger is a child of it
logger = logging.getLogger("btrfs_snap")


def create_logger(level="INFO", show_time=True) -> None:
    """Helper function to setup logging for a command run."""
    # pylint: disable=global-statement
    global cons, rich_handler

    cons = Console(stderr=True)
    rich_handler = RichHandler(console=cons, show_time=show_time, show_path=False)

    logger.handlers.clear()
    logger.propagate = False
    logger.setLevel(level)
    logger.addHandler(rich_handler)

    logging.basicConfig(
        format="%(message)s",
        datefmt="%H:%M:%S",
        level=level,
        handlers=[rich_handler],
        force=True,
    )
