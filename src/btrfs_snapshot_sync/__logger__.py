# pyright: standard

"""btrfs-snapshot-sync: btrfs_snapshot_sync/__logger__.py
A common logger rendering through rich.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

# Initialize basic console and handler
cons = Console(stderr=True)
rich_handler = RichHandler(console=cons, show_path=False)
# Create a logger directly
logger = logging.Logger("btrfs-snapshot-sync", logging.INFO)


def create_logger(level="INFO") -> None:
    """Helper function to setup logging for the given level name."""
    # pylint: disable=global-statement
    global cons, rich_handler

    cons = Console(stderr=True)
    rich_handler = RichHandler(console=cons, show_path=False)

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
