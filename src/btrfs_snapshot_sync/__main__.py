# pyright: standard

"""btrfs-snapshot-sync: btrfs_snapshot_sync/__main__.py.

Incrementally replicate btrfs snapshots from one host to another.
Requires Python >= 3.11 and btrfs-progs on both hosts.
"""

import sys

from .cli.dispatcher import main

if __name__ == "__main__":
    sys.exit(main())
