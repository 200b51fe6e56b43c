"""Parsing and filtering of ``btrfs subvolume list`` output.

A listing line looks like::

    ID 6988 gen 23968 top level 5 path snapshot/2019-01-11_03-00

Only the trailing path is of interest. Paths are then narrowed down to the
snapshots living directly in a node's snapshot directory whose name matches
the configured pattern.
"""

import logging
import posixpath
import re
from collections import Counter

from .. import __util__

logger = logging.getLogger(__name__)

LISTING_FIELDS = 9


def parse_subvolumes(text: str) -> list[str]:
    """Return the subvolume paths of a listing, in listing order.

    Raises:
        MalformedListingError: If a non-empty line does not have exactly
            nine whitespace separated fields.
    """
    paths = []
    for line in text.splitlines():
        if not line.strip():
            continue
        tokens = line.split()
        if len(tokens) != LISTING_FIELDS:
            raise __util__.MalformedListingError(line)
        paths.append(tokens[LISTING_FIELDS - 1])
    return paths


def normalize_snapshot_dir(snapshot_dir: str) -> str:
    """Normalize a snapshot directory; ``""`` means the mount point itself."""
    snapshot_dir = (snapshot_dir or "").rstrip("/")
    if not snapshot_dir:
        return ""
    snapshot_dir = posixpath.normpath(snapshot_dir)
    return "" if snapshot_dir == "." else snapshot_dir


def filter_snapshots(paths, snapshot_dir, name_pattern) -> list[str]:
    """Return base names of paths directly inside ``snapshot_dir`` matching the pattern."""
    directory = normalize_snapshot_dir(snapshot_dir)
    pattern = re.compile(name_pattern)
    names = []
    for path in paths:
        parent, name = posixpath.split(path)
        if normalize_snapshot_dir(parent) != directory:
            continue
        if pattern.fullmatch(name):
            names.append(name)
        else:
            logger.debug("Ignoring subvolume not matching snapshot pattern: %s", path)
    return names


def make_snapshot_set(names) -> list[str]:
    """Sort snapshot names ascending, refusing duplicates."""
    duplicates = [name for name, count in Counter(names).items() if count > 1]
    if duplicates:
        raise __util__.DuplicateSnapshotError(duplicates)
    return sorted(names)
