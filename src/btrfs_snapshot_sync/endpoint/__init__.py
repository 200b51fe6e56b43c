# pyright: standard

"""btrfs-snapshot-sync: btrfs_snapshot_sync/endpoint/__init__.py."""

import posixpath
import urllib.parse

from ..__logger__ import logger

from .common import (
    DEFAULT_NAME_PATTERN,
    LOCAL,
    Address,
    LocalAddress,
    Node,
    RemoteAddress,
)
from .runner import CommandRunner, PipeResult

__all__ = [
    "DEFAULT_NAME_PATTERN",
    "LOCAL",
    "Address",
    "CommandRunner",
    "LocalAddress",
    "Node",
    "PipeResult",
    "RemoteAddress",
    "choose_node",
    "parse_node_spec",
]


def _mount_point(path, spec) -> str:
    if not path.startswith("/"):
        raise ValueError(f"Mount point in {spec!r} must be an absolute path")
    return posixpath.normpath(path)


def _parse_port(text, spec):
    if not text.isdigit() or not 0 < int(text) < 65536:
        raise ValueError(f"Invalid port {text!r} in {spec!r}")
    return int(text)


def parse_node_spec(spec) -> tuple[Address, str]:
    """
    Split a node specification into its address and mount point.

    Accepted forms:
        ``/mnt``                          local filesystem
        ``host:port/mnt``, ``host/mnt``   remote, optionally ``user@host``
        ``ssh://[user@]host[:port]/mnt``  remote, URL form

    Raises:
        ValueError: If the specification cannot be parsed.
    """
    spec = (spec or "").strip()
    if not spec:
        raise ValueError("Empty node specification")

    if spec.startswith("/"):
        return LOCAL, _mount_point(spec, spec)

    if "://" in spec:
        parsed = urllib.parse.urlparse(spec)
        if parsed.scheme != "ssh":
            raise ValueError(f"Unsupported scheme {parsed.scheme!r} in {spec!r}")
        if not parsed.hostname:
            raise ValueError("No hostname for SSH specified.")
        try:
            port = parsed.port
        except ValueError as e:
            raise ValueError(f"Invalid port in {spec!r}") from e
        logger.debug("Parsed SSH URL %s: %s", spec, parsed)
        address = RemoteAddress(parsed.hostname, port, parsed.username)
        return address, _mount_point(parsed.path or "/", spec)

    location, slash, path = spec.partition("/")
    if not slash:
        raise ValueError(f"Node specification {spec!r} lacks an absolute path")
    user, _, hostport = location.rpartition("@")
    host, colon, port_text = hostport.partition(":")
    if not host:
        raise ValueError(f"No hostname in node specification {spec!r}")
    port = _parse_port(port_text, spec) if colon else None
    return RemoteAddress(host, port, user or None), _mount_point("/" + path, spec)


def choose_node(
    spec,
    runner,
    snapshot_dir="",
    name_pattern=DEFAULT_NAME_PATTERN,
    btrfs="btrfs",
) -> Node:
    """Create the node described by ``spec``, executing through ``runner``."""
    address, mount_point = parse_node_spec(spec)
    node = Node(
        address=address,
        mount_point=mount_point,
        runner=runner,
        snapshot_dir=snapshot_dir,
        name_pattern=name_pattern,
        btrfs=btrfs,
    )
    logger.debug("Node created: %s (%r)", node, node)
    return node
