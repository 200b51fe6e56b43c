"""Pytest configuration and shared fixtures."""

import pytest

from btrfs_snapshot_sync.endpoint import LOCAL, Node, PipeResult, RemoteAddress

SNAPSHOT_PATTERN = r"\d\d\d\d-\d\d-\d\d_\d\d-\d\d"


def make_listing(paths) -> str:
    """Render paths the way ``btrfs subvolume list`` prints them."""
    return "".join(
        f"ID {6900 + i} gen {23900 + i} top level 5 path {path}\n"
        for i, path in enumerate(paths)
    )


class FakeRunner:
    """Runner double answering listing commands from canned output.

    ``listings`` maps ``(address, mount_point)`` to listing text.
    ``pipe_errors`` holds one entry per expected ``exec_pipe`` call: an
    exception to raise, or None for success.
    """

    def __init__(self, listings=None, pipe_errors=None, delete_error=None):
        self.listings = dict(listings or {})
        self.pipe_errors = list(pipe_errors or [])
        self.delete_error = delete_error
        self.bytes_per_transfer = 4096
        self.exec_calls = []
        self.pipe_calls = []
        self.pipe_timeouts = []

    def exec(self, address, command):
        self.exec_calls.append((address, list(command)))
        if command[1:3] == ["subvolume", "list"]:
            return self.listings[(address, command[3])]
        if command[1:3] == ["subvolume", "delete"]:
            if self.delete_error is not None:
                raise self.delete_error
            return ""
        raise AssertionError(f"unexpected command: {command}")

    def exec_pipe(self, stages, progress=None, timeout=None, cancel=None):
        self.pipe_calls.append([(address, list(command)) for address, command in stages])
        self.pipe_timeouts.append(timeout)
        if self.pipe_errors:
            error = self.pipe_errors.pop(0)
            if error is not None:
                raise error
        return PipeResult(output="", bytes_transmitted=self.bytes_per_transfer)

    @property
    def deletes(self):
        return [
            command
            for _, command in self.exec_calls
            if command[1:3] == ["subvolume", "delete"]
        ]


@pytest.fixture
def remote_address():
    return RemoteAddress("foo", 123)


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def make_nodes(remote_address):
    """Build a local source (/foo, dir bar) and a remote destination (foo:123/foo)."""

    def _make(runner, source_snapshots, destination_snapshots):
        runner.listings[(LOCAL, "/foo")] = make_listing(
            ["bar/" + name for name in source_snapshots] + ["other"]
        )
        runner.listings[(remote_address, "/foo")] = make_listing(destination_snapshots)
        source = Node(LOCAL, "/foo", runner, snapshot_dir="bar", name_pattern=r"\d+")
        destination = Node(remote_address, "/foo", runner, name_pattern=r"\d+")
        return source, destination

    return _make


@pytest.fixture
def tmp_config_dir(tmp_path):
    """Create a temporary config directory."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def sample_config_toml(tmp_path):
    """Return a sample valid TOML configuration string."""
    return f"""
[global]
btrfs = "/usr/bin/btrfs"
ssh = "ssh"
ssh_opts = ["-i", "/root/.ssh/backup_key"]
progress = true
timeout = 3600
lock_file = "{tmp_path / 'sync.lock'}"

[source]
node = "/mnt"
snapshot_dir = "snapshot"
name_pattern = '{SNAPSHOT_PATTERN}'

[destination]
node = "target-host:10022/mnt"
"""


@pytest.fixture
def minimal_config_toml():
    """Return a minimal valid TOML configuration string."""
    return """
[source]
node = "/mnt"

[destination]
node = "backup/mnt"
"""


@pytest.fixture
def config_file(tmp_config_dir, sample_config_toml):
    """Create a temporary config file with sample content."""
    config_path = tmp_config_dir / "config.toml"
    config_path.write_text(sample_config_toml)
    return config_path


@pytest.fixture
def minimal_config_file(tmp_config_dir, minimal_config_toml):
    """Create a temporary config file with minimal content."""
    config_path = tmp_config_dir / "minimal.toml"
    config_path.write_text(minimal_config_toml)
    return config_path
