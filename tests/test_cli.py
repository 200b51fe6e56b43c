"""Tests for the command line entry point and the sync and list commands."""

import signal
import threading

import filelock
import pytest

from btrfs_snapshot_sync import __util__, __version__
from btrfs_snapshot_sync.cli import main
from btrfs_snapshot_sync.cli.dispatcher import create_subcommand_parser
from btrfs_snapshot_sync.cli.sync_cmd import cancel_on_signals
from btrfs_snapshot_sync.config import loader
from btrfs_snapshot_sync.endpoint import LOCAL, RemoteAddress

from .conftest import FakeRunner, make_listing

TARGET = RemoteAddress("target-host", 10022)


@pytest.fixture
def no_default_config(tmp_path, monkeypatch):
    monkeypatch.setattr(loader, "CONFIG_PATHS", [tmp_path / "absent.toml"])


@pytest.fixture
def runner(monkeypatch):
    """Replace the real command runner with a FakeRunner for the sample config."""
    fake = FakeRunner(
        listings={
            (LOCAL, "/mnt"): make_listing(
                [
                    "home",
                    "snapshot/2019-01-11_03-00",
                    "snapshot/2019-01-12_03-00",
                    "snapshot/2019-01-13_03-00",
                ]
            ),
            (TARGET, "/mnt"): make_listing(["2019-01-11_03-00"]),
        }
    )
    monkeypatch.setattr(
        "btrfs_snapshot_sync.cli.common.CommandRunner", lambda **kwargs: fake
    )
    return fake


class TestDispatcher:
    """Tests for argument parsing and dispatching."""

    def test_version(self, capsys):
        assert main(["--version"]) == 0
        assert __version__ in capsys.readouterr().out

    def test_no_command(self, capsys):
        assert main([]) == 1
        assert "No command specified" in capsys.readouterr().out

    def test_sync_arguments(self):
        parser = create_subcommand_parser()
        args = parser.parse_args(
            ["-c", "cfg.toml", "--debug", "sync", "/mnt", "nas/mnt", "--dry-run"]
        )
        assert args.command == "sync"
        assert args.config == "cfg.toml"
        assert args.debug is True
        assert args.source == "/mnt"
        assert args.destination == "nas/mnt"
        assert args.dry_run is True

    def test_unknown_subcommand(self):
        with pytest.raises(SystemExit):
            main(["frobnicate"])


class TestSync:
    """Tests for the sync command."""

    def test_sends_new_snapshots(self, config_file, runner):
        assert main(["-c", str(config_file), "sync"]) == 0

        assert runner.pipe_calls == [
            [
                (
                    LOCAL,
                    [
                        "/usr/bin/btrfs",
                        "send",
                        "-p",
                        "/mnt/snapshot/2019-01-11_03-00",
                        "/mnt/snapshot/2019-01-12_03-00",
                    ],
                ),
                (TARGET, ["/usr/bin/btrfs", "receive", "/mnt"]),
            ],
            [
                (
                    LOCAL,
                    [
                        "/usr/bin/btrfs",
                        "send",
                        "-p",
                        "/mnt/snapshot/2019-01-12_03-00",
                        "/mnt/snapshot/2019-01-13_03-00",
                    ],
                ),
                (TARGET, ["/usr/bin/btrfs", "receive", "/mnt"]),
            ],
        ]

    def test_config_timeout_passed(self, config_file, runner):
        assert main(["-c", str(config_file), "sync"]) == 0
        assert runner.pipe_timeouts == [3600, 3600]

    def test_zero_timeout_disables_deadline(self, config_file, runner):
        """Test that --timeout 0 overrides the configured deadline with none."""
        assert main(["-c", str(config_file), "sync", "--timeout", "0"]) == 0

        assert runner.pipe_timeouts == [None, None]
        assert runner.deletes == []

    def test_negative_timeout_rejected(self, config_file, runner):
        with pytest.raises(SystemExit):
            main(["-c", str(config_file), "sync", "--timeout", "-5"])
        assert runner.exec_calls == []

    def test_dry_run(self, config_file, runner):
        assert main(["-c", str(config_file), "sync", "--dry-run"]) == 0
        assert runner.pipe_calls == []

    def test_transfer_failure(self, config_file, runner):
        runner.pipe_errors = [
            __util__.PipelineError([__util__.CommandError(["btrfs"], 1, "broken")])
        ]

        assert main(["-c", str(config_file), "sync"]) == 1

        assert len(runner.pipe_calls) == 1
        assert runner.deletes == [
            ["/usr/bin/btrfs", "subvolume", "delete", "/mnt/2019-01-12_03-00"]
        ]

    def test_no_common_ancestor(self, config_file, runner):
        runner.listings[(TARGET, "/mnt")] = make_listing(["2018-12-31_03-00"])
        assert main(["-c", str(config_file), "sync"]) == 1
        assert runner.pipe_calls == []

    def test_listing_failure(self, config_file, runner):
        runner.listings[(TARGET, "/mnt")] = "not a listing\n"
        assert main(["-c", str(config_file), "sync"]) == 1

    @pytest.mark.usefixtures("no_default_config")
    def test_no_config(self):
        assert main(["sync"]) == 1

    def test_lock_held(self, config_file, runner, tmp_path):
        """Test that a second concurrent run refuses to start."""
        with filelock.FileLock(str(tmp_path / "sync.lock")):
            assert main(["-c", str(config_file), "sync"]) == 1
        assert runner.exec_calls == []


class TestList:
    """Tests for the list command."""

    def test_shows_pending(self, config_file, runner, capsys):
        assert main(["-c", str(config_file), "list"]) == 0

        out = capsys.readouterr().out
        assert "2019-01-13_03-00" in out
        assert "pending (2)" in out
        assert "2019-01-13_03-00 (parent 2019-01-12_03-00)" in out
        assert "home" not in out
        assert runner.pipe_calls == []

    def test_unseeded(self, config_file, runner, capsys):
        runner.listings[(TARGET, "/mnt")] = ""
        assert main(["-c", str(config_file), "list"]) == 0
        assert "seed it with a full copy" in capsys.readouterr().out

    def test_no_common_ancestor(self, config_file, runner, capsys):
        runner.listings[(TARGET, "/mnt")] = make_listing(["2018-12-31_03-00"])
        assert main(["-c", str(config_file), "list"]) == 0
        assert "No common ancestor" in capsys.readouterr().out


class TestCancelOnSignals:
    """Tests for cancel_on_signals."""

    def test_signal_sets_event(self):
        cancel = threading.Event()
        previous = signal.getsignal(signal.SIGUSR1)

        with cancel_on_signals(cancel, signums=(signal.SIGUSR1,)):
            signal.raise_signal(signal.SIGUSR1)
            assert cancel.is_set()

        assert signal.getsignal(signal.SIGUSR1) == previous
