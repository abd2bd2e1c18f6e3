"""
Tests for the ctfile-fs command line interface.

Tests cover:
- Argument parsing and usage output
- Configuration errors
- Each subcommand against a mocked client
- Error reporting ([ERROR] lines and exit codes)
- An end-to-end run against the in-memory store
"""

from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

import pytest

from ctfile_fs.__main__ import format_stats, main, parse_args
from ctfile_fs.client import CTFileClient
from ctfile_fs.exceptions import (
    AuthFailureError,
    KindMismatchError,
    NotFoundError,
    TransientNetworkError,
)
from ctfile_fs.models import EntryKind, FileStats


@pytest.fixture(autouse=True)
def no_session_env(monkeypatch):
    monkeypatch.delenv("CTFILE_SESSION", raising=False)


@pytest.fixture(autouse=True)
def mock_setup_logging():
    """Keep the CLI from reconfiguring logging (and writing log files) in tests."""
    with patch("ctfile_fs.__main__.setup_logging") as mock:
        yield mock


@pytest.fixture
def mock_client():
    """Patches CTFileClient in the CLI module; yields the instance commands receive."""
    with patch("ctfile_fs.__main__.CTFileClient") as mock_cls:
        yield mock_cls.return_value


def _stats(name, kind=EntryKind.FILE, size=0):
    return FileStats(
        name=name,
        path=f"/{name}",
        remote_id="d1" if kind is EntryKind.DIRECTORY else "f1",
        kind=kind,
        size=size,
        mtime=datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc),
    )


class TestParseArgs:
    """Tests for argument parsing."""

    def test_common_options_after_subcommand(self):
        args = parse_args(["ls", "/docs", "--session", "s", "--verbose", "--no-cache"])

        assert args.command == "ls"
        assert args.path == "/docs"
        assert args.session == "s"
        assert args.verbose is True
        assert args.no_cache is True

    def test_ls_defaults_to_root(self):
        args = parse_args(["ls"])
        assert args.path == "/"
        assert args.recursive is False

    def test_ls_recursive_flag(self):
        assert parse_args(["ls", "--recursive", "/docs"]).recursive is True

    def test_put_if_exists_choices(self):
        assert parse_args(["put", "a", "/a", "--if-exists", "error"]).if_exists == "error"
        with pytest.raises(SystemExit):
            parse_args(["put", "a", "/a", "--if-exists", "overwrite"])

    def test_no_command_prints_usage(self, capsys):
        assert main([]) == 1
        assert "Usage: ctfile-fs" in capsys.readouterr().out


class TestConfigurationErrors:
    """Tests for configuration problems reported by the CLI."""

    def test_missing_session(self, capsys, mock_client):
        assert main(["ls"]) == 1
        assert "[ERROR] Configuration error" in capsys.readouterr().out

    def test_missing_config_file(self, capsys, mock_client):
        assert main(["ls", "--config", "/nonexistent/ctfile.ini"]) == 1
        assert "Configuration file not found" in capsys.readouterr().out

    def test_session_from_environment(self, monkeypatch, mock_client):
        monkeypatch.setenv("CTFILE_SESSION", "env-session")
        mock_client.list_dir.return_value = []

        assert main(["ls"]) == 0

    def test_cli_flags_reach_config(self):
        with patch("ctfile_fs.__main__.CTFileClient") as mock_cls:
            mock_cls.return_value.list_dir.return_value = []
            main(["ls", "--session", "s", "--no-cache"])

        config = mock_cls.call_args.args[0]
        assert config.ctfile.session == "s"
        assert config.cache.enabled is False


class TestCommands:
    """Tests for the individual subcommands."""

    def test_ls(self, capsys, mock_client):
        mock_client.list_dir.return_value = [
            _stats("b.txt", size=12),
            _stats("folder", kind=EntryKind.DIRECTORY),
        ]

        assert main(["ls", "/", "--session", "s"]) == 0

        lines = capsys.readouterr().out.splitlines()
        # Directories first
        assert lines[0].endswith("folder/")
        assert lines[1].endswith("b.txt")
        assert " 12 " in lines[1]
        mock_client.close.assert_called_once()

    def test_ls_recursive_keeps_tree_order(self, capsys, mock_client):
        mock_client.list_dir.return_value = [
            _stats("zeta", kind=EntryKind.DIRECTORY),
            _stats("zeta/b.txt", size=3),
            _stats("alpha.txt", size=1),
        ]

        assert main(["ls", "-R", "/", "--session", "s"]) == 0

        mock_client.list_dir.assert_called_once_with("/", recursive=True)
        lines = capsys.readouterr().out.splitlines()
        assert lines[0].endswith("zeta/")
        assert lines[1].endswith("zeta/b.txt")
        assert lines[2].endswith("alpha.txt")

    def test_ls_not_recursive_by_default(self, mock_client):
        mock_client.list_dir.return_value = []

        main(["ls", "/docs", "--session", "s"])

        mock_client.list_dir.assert_called_once_with("/docs", recursive=False)

    def test_stat(self, capsys, mock_client):
        mock_client.get_file_info.return_value = _stats("b.txt", size=12)

        assert main(["stat", "/b.txt", "--session", "s"]) == 0

        out = capsys.readouterr().out
        assert "Type:     file" in out
        assert "Size:     12" in out

    def test_get_to_file(self, tmp_path: Path, capsys, mock_client):
        mock_client.read.return_value = b"payload"
        target = tmp_path / "out.bin"

        assert main(["get", "/docs/a.bin", str(target), "--session", "s"]) == 0

        assert target.read_bytes() == b"payload"
        assert "[OK] Downloaded" in capsys.readouterr().out

    def test_get_to_stdout(self, capsysbinary, mock_client):
        mock_client.read.return_value = b"raw bytes"

        assert main(["get", "/docs/a.bin", "-", "--session", "s"]) == 0

        assert capsysbinary.readouterr().out == b"raw bytes"

    def test_put_to_file_path(self, tmp_path: Path, capsys, mock_client):
        local = tmp_path / "report.txt"
        local.write_bytes(b"numbers")
        mock_client.directory_exists.return_value = False
        mock_client.write.return_value = "f9"

        assert main(["put", str(local), "/docs/report.txt", "--session", "s"]) == 0

        mock_client.write.assert_called_once_with("/docs/report.txt", b"numbers")
        out = capsys.readouterr().out
        assert "[OK] Uploaded" in out
        assert "Id: f9" in out

    def test_put_into_directory(self, tmp_path: Path, mock_client):
        local = tmp_path / "report.txt"
        local.write_bytes(b"numbers")
        mock_client.directory_exists.return_value = True

        main(["put", str(local), "/docs", "--session", "s"])

        mock_client.write.assert_called_once_with("/docs/report.txt", b"numbers")

    def test_put_missing_local_file(self, tmp_path: Path, capsys, mock_client):
        assert main(["put", str(tmp_path / "nope"), "/docs", "--session", "s"]) == 1
        assert "[ERROR]" in capsys.readouterr().out
        mock_client.write.assert_not_called()

    @pytest.mark.parametrize(
        "argv, method, call_args",
        [
            (["mkdir", "/new"], "create_directory", ("/new",)),
            (["rm", "/a.txt"], "delete", ("/a.txt",)),
            (["rmdir", "/dir"], "delete_dir", ("/dir",)),
            (["mv", "/a", "/b"], "move", ("/a", "/b")),
            (["cp", "/a", "/b"], "copy", ("/a", "/b")),
        ],
    )
    def test_simple_commands(self, capsys, mock_client, argv, method, call_args):
        assert main(argv + ["--session", "s"]) == 0

        getattr(mock_client, method).assert_called_once_with(*call_args)
        assert "[OK]" in capsys.readouterr().out


class TestErrorReporting:
    """Tests for how failures are reported."""

    @pytest.mark.parametrize(
        "error",
        [
            NotFoundError("No such file or directory: /x"),
            KindMismatchError("Expected a file at /x, found a directory"),
            ValueError("Cannot move /a into itself (/a/b)"),
        ],
    )
    def test_expected_errors(self, capsys, mock_client, error):
        mock_client.get_file_info.side_effect = error

        assert main(["stat", "/x", "--session", "s"]) == 1

        assert f"[ERROR] {error}" in capsys.readouterr().out
        mock_client.close.assert_called_once()

    def test_auth_failure(self, capsys, mock_client):
        mock_client.list_dir.side_effect = AuthFailureError("session expired")

        assert main(["ls", "--session", "s"]) == 1

        assert "[ERROR] Authentication failed" in capsys.readouterr().out

    def test_remote_failure(self, capsys, mock_client):
        mock_client.list_dir.side_effect = TransientNetworkError("connection reset")

        assert main(["ls", "--session", "s"]) == 1

        assert "[ERROR] connection reset" in capsys.readouterr().out

    def test_unexpected_error(self, capsys, mock_client):
        mock_client.list_dir.side_effect = RuntimeError("boom")

        assert main(["ls", "--session", "s"]) == 1

        assert "[ERROR] Fatal error: boom" in capsys.readouterr().out


class TestFormatStats:
    """Tests for ls line formatting."""

    def test_directory_line(self):
        line = format_stats(_stats("photos", kind=EntryKind.DIRECTORY))
        assert line.startswith("d ")
        assert line.endswith("  photos/")

    def test_file_line(self):
        line = format_stats(_stats("a.txt", size=5))
        assert line.startswith("- ")
        assert "2024-03-01 12:30" in line

    def test_missing_mtime(self):
        stats = FileStats(name="a", path="/a", remote_id="f1", kind=EntryKind.FILE)
        assert " - " in format_stats(stats)


class TestEndToEnd:
    """Runs the CLI against the in-memory store."""

    def test_put_ls_get(self, tmp_path: Path, capsys, populated_remote):
        local = tmp_path / "notes.txt"
        local.write_bytes(b"remember the milk")
        downloaded = tmp_path / "copy.txt"

        def make_client(config):
            return CTFileClient(config, api=populated_remote)

        with patch("ctfile_fs.__main__.CTFileClient", side_effect=make_client):
            assert main(["put", str(local), "/docs", "--session", "s"]) == 0
            assert main(["ls", "/docs", "--session", "s"]) == 0
            assert main(["get", "/docs/notes.txt", str(downloaded), "--session", "s"]) == 0

        assert downloaded.read_bytes() == b"remember the milk"
        out = capsys.readouterr().out
        assert "notes.txt" in out
        assert "report.txt" in out
        assert populated_remote.find("d1", "notes.txt") is not None

    def test_ls_recursive(self, capsys, populated_remote):
        def make_client(config):
            return CTFileClient(config, api=populated_remote)

        with patch("ctfile_fs.__main__.CTFileClient", side_effect=make_client):
            assert main(["ls", "-R", "/docs", "--session", "s"]) == 0

        lines = capsys.readouterr().out.splitlines()
        assert [line.split()[-1] for line in lines] == ["report.txt", "drafts/"]

    def test_missing_remote_path(self, capsys, populated_remote):
        def make_client(config):
            return CTFileClient(config, api=populated_remote)

        with patch("ctfile_fs.__main__.CTFileClient", side_effect=make_client):
            assert main(["stat", "/docs/none.txt", "--session", "s"]) == 1

        assert "[ERROR] No such file or directory: /docs/none.txt" in capsys.readouterr().out
