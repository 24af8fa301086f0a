"""Tests for the wt command-line interface."""

import importlib
import json
import logging

import pytest
from rich.console import Console

from wt_keeper.cli.args import parse_args
from wt_keeper.cli.main import main
from wt_keeper.core import Doctor
from wt_keeper.services.cache_service import CACHE_FILENAME
from wt_keeper.services.file_lock import FileLock

cli_main = importlib.import_module("wt_keeper.cli.main")


@pytest.fixture(autouse=True)
def restore_logging():
    """main() reconfigures the root logger; put it back after each test."""
    root_logger = logging.getLogger()
    handlers = root_logger.handlers[:]
    level = root_logger.level
    yield
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)


@pytest.fixture(autouse=True)
def wide_console(monkeypatch):
    """Keep long temp paths from wrapping in captured output."""
    monkeypatch.setattr(cli_main, "console", Console(highlight=False, width=400))


@pytest.fixture
def wt(scan_dir, repos_dir):
    """Run `wt` against the test directories and return its exit code."""

    def _wt(*args):
        return main(["-d", str(scan_dir), "--repo-dir", str(repos_dir), *args])

    return _wt


class TestArgs:
    """Test argument parsing."""

    def test_doctor_flags(self):
        args = parse_args(["-d", "/wt", "--lock-timeout", "2.5", "--workers", "4", "doctor", "--fix"])
        assert args.command == "doctor"
        assert args.fix is True
        assert args.reset is False
        assert args.worktree_dir == "/wt"
        assert args.lock_timeout == 2.5
        assert args.workers == 4

    def test_path_requires_integer_id(self):
        with pytest.raises(SystemExit):
            parse_args(["path", "abc"])

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            parse_args([])

    @pytest.mark.parametrize("option", ["--lock-timeout", "--workers"])
    def test_rejects_non_positive_values(self, option):
        with pytest.raises(SystemExit):
            parse_args([option, "0", "doctor"])

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            parse_args(["--version"])
        assert exc_info.value.code == 0
        assert "wt-keeper" in capsys.readouterr().out


class TestDoctorCommand:
    """Test `wt doctor` exit codes and output."""

    def test_healthy_exits_zero(self, wt, capsys):
        assert wt("doctor") == 0
        assert "No issues found" in capsys.readouterr().out

    def test_issues_exit_one_then_fix(self, wt, git_repo, add_worktree, capsys):
        add_worktree(git_repo, "feature-a")

        assert wt("doctor") == 1
        assert "worktree not in cache" in capsys.readouterr().out

        assert wt("doctor", "--fix") == 0
        assert wt("doctor") == 0

    def test_reset(self, wt, git_repo, add_worktree, scan_dir, capsys):
        add_worktree(git_repo, "feature-a")

        assert wt("doctor", "--reset") == 0

        data = json.loads((scan_dir / CACHE_FILENAME).read_text())
        assert data["worktrees"]["feature-a"]["id"] == 1
        assert "Cache rebuilt with 1 worktrees" in capsys.readouterr().out

    def test_corrupt_cache_reports_error(self, wt, scan_dir, capsys):
        (scan_dir / CACHE_FILENAME).write_text("{broken")
        assert wt("doctor") == 1
        assert "Failed to load cache" in capsys.readouterr().out

    def test_lock_timeout(self, scan_dir, repos_dir, capsys):
        with FileLock(str(scan_dir / ".wt-cache.lock")):
            code = main(["-d", str(scan_dir), "--lock-timeout", "0.2", "doctor"])
        assert code == 1
        assert "timed out" in capsys.readouterr().out

    def test_debug_prints_configuration(self, wt, monkeypatch, temp_dir, capsys):
        monkeypatch.setenv("HOME", str(temp_dir))
        assert wt("--debug", "doctor") == 0
        out = capsys.readouterr().out
        assert "Configuration:" in out
        assert (temp_dir / ".wt-keeper" / "wt-keeper.log").exists()

    def test_keyboard_interrupt(self, wt, monkeypatch, capsys):
        def interrupted(self, fix=False):
            raise KeyboardInterrupt

        monkeypatch.setattr(Doctor, "run", interrupted)
        assert wt("doctor") == 1
        assert "cancelled" in capsys.readouterr().out


class TestListAndPath:
    """Test `wt list` and `wt path`."""

    def test_list_assigns_ids(self, wt, git_repo, add_worktree, capsys):
        add_worktree(git_repo, "feature-a")
        add_worktree(git_repo, "feature-b")

        assert wt("list") == 0

        out = capsys.readouterr().out
        assert "feature-a" in out
        assert "feature-b" in out

    def test_list_empty(self, wt, capsys):
        assert wt("list") == 0
        assert "No worktrees found." in capsys.readouterr().out

    def test_path_by_id(self, wt, git_repo, add_worktree, capsys):
        wt_path = add_worktree(git_repo, "feature-a")
        wt("list")
        capsys.readouterr()

        assert wt("path", "1") == 0
        assert capsys.readouterr().out.strip() == wt_path

    def test_unknown_id(self, wt, capsys):
        assert wt("path", "42") == 1
        assert "No worktree with ID 42" in capsys.readouterr().out

    def test_removed_id(self, wt, git_repo, add_worktree, capsys):
        import shutil

        wt_path = add_worktree(git_repo, "feature-a")
        wt("list")
        shutil.rmtree(wt_path)
        wt("list")
        capsys.readouterr()

        assert wt("path", "1") == 1
        assert "was removed" in capsys.readouterr().out

    def test_worktree_dir_from_environment(self, monkeypatch, scan_dir, git_repo, add_worktree, capsys):
        add_worktree(git_repo, "feature-a")
        monkeypatch.setenv("WT_WORKTREE_DIR", str(scan_dir))

        assert main(["list"]) == 0
        assert "feature-a" in capsys.readouterr().out
