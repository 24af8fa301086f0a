"""Pytest fixtures for wt-keeper tests"""
import io
import tempfile
from pathlib import Path

import git
import pytest
from rich.console import Console

from wt_keeper.config import Config
from wt_keeper.models.cache import CacheEntry, WorktreeCache
from wt_keeper.services.cache_service import CacheService
from wt_keeper.services.display_service import DisplayService


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing (symlinks resolved, e.g. macOS /private)."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def repos_dir(temp_dir):
    """Directory holding main repositories."""
    path = temp_dir / "repos"
    path.mkdir()
    return path


@pytest.fixture
def scan_dir(temp_dir):
    """Directory holding worktrees, the cache and its lock."""
    path = temp_dir / "worktrees"
    path.mkdir()
    return path


@pytest.fixture
def make_repo(repos_dir):
    """Factory creating real main repositories with one commit on main."""
    created = []

    def _make_repo(name="myrepo", parent=None):
        repo_path = Path(parent or repos_dir) / name
        repo_path.mkdir(parents=True)

        repo = git.Repo.init(repo_path)

        # Configure git user for commits
        with repo.config_writer() as writer:
            writer.set_value("user", "name", "Test User")
            writer.set_value("user", "email", "test@example.com")
            writer.set_value("commit", "gpgsign", "false")

        test_file = repo_path / "README.md"
        test_file.write_text("# Test Repository\n")
        repo.index.add(["README.md"])
        repo.index.commit("Initial commit")

        # Rename master to main if needed
        repo.git.branch("-M", "main")

        created.append(repo)
        return repo

    yield _make_repo

    for repo in created:
        repo.close()


@pytest.fixture
def git_repo(make_repo):
    """A main repository at repos/myrepo."""
    return make_repo("myrepo")


@pytest.fixture
def add_worktree(scan_dir):
    """Factory adding a linked worktree (on a new branch) under the scan dir."""

    def _add_worktree(repo, name, parent=None, branch=None):
        path = Path(parent or scan_dir) / name
        repo.git.worktree("add", "-b", branch or name, str(path))
        return str(path)

    return _add_worktree


@pytest.fixture
def cache_service(scan_dir):
    return CacheService(str(scan_dir))


@pytest.fixture
def write_cache(cache_service):
    """Write a cache file from {key: CacheEntry} and return the cache."""

    def _write_cache(entries, next_id=None):
        if next_id is None:
            next_id = max((entry.id for entry in entries.values()), default=0) + 1
        cache = WorktreeCache(worktrees=dict(entries), next_id=next_id)
        cache_service.save(cache)
        return cache

    return _write_cache


@pytest.fixture
def entry_for():
    """Build a CacheEntry describing a worktree path."""

    def _entry_for(worktree_id, path, repo_path="", branch=""):
        return CacheEntry(
            id=worktree_id,
            path=str(path),
            repo_path=str(repo_path),
            branch=branch or Path(path).name,
        )

    return _entry_for


@pytest.fixture
def config(scan_dir, repos_dir):
    """Configuration pointed at the test scan and repo directories."""
    return Config(worktree_dir=str(scan_dir), repo_dir=str(repos_dir), lock_timeout=5)


@pytest.fixture
def output():
    """Buffer capturing everything printed through the display fixture."""
    return io.StringIO()


@pytest.fixture
def display(output):
    """DisplayService writing plain text into the output buffer."""
    return DisplayService(Console(file=output, width=200, color_system=None, highlight=False))
