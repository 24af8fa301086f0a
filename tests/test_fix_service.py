"""Tests for applying doctor fixes."""

import shutil
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from wt_keeper.exceptions import ProbeError, RepairError
from wt_keeper.models.cache import CacheEntry, WorktreeCache
from wt_keeper.models.issue import FixAction, Issue, IssueCategory
from wt_keeper.services.fix_service import FixService, order_fixes
from wt_keeper.services.git import links
from wt_keeper.services.git.worktrees import WorktreeService


def make_issue(key, action, category=IssueCategory.CACHE, repo_path=""):
    return Issue(key=key, category=category, description="test", fix_action=action, repo_path=repo_path)


@pytest.fixture
def fixer(scan_dir, display):
    return FixService(str(scan_dir), display=display)


class TestOrdering:
    """Test fix ordering."""

    def test_entry_repairs_first_prunes_last(self):
        issues = [
            make_issue("p", FixAction.PRUNE, IssueCategory.GIT),
            make_issue("m", FixAction.MARK_REMOVED),
            make_issue("r", FixAction.REPAIR, IssueCategory.GIT),
            make_issue("u", FixAction.UPDATE_PATH),
            make_issue("ra", FixAction.REPAIR_AND_ADD, IssueCategory.ORPHAN),
        ]
        assert [issue.key for issue in order_fixes(issues)] == ["r", "m", "u", "ra", "p"]

    def test_every_action_has_a_handler(self, fixer):
        assert set(fixer.handlers) == set(FixAction)


class TestCacheFixes:
    """Test fixes that only touch the cache."""

    def test_remove_and_mark_removed(self, fixer, output):
        cache = WorktreeCache(worktrees={
            "repo::main": CacheEntry(id=1, path="/x"),
            "gone": CacheEntry(id=2, path="/y"),
        }, next_id=3)

        fixed, failed = fixer.apply_fixes(cache, [
            make_issue("repo::main", FixAction.REMOVE),
            make_issue("gone", FixAction.MARK_REMOVED),
        ])

        assert (fixed, failed) == (2, 0)
        assert "repo::main" not in cache.worktrees
        assert cache.worktrees["gone"].is_removed
        assert "✓" not in output.getvalue()

        fixer.print_applied()
        assert '✓ Marked as removed "gone"' in output.getvalue()

    def test_update_path(self, fixer, scan_dir):
        cache = WorktreeCache(worktrees={"a": CacheEntry(id=1, path="/old/a")}, next_id=2)

        assert fixer.apply_fixes(cache, [make_issue("a", FixAction.UPDATE_PATH)]) == (1, 0)
        assert cache.worktrees["a"].path == str(scan_dir / "a")

    def test_update_metadata(self, fixer, git_repo, add_worktree):
        wt_path = add_worktree(git_repo, "feature-a")
        cache = WorktreeCache(worktrees={"feature-a": CacheEntry(id=1, path=wt_path)}, next_id=2)

        fixer.apply_fixes(cache, [make_issue("feature-a", FixAction.UPDATE_METADATA)])

        entry = cache.worktrees["feature-a"]
        assert entry.repo_path == git_repo.working_dir
        assert entry.branch == "feature-a"
        assert entry.id == 1

    def test_reassign_id(self, fixer, output):
        cache = WorktreeCache(worktrees={
            "a": CacheEntry(id=1, path="/a"),
            "b": CacheEntry(id=1, path="/b"),
        }, next_id=2)

        fixer.apply_fixes(cache, [make_issue("b", FixAction.REASSIGN_ID)])

        assert cache.worktrees["a"].id == 1
        assert cache.worktrees["b"].id == 2
        assert cache.next_id == 3
        fixer.print_applied()
        assert "(1 -> 2)" in output.getvalue()

    def test_leftover_duplicate_ids_are_reassigned(self, fixer, output):
        cache = WorktreeCache(worktrees={
            "a": CacheEntry(id=1, path="/a", repo_path="/r"),
            "b": CacheEntry(id=1, path="/old/b", repo_path="/r"),
        }, next_id=2)

        fixed, failed = fixer.apply_fixes(cache, [make_issue("b", FixAction.UPDATE_PATH)])

        assert (fixed, failed) == (2, 0)
        assert cache.worktrees["a"].id == 1
        assert cache.worktrees["b"].id == 2
        fixer.print_applied()
        assert '✓ Reassigned ID for "b" (1 -> 2)' in output.getvalue()

    def test_unknown_key_fails_without_stopping_batch(self, fixer, output):
        cache = WorktreeCache(worktrees={"a": CacheEntry(id=1, path="/a")}, next_id=2)

        fixed, failed = fixer.apply_fixes(cache, [
            make_issue("missing", FixAction.MARK_REMOVED),
            make_issue("a", FixAction.MARK_REMOVED),
        ])

        assert (fixed, failed) == (1, 1)
        assert cache.worktrees["a"].is_removed
        assert '✗ Failed to fix "missing"' in output.getvalue()


class TestGitFixes:
    """Test fixes that rewrite git metadata."""

    def test_repair_after_repo_moved_updates_repo_path(self, fixer, git_repo, add_worktree, temp_dir):
        git_repo.create_remote("origin", "git@example.com:team/myrepo.git")
        wt_path = add_worktree(git_repo, "feature-a")
        old_repo = git_repo.working_dir
        new_repo = temp_dir / "moved" / "myrepo"
        new_repo.parent.mkdir()
        shutil.move(old_repo, new_repo)
        cache = WorktreeCache(worktrees={
            "feature-a": CacheEntry(id=1, path=wt_path, repo_path=old_repo),
        }, next_id=2)

        fixed, failed = fixer.apply_fixes(cache, [
            make_issue("feature-a", FixAction.REPAIR, IssueCategory.GIT, repo_path=str(new_repo)),
        ])

        assert (fixed, failed) == (1, 0)
        assert links.is_link_valid(wt_path)
        assert cache.worktrees["feature-a"].repo_path == str(new_repo)
        assert cache.worktrees["feature-a"].origin_url == "git@example.com:team/myrepo.git"

    def test_repair_failure_is_counted(self, fixer, output):
        cache = WorktreeCache(worktrees={"a": CacheEntry(id=1, path="/a", repo_path="/r")}, next_id=2)

        with patch.object(WorktreeService, "repair_worktree", side_effect=RepairError("/a", "nope")):
            fixed, failed = fixer.apply_fixes(cache, [
                make_issue("a", FixAction.REPAIR, IssueCategory.GIT, repo_path="/r"),
                make_issue("a", FixAction.REASSIGN_ID),
            ])

        assert (fixed, failed) == (1, 1)
        assert "nope" in output.getvalue()

    def test_prune_runs_once_per_repo(self, fixer, git_repo, add_worktree):
        for name in ["gone-1", "gone-2"]:
            shutil.rmtree(add_worktree(git_repo, name))
        repo_path = git_repo.working_dir

        with patch.object(WorktreeService, "prune_worktrees", autospec=True) as mock_prune:
            fixed, failed = fixer.apply_fixes(WorktreeCache(), [
                make_issue("gone-1", FixAction.PRUNE, IssueCategory.GIT, repo_path=repo_path),
                make_issue("gone-2", FixAction.PRUNE, IssueCategory.GIT, repo_path=repo_path),
            ])

        assert (fixed, failed) == (2, 0)
        assert mock_prune.call_count == 1

    def test_prune_removes_metadata(self, fixer, git_repo, add_worktree):
        shutil.rmtree(add_worktree(git_repo, "gone"))

        fixer.apply_fixes(WorktreeCache(), [
            make_issue("gone", FixAction.PRUNE, IssueCategory.GIT, repo_path=git_repo.working_dir),
        ])

        assert not (Path(git_repo.working_dir) / ".git" / "worktrees" / "gone").exists()


class TestOrphanFixes:
    """Test adopting and reporting untracked worktrees."""

    def test_add_to_cache(self, fixer, git_repo, add_worktree):
        add_worktree(git_repo, "feature-a")
        cache = WorktreeCache(next_id=5)

        fixer.apply_fixes(cache, [make_issue("feature-a", FixAction.ADD_TO_CACHE, IssueCategory.ORPHAN)])

        assert cache.worktrees["feature-a"].id == 5
        assert cache.worktrees["feature-a"].repo_path == git_repo.working_dir

    def test_repair_and_add(self, fixer, git_repo, add_worktree, scan_dir, temp_dir):
        wt_path = add_worktree(git_repo, "feature-a", parent=temp_dir)
        shutil.move(wt_path, scan_dir / "feature-a")
        cache = WorktreeCache()

        fixed, failed = fixer.apply_fixes(cache, [
            make_issue("feature-a", FixAction.REPAIR_AND_ADD, IssueCategory.ORPHAN, repo_path=git_repo.working_dir),
        ])

        assert (fixed, failed) == (1, 0)
        assert links.is_link_valid(str(scan_dir / "feature-a"))
        assert cache.worktrees["feature-a"].path == str(scan_dir / "feature-a")

    def test_orphan_dir_is_never_deleted(self, fixer, scan_dir, output):
        orphan = scan_dir / "orphan"
        orphan.mkdir()

        fixed, failed = fixer.apply_fixes(WorktreeCache(), [
            make_issue("orphan", FixAction.REMOVE_ORPHAN_DIR, IssueCategory.ORPHAN),
        ])

        assert (fixed, failed) == (0, 1)
        assert orphan.exists()
        assert f"rm -rf {orphan}" in output.getvalue()

    def test_probe_failure_during_add(self, scan_dir, display):
        git_ops = Mock()
        git_ops.get_worktree_info.side_effect = ProbeError("get_worktree_info", "x", "probe failed")
        fixer = FixService(str(scan_dir), git_ops=git_ops, display=display)

        fixed, failed = fixer.apply_fixes(WorktreeCache(), [
            make_issue("x", FixAction.ADD_TO_CACHE, IssueCategory.ORPHAN),
        ])

        assert (fixed, failed) == (0, 1)
