"""Applies doctor fixes to an in-memory cache and to git metadata."""

import os
from typing import Callable, Dict, List, Optional, Set, Tuple

from wt_keeper.exceptions import FixError, GitOperationError
from wt_keeper.logging_config import get_logger
from wt_keeper.models.cache import CacheEntry, WorktreeCache
from wt_keeper.models.issue import FixAction, Issue, IssueCategory
from wt_keeper.services.display_service import DisplayService
from wt_keeper.services.git.operations import GitOperations
from wt_keeper.services.git.worktrees import WorktreeService

logger = get_logger(__name__)


def order_fixes(issues: List[Issue]) -> List[Issue]:
    """Order issues for fixing; detection order is kept within each group.

    Entry repairs run first and prunes last, as a prune drops the metadata a
    broken link points at. Orphan repairs stay in detection order, behind the
    cache pass retiring a stale entry under the same key, so adopting the
    folder revives that entry.
    """
    def rank(issue: Issue) -> int:
        if issue.fix_action == FixAction.REPAIR:
            return 0
        if issue.fix_action == FixAction.PRUNE:
            return 2
        return 1

    return sorted(issues, key=rank)


class FixService:
    """Applies one batch of fixes. Persisting the cache is the caller's job."""

    def __init__(
        self,
        scan_dir: str,
        git_ops: Optional[GitOperations] = None,
        display: Optional[DisplayService] = None,
    ):
        self.scan_dir = scan_dir
        self.git_ops = git_ops or GitOperations()
        self.display = display or DisplayService()
        self._pruned: Set[str] = set()
        self.applied: List[Tuple[Issue, str]] = []

        # Handlers return a detail string for the success line, or None when
        # the issue was reported but deliberately left unfixed.
        self.handlers: Dict[FixAction, Callable[[WorktreeCache, Issue], Optional[str]]] = {
            FixAction.REMOVE: self._fix_remove,
            FixAction.MARK_REMOVED: self._fix_mark_removed,
            FixAction.UPDATE_PATH: self._fix_update_path,
            FixAction.UPDATE_METADATA: self._fix_update_metadata,
            FixAction.REASSIGN_ID: self._fix_reassign_id,
            FixAction.REPAIR: self._fix_repair,
            FixAction.PRUNE: self._fix_prune,
            FixAction.ADD_TO_CACHE: self._fix_add_to_cache,
            FixAction.REPAIR_AND_ADD: self._fix_repair_and_add,
            FixAction.REMOVE_ORPHAN_DIR: self._fix_remove_orphan_dir,
        }

    def apply_fixes(self, cache: WorktreeCache, issues: List[Issue]) -> Tuple[int, int]:
        """Apply every issue's fix, continuing past individual failures.

        Failures are printed as they happen. Successes are only collected in
        ``applied``; print them with print_applied() once the cache is saved.
        The batch ends by giving fresh IDs to any active entries still sharing
        one, so IDs are unique whatever mix of fixes ran.

        Returns:
            Tuple of (fixed, failed) counts
        """
        fixed = 0
        failed = 0

        for issue in order_fixes(issues):
            try:
                detail = self.handlers[issue.fix_action](cache, issue)
            except (FixError, GitOperationError) as e:
                logger.warning(f"Fix {issue.fix_action.value} failed for {issue.key}: {e}")
                self.display.print_fix_failure(issue, e)
                failed += 1
                continue

            if detail is None:
                failed += 1
                continue

            logger.info(f"Applied {issue.fix_action.value} to {issue.key}")
            self.applied.append((issue, detail))
            fixed += 1

        for key, old_id, new_id in cache.resolve_duplicate_ids():
            logger.info(f"Reassigned duplicate ID {old_id} of {key} to {new_id}")
            issue = Issue(
                key=key,
                category=IssueCategory.CACHE,
                description=f"duplicate ID {old_id}",
                fix_action=FixAction.REASSIGN_ID,
            )
            self.applied.append((issue, f"{old_id} -> {new_id}"))
            fixed += 1

        return fixed, failed

    def print_applied(self) -> None:
        """Print a success line for every fix applied so far."""
        for issue, detail in self.applied:
            self.display.print_fix_success(issue, detail)

    def _entry(self, cache: WorktreeCache, key: str) -> CacheEntry:
        entry = cache.worktrees.get(key)
        if entry is None:
            raise FixError(key, "entry not in cache")
        return entry

    def _fix_remove(self, cache: WorktreeCache, issue: Issue) -> str:
        if not cache.remove(issue.key):
            raise FixError(issue.key, "entry not in cache")
        return ""

    def _fix_mark_removed(self, cache: WorktreeCache, issue: Issue) -> str:
        if not cache.mark_removed(issue.key):
            raise FixError(issue.key, "entry not in cache")
        return ""

    def _fix_update_path(self, cache: WorktreeCache, issue: Issue) -> str:
        entry = self._entry(cache, issue.key)
        entry.path = os.path.join(self.scan_dir, issue.key)
        return entry.path

    def _fix_update_metadata(self, cache: WorktreeCache, issue: Issue) -> str:
        entry = self._entry(cache, issue.key)
        entry.update_from(self.git_ops.get_worktree_info(entry.path))
        return ""

    def _fix_reassign_id(self, cache: WorktreeCache, issue: Issue) -> str:
        entry = self._entry(cache, issue.key)
        old_id = entry.id
        new_id = cache.reassign_id(issue.key)
        return f"{old_id} -> {new_id}"

    def _repair(self, key: str, repo_path: str, worktree_path: str) -> None:
        if not repo_path:
            raise FixError(key, "missing repo path")
        WorktreeService(repo_path).repair_worktree(worktree_path)

    def _fix_repair(self, cache: WorktreeCache, issue: Issue) -> str:
        entry = self._entry(cache, issue.key)
        repo_path = issue.repo_path or entry.repo_path
        self._repair(issue.key, repo_path, entry.path)

        if repo_path != entry.repo_path:
            entry.repo_path = repo_path
            entry.origin_url = self.git_ops.get_origin_url(repo_path)
            return "updated repo path"
        return ""

    def _fix_prune(self, cache: WorktreeCache, issue: Issue) -> str:
        if not issue.repo_path:
            raise FixError(issue.key, "missing repo path")
        # One prune per repository covers all of its stale names
        if issue.repo_path not in self._pruned:
            WorktreeService(issue.repo_path).prune_worktrees()
            self._pruned.add(issue.repo_path)
        return ""

    def _add(self, cache: WorktreeCache, key: str) -> str:
        info = self.git_ops.get_worktree_info(os.path.join(self.scan_dir, key))
        return f"ID {cache.get_or_assign_id(info)}"

    def _fix_add_to_cache(self, cache: WorktreeCache, issue: Issue) -> str:
        return self._add(cache, issue.key)

    def _fix_repair_and_add(self, cache: WorktreeCache, issue: Issue) -> str:
        self._repair(issue.key, issue.repo_path, os.path.join(self.scan_dir, issue.key))
        return self._add(cache, issue.key)

    def _fix_remove_orphan_dir(self, cache: WorktreeCache, issue: Issue) -> None:
        path = os.path.join(self.scan_dir, issue.key)
        logger.warning(f"Orphan worktree {path} needs manual cleanup")
        self.display.print_manual_cleanup(issue, path)
        return None
