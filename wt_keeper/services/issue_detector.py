"""Detects divergence between the identity cache, the filesystem and git."""

import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple, TypeVar

from wt_keeper.exceptions import ProbeError
from wt_keeper.logging_config import get_logger
from wt_keeper.models.cache import CacheEntry, WorktreeCache, is_legacy_key
from wt_keeper.models.issue import (
    FixAction,
    Issue,
    IssueCategory,
    IssueStats,
    UNTRACKED_ACTIONS,
)
from wt_keeper.services.git import discovery, links
from wt_keeper.services.git.worktrees import WorktreeService
from wt_keeper.utils.threading import get_optimal_worker_count

logger = get_logger(__name__)

T = TypeVar("T")

_RETIRING_ACTIONS = frozenset({FixAction.REMOVE, FixAction.MARK_REMOVED})


@dataclass
class DetectionResult:
    """Everything one doctor scan found."""
    issues: List[Issue] = field(default_factory=list)
    stats: IssueStats = field(default_factory=IssueStats)


def _path_exists(path: str) -> bool:
    return bool(path) and os.path.exists(path)


def _same_path(a: str, b: str) -> bool:
    return os.path.realpath(a) == os.path.realpath(b)


class IssueDetector:
    """Runs the cache, git-link and orphan passes over a loaded cache.

    The passes only read; the cache is never modified here.
    """

    def __init__(
        self,
        scan_dir: str,
        search_dirs: Optional[List[str]] = None,
        workers: Optional[int] = None,
        sequential: bool = False,
    ):
        """Initialize the detector.

        Args:
            scan_dir: Directory the cache belongs to
            search_dirs: Where to look for main repositories that have moved
            workers: Thread count for per-repository probes (None = auto)
            sequential: Probe repositories one at a time
        """
        self.scan_dir = scan_dir
        self.search_dirs = search_dirs if search_dirs is not None else [scan_dir]
        self.workers = workers
        self.sequential = sequential

    def detect(
        self, cache: WorktreeCache, progress: Optional[Callable[[str], None]] = None
    ) -> DetectionResult:
        """Run all three passes and tally the summary counts.

        Args:
            cache: Loaded cache; it is not modified
            progress: Called with a short message before each pass
        """
        progress = progress or (lambda message: None)

        progress("Checking cache integrity...")
        cache_issues = self.check_cache_issues(cache)
        progress("Checking git links...")
        git_issues = self.check_git_link_issues(cache)
        progress("Checking for orphans...")
        orphan_issues = self.check_orphan_issues(cache)

        stats = IssueStats()
        active = cache.count_active()

        stats.cache_issues = len({issue.key for issue in cache_issues})
        stats.cache_valid = active - stats.cache_issues

        entry_git_keys = set()
        for issue in git_issues:
            if issue.fix_action == FixAction.REPAIR:
                stats.git_repairable += 1
            elif issue.fix_action == FixAction.PRUNE:
                stats.git_prunable += 1
                continue
            else:
                stats.git_unrepairable += 1
            entry_git_keys.add(issue.key)
        stats.git_healthy = len(self._git_candidates(cache)) - len(entry_git_keys)

        for issue in orphan_issues:
            if issue.fix_action in UNTRACKED_ACTIONS:
                stats.orphan_untracked += 1
            else:
                stats.orphan_ghost += 1

        return DetectionResult(issues=cache_issues + git_issues + orphan_issues, stats=stats)

    # Cache integrity

    def check_cache_issues(self, cache: WorktreeCache) -> List[Issue]:
        """Find legacy keys, stale paths, moved folders, missing metadata and duplicate IDs."""
        issues = []

        for key, entry in cache.active_entries():
            issue = self._check_cache_entry(key, entry)
            if issue is not None:
                issues.append(issue)

        # Entries being retired or deleted give up their ID anyway
        retiring = {issue.key for issue in issues if issue.fix_action in _RETIRING_ACTIONS}
        flagged = {issue.key for issue in issues}

        # Lowest key keeps a shared ID; everyone else gets a fresh one
        claimants: Dict[int, List[str]] = {}
        for key, entry in cache.active_entries():
            if key not in retiring:
                claimants.setdefault(entry.id, []).append(key)

        for worktree_id, keys in sorted(claimants.items()):
            for key in keys[1:]:
                if key in flagged:
                    # One cache issue per entry; the fix batch reassigns leftover duplicates
                    continue
                issues.append(Issue(
                    key=key,
                    category=IssueCategory.CACHE,
                    description=f"duplicate ID {worktree_id} (kept by {keys[0]!r})",
                    fix_action=FixAction.REASSIGN_ID,
                ))

        return issues

    def _check_cache_entry(self, key: str, entry: CacheEntry) -> Optional[Issue]:
        if is_legacy_key(key):
            return Issue(
                key=key,
                category=IssueCategory.CACHE,
                description="legacy cache key from an old cache format",
                fix_action=FixAction.REMOVE,
            )

        if not _path_exists(entry.path):
            description = f"path no longer exists: {entry.path}" if entry.path else "entry has no path"
            return Issue(
                key=key,
                category=IssueCategory.CACHE,
                description=description,
                fix_action=FixAction.MARK_REMOVED,
            )

        expected_path = os.path.join(self.scan_dir, key)
        if self._is_misplaced(key, entry):
            return Issue(
                key=key,
                category=IssueCategory.CACHE,
                description=f"path mismatch: cached {entry.path}, actual {expected_path}",
                fix_action=FixAction.UPDATE_PATH,
            )

        if not entry.repo_path:
            return Issue(
                key=key,
                category=IssueCategory.CACHE,
                description="missing repo_path metadata",
                fix_action=FixAction.UPDATE_METADATA,
            )

        return None

    # Git links

    def _is_misplaced(self, key: str, entry: CacheEntry) -> bool:
        """The folder for key exists in the scan dir but the entry points elsewhere."""
        expected_path = os.path.join(self.scan_dir, key)
        return not _same_path(entry.path, expected_path) and os.path.exists(expected_path)

    def _git_candidates(self, cache: WorktreeCache) -> List[Tuple[str, CacheEntry]]:
        """Active entries whose cached path is current; the cache pass handles the rest."""
        return [
            (key, entry)
            for key, entry in cache.active_entries()
            if not is_legacy_key(key)
            and _path_exists(entry.path)
            and not self._is_misplaced(key, entry)
        ]

    def _locate_repo(self, entry: CacheEntry) -> Tuple[str, bool]:
        """Find the current main repository for an entry with a broken link.

        Returns:
            (repo_path, moved); repo_path is "" when no repository was found
        """
        if entry.repo_path and links.is_main_repo(entry.repo_path):
            return entry.repo_path, False
        return self._locate_repo_for_path(entry.path, entry.repo_path)

    def _locate_repo_for_path(self, worktree_path: str, cached_repo: str = "") -> Tuple[str, bool]:
        try:
            recorded = links.get_main_repo_path(worktree_path)
        except ProbeError:
            recorded = ""
        if recorded and links.is_main_repo(recorded):
            return recorded, bool(cached_repo) and not _same_path(recorded, cached_repo)

        repo_name = links.get_repo_name_from_worktree(worktree_path)
        if not repo_name:
            return "", False
        found = discovery.find_repo_in_dirs(repo_name, self.search_dirs)
        if found is None:
            return "", False
        return found, True

    def check_git_link_issues(self, cache: WorktreeCache) -> List[Issue]:
        """Classify each entry's git link and look for stale metadata inside its repo."""
        issues = []
        healthy_repos: List[str] = []

        for key, entry in self._git_candidates(cache):
            issue = self._check_git_link(key, entry)
            if issue is not None:
                issues.append(issue)
                continue

            if entry.repo_path and entry.repo_path not in healthy_repos and links.is_main_repo(entry.repo_path):
                healthy_repos.append(entry.repo_path)

        prunable = self._map_repos(lambda repo: WorktreeService(repo).list_prunable(), healthy_repos)
        for repo_path in healthy_repos:
            for name in prunable.get(repo_path, []):
                issues.append(Issue(
                    key=name,
                    category=IssueCategory.GIT,
                    description=f"stale git reference in {os.path.basename(repo_path)}",
                    fix_action=FixAction.PRUNE,
                    repo_path=repo_path,
                ))

        return issues

    def _check_git_link(self, key: str, entry: CacheEntry) -> Optional[Issue]:
        git_path = os.path.join(entry.path, ".git")

        if not os.path.exists(git_path):
            return Issue(
                key=key,
                category=IssueCategory.GIT,
                description=".git file missing",
                fix_action=FixAction.MARK_REMOVED,
                repo_path=entry.repo_path,
            )

        if os.path.isdir(git_path):
            return Issue(
                key=key,
                category=IssueCategory.GIT,
                description="not a worktree (has .git directory)",
                fix_action=FixAction.MARK_REMOVED,
                repo_path=entry.repo_path,
            )

        if links.is_link_valid(entry.path):
            return None

        repo_path, moved = self._locate_repo(entry)
        if repo_path and links.can_repair(entry.path, repo_path):
            description = "broken bidirectional link (repairable)"
            if moved:
                description = f"broken link, repo moved to {repo_path} (repairable)"
            return Issue(
                key=key,
                category=IssueCategory.GIT,
                description=description,
                fix_action=FixAction.REPAIR,
                repo_path=repo_path,
            )

        description = "broken git link (unrepairable)"
        if not repo_path:
            repo_name = links.get_repo_name_from_worktree(entry.path)
            if repo_name:
                description = f"broken git link (repo {repo_name!r} not found)"
        return Issue(
            key=key,
            category=IssueCategory.GIT,
            description=description,
            fix_action=FixAction.MARK_REMOVED,
            repo_path=entry.repo_path,
        )

    # Orphans

    def check_orphan_issues(self, cache: WorktreeCache) -> List[Issue]:
        """Find worktrees missing from the cache and entries git has forgotten."""
        return self._check_untracked(cache) + self._check_ghosts(cache)

    def _retiring_keys(self, cache: WorktreeCache) -> Set[str]:
        """Active keys the cache pass deletes or soft-deletes."""
        retiring = set()
        for key, entry in cache.active_entries():
            issue = self._check_cache_entry(key, entry)
            if issue is not None and issue.fix_action in _RETIRING_ACTIONS:
                retiring.add(key)
        return retiring

    def _check_untracked(self, cache: WorktreeCache) -> List[Issue]:
        issues = []
        # An entry about to be retired does not track the folder under its key;
        # adopting the folder revives it in the same batch
        retiring = self._retiring_keys(cache)
        tracked = [(key, entry) for key, entry in cache.active_entries() if key not in retiring]
        cached_paths = {os.path.realpath(entry.path) for _, entry in tracked if entry.path}
        tracked_keys = {key for key, _ in tracked}

        for path in discovery.find_worktree_dirs(self.scan_dir):
            name = os.path.basename(path)
            if name in tracked_keys or os.path.realpath(path) in cached_paths:
                continue

            if links.is_link_valid(path):
                issues.append(Issue(
                    key=name,
                    category=IssueCategory.ORPHAN,
                    description="worktree not in cache",
                    fix_action=FixAction.ADD_TO_CACHE,
                ))
                continue

            repo_name = links.get_repo_name_from_worktree(path)
            if not repo_name:
                issues.append(Issue(
                    key=name,
                    category=IssueCategory.ORPHAN,
                    description="orphan worktree (cannot parse .git file)",
                    fix_action=FixAction.REMOVE_ORPHAN_DIR,
                ))
                continue

            repo_path, _ = self._locate_repo_for_path(path)
            if repo_path and links.can_repair(path, repo_path):
                issues.append(Issue(
                    key=name,
                    category=IssueCategory.ORPHAN,
                    description=f"broken link (repo found at {repo_path})",
                    fix_action=FixAction.REPAIR_AND_ADD,
                    repo_path=repo_path,
                ))
            else:
                issues.append(Issue(
                    key=name,
                    category=IssueCategory.ORPHAN,
                    description=f"orphan worktree (repo {repo_name!r} not found)",
                    fix_action=FixAction.REMOVE_ORPHAN_DIR,
                ))

        return issues

    def _check_ghosts(self, cache: WorktreeCache) -> List[Issue]:
        """Entries whose repository no longer lists them (removed behind our back)."""
        by_repo: Dict[str, List[Tuple[str, CacheEntry]]] = {}
        for key, entry in self._git_candidates(cache):
            if not entry.repo_path or not links.is_main_repo(entry.repo_path):
                continue
            # Broken links belong to the git-link pass
            if not links.is_link_valid(entry.path):
                continue
            by_repo.setdefault(entry.repo_path, []).append((key, entry))

        known = self._map_repos(
            lambda repo: {os.path.realpath(wt.path) for wt in WorktreeService(repo).list_worktrees()},
            list(by_repo),
        )

        issues = []
        for repo_path, entries in by_repo.items():
            if repo_path not in known:
                continue
            for key, entry in entries:
                if os.path.realpath(entry.path) not in known[repo_path]:
                    issues.append(Issue(
                        key=key,
                        category=IssueCategory.ORPHAN,
                        description="ghost entry (git doesn't recognize worktree)",
                        fix_action=FixAction.MARK_REMOVED,
                        repo_path=repo_path,
                    ))
        return issues

    # Helpers

    def _map_repos(self, probe: Callable[[str], T], repo_paths: Iterable[str]) -> Dict[str, T]:
        """Run a read-only probe per repository, in parallel unless sequential.

        Repositories whose probe fails are logged and left out of the result.
        """
        repo_paths = list(repo_paths)
        results: Dict[str, T] = {}
        if not repo_paths:
            return results

        def run(repo_path: str) -> Tuple[str, Optional[T]]:
            try:
                return repo_path, probe(repo_path)
            except ProbeError as e:
                logger.warning(f"Skipping {repo_path}: {e}")
                return repo_path, None

        if self.sequential or len(repo_paths) == 1:
            outcomes = [run(repo_path) for repo_path in repo_paths]
        else:
            max_workers = get_optimal_worker_count(len(repo_paths), self.workers)
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                outcomes = list(executor.map(run, repo_paths))

        for repo_path, value in outcomes:
            if value is not None:
                results[repo_path] = value
        return results
