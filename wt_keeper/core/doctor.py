"""Doctor: diagnose and repair the worktree identity cache."""

from dataclasses import dataclass, field
from typing import List, Optional

from wt_keeper.config import Config
from wt_keeper.exceptions import DoctorIssuesError
from wt_keeper.logging_config import get_logger
from wt_keeper.models.cache import WorktreeCache
from wt_keeper.models.issue import Issue, IssueStats
from wt_keeper.services.cache_service import CacheService
from wt_keeper.services.display_service import DisplayService
from wt_keeper.services.fix_service import FixService
from wt_keeper.services.git import GitOperations, discovery
from wt_keeper.services.issue_detector import IssueDetector

logger = get_logger(__name__)


@dataclass
class DoctorReport:
    """Outcome of one doctor run."""
    issues: List[Issue] = field(default_factory=list)
    stats: IssueStats = field(default_factory=IssueStats)
    fix_mode: bool = False
    fixed: int = 0
    failed: int = 0

    @property
    def healthy(self) -> bool:
        """True when nothing is left for the user to do."""
        if self.fix_mode:
            return self.failed == 0
        return not self.issues


class Doctor:
    """Runs the detector over one scan directory and optionally fixes what it finds.

    Everything happens under the scan directory's cache lock. In fix mode the
    cache is written exactly once, after the whole batch of fixes.
    """

    def __init__(
        self,
        config: Config,
        display: Optional[DisplayService] = None,
        git_ops: Optional[GitOperations] = None,
    ):
        self.config = config
        self.display = display or DisplayService()
        self.git_ops = git_ops or GitOperations()
        self.cache_service = CacheService(config.worktree_dir, lock_timeout=config.lock_timeout)
        self.detector = IssueDetector(
            config.worktree_dir,
            config.search_dirs,
            workers=config.workers,
            sequential=config.sequential,
        )

    def run(self, fix: bool = False) -> DoctorReport:
        """Diagnose the cache and, with fix=True, repair it.

        Returns:
            The report of a healthy run

        Raises:
            DoctorIssuesError: If issues remain unfixed or any fix failed
            LockError: If the cache lock cannot be acquired
            CacheLoadError: If the cache file is corrupt
            CachePersistError: If the fixed cache cannot be written
        """
        logger.debug(f"Doctor run on {self.config.worktree_dir} (fix={fix})")

        with self.cache_service.locked() as cache:
            result = self.detector.detect(cache, progress=self.display.print_progress)
            report = DoctorReport(issues=result.issues, stats=result.stats, fix_mode=fix)

            self.display.print_summary(result.stats)
            if not result.issues:
                self.display.print_healthy()
                return report

            self.display.print_issues(result.issues)
            if not fix:
                self.display.print_fix_hint()
                raise DoctorIssuesError(report)

            self.display.print_progress("")
            fixer = FixService(self.config.worktree_dir, git_ops=self.git_ops, display=self.display)
            report.fixed, report.failed = fixer.apply_fixes(cache, result.issues)
            self.cache_service.save(cache)

        # Only report fixes once they are on disk
        fixer.print_applied()
        logger.info(f"Doctor fixed {report.fixed} issues, {report.failed} failed")
        self.display.print_fix_totals(report.fixed, report.failed)
        if report.failed:
            raise DoctorIssuesError(report)
        return report

    def reset(self) -> int:
        """Rebuild the cache from a fresh scan, discarding every existing entry.

        IDs are handed out from 1 in folder-name order.

        Returns:
            Number of worktrees in the new cache
        """
        with self.cache_service.lock():
            self.display.print_progress("Rebuilding cache from scratch...")
            worktrees = discovery.scan_worktrees(self.config.worktree_dir, self.git_ops)
            cache = WorktreeCache()
            cache.sync_worktrees(worktrees)
            self.cache_service.save(cache)

        logger.info(f"Reset cache in {self.config.worktree_dir} with {len(worktrees)} worktrees")
        self.display.print_reset(len(worktrees))
        return len(worktrees)


def run(config: Config, fix: bool = False) -> DoctorReport:
    """Run doctor with default services."""
    return Doctor(config).run(fix=fix)


def reset(config: Config) -> int:
    """Rebuild the cache with default services."""
    return Doctor(config).reset()
