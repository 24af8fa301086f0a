"""Display service for doctor reports and worktree listings"""
from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from wt_keeper.constants import (
    CATEGORY_TITLES,
    COLUMNS,
    STYLE_FAILED,
    STYLE_OK,
    STYLE_WARNING,
    SYMBOL_FAILED,
    SYMBOL_OK,
    SYMBOL_WARNING,
)
from wt_keeper.formatters import (
    format_fix_failure,
    format_fix_success,
    format_fix_totals,
    format_issue,
    format_path,
)
from wt_keeper.logging_config import get_logger
from wt_keeper.models.cache import WorktreeCache
from wt_keeper.models.issue import Issue, IssueStats

logger = get_logger(__name__)


class DisplayService:
    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console(highlight=False)

    def _line(self, symbol: str, style: str, text: str) -> None:
        self.console.print(f"  [{style}]{symbol}[/{style}] {escape(text)}")

    def print_progress(self, message: str) -> None:
        self.console.print(escape(message))

    def print_summary(self, stats: IssueStats) -> None:
        """Print the per-category counts of a doctor scan."""
        self.console.print()

        self._line(SYMBOL_OK, STYLE_OK, f"{stats.cache_valid} cache entries valid")
        if stats.cache_issues:
            self._line(SYMBOL_WARNING, STYLE_WARNING, f"{stats.cache_issues} cache issues")

        if stats.git_healthy:
            self._line(SYMBOL_OK, STYLE_OK, f"{stats.git_healthy} worktrees healthy")
        if stats.git_repairable:
            self._line(SYMBOL_WARNING, STYLE_WARNING, f"{stats.git_repairable} repairable (broken links)")
        if stats.git_prunable:
            self._line(SYMBOL_WARNING, STYLE_WARNING, f"{stats.git_prunable} stale git references (prunable)")
        if stats.git_unrepairable:
            self._line(SYMBOL_FAILED, STYLE_FAILED, f"{stats.git_unrepairable} unrepairable")

        if stats.orphan_untracked:
            self._line(SYMBOL_WARNING, STYLE_WARNING, f"{stats.orphan_untracked} untracked worktrees found")
        if stats.orphan_ghost:
            self._line(SYMBOL_WARNING, STYLE_WARNING,
                       f"{stats.orphan_ghost} ghost entries (in cache but not in git)")

    def print_issues(self, issues: List[Issue]) -> None:
        """Print issues grouped under their category heading."""
        self.console.print(f"\nFound {len(issues)} issues:")
        for category, title in CATEGORY_TITLES.items():
            category_issues = [issue for issue in issues if issue.category == category]
            if not category_issues:
                continue
            self.console.print(f"\n{title}:")
            for issue in category_issues:
                self.console.print(escape(format_issue(issue)))

    def print_healthy(self) -> None:
        self.console.print(f"\n[{STYLE_OK}]{SYMBOL_OK} No issues found[/{STYLE_OK}]")

    def print_fix_hint(self) -> None:
        self.console.print("\nRun 'wt doctor --fix' to repair.")

    def print_fix_success(self, issue: Issue, detail: str = "") -> None:
        self.console.print(f"[{STYLE_OK}]{escape(format_fix_success(issue, detail))}[/{STYLE_OK}]")

    def print_fix_failure(self, issue: Issue, error: object) -> None:
        self.console.print(f"[{STYLE_FAILED}]{escape(format_fix_failure(issue, error))}[/{STYLE_FAILED}]")

    def print_manual_cleanup(self, issue: Issue, path: str) -> None:
        """Advise deleting a directory that doctor will not remove by itself."""
        self.console.print(
            f"[{STYLE_WARNING}]  {SYMBOL_WARNING} Cannot fix {escape(repr(issue.key))}: "
            f"repo not found. Delete manually: rm -rf {escape(path)}[/{STYLE_WARNING}]"
        )

    def print_fix_totals(self, fixed: int, failed: int) -> None:
        self.console.print(f"\n{format_fix_totals(fixed, failed)}")

    def print_reset(self, count: int) -> None:
        self.console.print(
            f"[{STYLE_OK}]{SYMBOL_OK} Cache rebuilt with {count} worktrees (IDs reset from 1)[/{STYLE_OK}]"
        )

    def display_worktree_table(self, cache: WorktreeCache) -> None:
        """Display the active worktrees of a cache, ordered by ID."""
        entries = sorted(cache.active_entries(), key=lambda item: item[1].id)
        if not entries:
            self.console.print("No worktrees found.")
            return

        table = Table()
        for col in COLUMNS:
            table.add_column(col.label, min_width=col.width or None)

        for key, entry in entries:
            # Match COLUMNS order: ID, Folder, Branch, Repo
            table.add_row(
                str(entry.id),
                escape(key),
                escape(entry.branch),
                escape(format_path(entry.repo_path)),
            )

        self.console.print(table)
        logger.debug(f"Displayed {len(entries)} worktrees")
