"""Shared constants for wt-keeper."""

from dataclasses import dataclass
from typing import List

from wt_keeper.models.issue import FixAction, IssueCategory


@dataclass
class ColumnDefinition:
    """Definition of a table column."""

    key: str
    label: str
    width: int = 0  # 0 means auto-width


# Columns of `wt list`
COLUMNS: List[ColumnDefinition] = [
    ColumnDefinition("id", "ID", 5),
    ColumnDefinition("folder", "Folder", 30),
    ColumnDefinition("branch", "Branch", 30),
    ColumnDefinition("repo", "Repo"),
]


# Symbol constants
SYMBOL_OK = "✓"
SYMBOL_WARNING = "⚠"
SYMBOL_FAILED = "✗"
SYMBOL_BULLET = "•"


# Report styles (Rich color names)
STYLE_OK = "green"
STYLE_WARNING = "yellow"
STYLE_FAILED = "red"


# Section headings of the issue listing, in display order
CATEGORY_TITLES = {
    IssueCategory.CACHE: "Cache issues",
    IssueCategory.GIT: "Git link issues",
    IssueCategory.ORPHAN: "Orphan issues",
}


# Past-tense descriptions used when a fix succeeds (orphan dirs are never fixed automatically)
FIX_DONE_TEXT = {
    FixAction.REMOVE: "Removed legacy entry",
    FixAction.MARK_REMOVED: "Marked as removed",
    FixAction.UPDATE_PATH: "Updated path for",
    FixAction.UPDATE_METADATA: "Updated metadata for",
    FixAction.REASSIGN_ID: "Reassigned ID for",
    FixAction.REPAIR: "Repaired git links for",
    FixAction.PRUNE: "Pruned stale reference",
    FixAction.ADD_TO_CACHE: "Added to cache",
    FixAction.REPAIR_AND_ADD: "Repaired and added to cache",
}
