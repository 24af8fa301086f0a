"""Doctor issue model and related enums"""
from enum import Enum
from dataclasses import dataclass


class IssueCategory(Enum):
    """Which detector pass produced an issue."""
    CACHE = "cache"
    GIT = "git"
    ORPHAN = "orphan"


class FixAction(Enum):
    """What `doctor --fix` does about an issue."""
    REMOVE = "remove"                        # hard-delete legacy cache debris
    MARK_REMOVED = "mark_removed"            # soft-delete the entry
    UPDATE_PATH = "update_path"              # point the entry at scan_dir/key
    UPDATE_METADATA = "update_metadata"      # re-probe repo path, branch, origin
    REASSIGN_ID = "reassign_id"              # hand out a fresh ID
    REPAIR = "repair"                        # rewrite both halves of the git link
    PRUNE = "prune"                          # drop stale metadata inside the repo
    ADD_TO_CACHE = "add_to_cache"            # adopt an untracked worktree
    REPAIR_AND_ADD = "repair_and_add"        # repair an untracked worktree, then adopt it
    REMOVE_ORPHAN_DIR = "remove_orphan_dir"  # manual cleanup only, never automatic


# Orphan fixes that concern worktrees found on disk (as opposed to ghost entries)
UNTRACKED_ACTIONS = frozenset({
    FixAction.ADD_TO_CACHE,
    FixAction.REPAIR_AND_ADD,
    FixAction.REMOVE_ORPHAN_DIR,
})


@dataclass
class Issue:
    """A problem found by doctor. Never persisted."""
    key: str  # cache key, folder name or git metadata name
    category: IssueCategory
    description: str
    fix_action: FixAction
    repo_path: str = ""  # main repository for git-level fixes


@dataclass
class IssueStats:
    """Counts shown in the doctor summary."""
    cache_valid: int = 0
    cache_issues: int = 0
    git_healthy: int = 0
    git_repairable: int = 0
    git_unrepairable: int = 0
    git_prunable: int = 0
    orphan_untracked: int = 0
    orphan_ghost: int = 0
