"""Worktree data models."""

from dataclasses import dataclass


@dataclass
class WorktreeInfo:
    """What the cache needs to know about a worktree found on disk."""

    path: str
    repo_path: str = ""
    branch: str = ""
    origin_url: str = ""  # Empty for local-only repos


@dataclass
class GitWorktree:
    """One entry of `git worktree list --porcelain`."""

    path: str
    branch_name: str
    is_main: bool  # Is this the main working tree?

    def __str__(self) -> str:
        main_marker = " (main)" if self.is_main else ""
        return f"{self.branch_name or '(detached)'} @ {self.path}{main_marker}"
