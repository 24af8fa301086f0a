"""Git-related services for wt-keeper."""

from .operations import GitOperations
from .worktrees import WorktreeService
from . import discovery, links

__all__ = [
    "GitOperations",
    "WorktreeService",
    "discovery",
    "links",
]
