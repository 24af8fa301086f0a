"""Finding worktrees and repositories on disk."""

import os
from typing import Iterable, List, Optional

from wt_keeper.exceptions import ProbeError
from wt_keeper.logging_config import get_logger
from wt_keeper.models.worktree import WorktreeInfo
from wt_keeper.services.git import links
from wt_keeper.services.git.operations import GitOperations

logger = get_logger(__name__)


def list_child_dirs(base_path: str) -> List[str]:
    """Direct subdirectories of base_path, sorted by name. Missing dir yields []."""
    try:
        entries = sorted(os.scandir(base_path), key=lambda e: e.name)
    except OSError as e:
        logger.debug(f"Cannot read directory {base_path}: {e}")
        return []
    return [entry.path for entry in entries if entry.is_dir()]


def find_repo_in_dirs(name: str, search_dirs: Iterable[str]) -> Optional[str]:
    """Find a main repository by folder name among the direct children of search_dirs.

    Names match case-insensitively; worktrees never match.
    """
    wanted = name.lower()
    for base_path in search_dirs:
        for path in list_child_dirs(base_path):
            if os.path.basename(path).lower() == wanted and links.is_main_repo(path):
                logger.debug(f"Found repository '{name}' at {path}")
                return path
    return None


def find_worktree_dirs(scan_dir: str) -> List[str]:
    """Direct children of scan_dir that look like worktrees (have a `.git` file)."""
    return [path for path in list_child_dirs(scan_dir) if links.is_worktree(path)]


def scan_worktrees(scan_dir: str, git_ops: Optional[GitOperations] = None) -> List[WorktreeInfo]:
    """Ground-truth scan of the worktrees in scan_dir, sorted by folder name.

    Directories whose repository or branch cannot be determined are skipped.
    """
    git_ops = git_ops or GitOperations()
    worktrees = []
    for path in find_worktree_dirs(scan_dir):
        try:
            worktrees.append(git_ops.get_worktree_info(path))
        except ProbeError as e:
            logger.debug(f"Skipping {path}: {e}")
    logger.debug(f"Scanned {scan_dir}: {len(worktrees)} worktrees")
    return worktrees
