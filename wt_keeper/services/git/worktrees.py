"""Worktree operations service for wt-keeper."""

import os
from pathlib import Path
from typing import Dict, Any, List

import git

from wt_keeper.exceptions import GitOperationError, ProbeError, RepairError
from wt_keeper.logging_config import get_logger
from wt_keeper.models.worktree import GitWorktree
from wt_keeper.services.git import links
from wt_keeper.services.git.operations import describe_git_error

logger = get_logger(__name__)


class WorktreeService:
    """Worktree bookkeeping of one main repository."""

    def __init__(self, repo_path: str):
        """Initialize the worktree service.

        Args:
            repo_path: Path to the main git repository
        """
        self.repo_path = repo_path

    def _get_repo(self) -> git.Repo:
        """Open the main repository.

        Raises:
            ProbeError: If repo_path is not a usable git repository
        """
        try:
            return git.Repo(self.repo_path)
        except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError) as e:
            raise ProbeError("open_repo", self.repo_path, f"not a git repository ({e})") from e

    def _common_dir(self) -> Path:
        """The repository's shared git directory (holds `worktrees/`)."""
        return Path(self._get_repo().common_dir)

    def list_worktrees(self) -> List[GitWorktree]:
        """List the worktrees this repository knows about.

        Raises:
            ProbeError: If the repository cannot be opened or git fails
        """
        try:
            output = self._get_repo().git.worktree("list", "--porcelain")
        except git.exc.CommandError as e:
            raise ProbeError("worktree list", self.repo_path, describe_git_error(e)) from e

        # Format:
        # worktree /path/to/worktree
        # branch refs/heads/branch-name
        # (blank line between worktrees)
        worktree_list: List[GitWorktree] = []
        current_worktree: Dict[str, Any] = {}

        def flush():
            if current_worktree.get("path"):
                worktree_list.append(
                    GitWorktree(
                        path=current_worktree["path"],
                        branch_name=current_worktree.get("branch", ""),
                        is_main=current_worktree.get("is_main", False),
                    )
                )

        for line in output.split("\n"):
            line = line.strip()

            if not line:
                # Empty line marks end of worktree entry
                flush()
                current_worktree = {}
                continue

            if line.startswith("worktree "):
                current_worktree["path"] = line.split(" ", 1)[1]
                # First worktree in list is always the main one
                current_worktree["is_main"] = not worktree_list
            elif line.startswith("branch "):
                branch_ref = line.split(" ", 1)[1]
                if branch_ref.startswith("refs/heads/"):
                    current_worktree["branch"] = branch_ref[len("refs/heads/"):]
                else:
                    current_worktree["branch"] = ""
            elif line == "detached":
                current_worktree["branch"] = ""

        # Handle last entry if no trailing blank line
        flush()

        logger.debug(f"Found {len(worktree_list)} worktrees in {self.repo_path}")
        for wt in worktree_list:
            logger.debug(f"  {wt}")
        return worktree_list

    def list_prunable(self) -> List[str]:
        """Names of metadata entries under `worktrees/` with no working directory.

        Mirrors git's own prune rule: the entry's `gitdir` file is missing or
        points somewhere that no longer exists. Locked entries are kept.

        Raises:
            ProbeError: If the repository cannot be opened
        """
        worktrees_dir = self._common_dir() / "worktrees"
        if not worktrees_dir.is_dir():
            return []

        prunable = []
        for metadata_dir in sorted(worktrees_dir.iterdir()):
            if not metadata_dir.is_dir():
                continue
            if (metadata_dir / "locked").exists():
                logger.debug(f"Skipping locked worktree metadata {metadata_dir.name}")
                continue

            gitdir_file = metadata_dir / "gitdir"
            try:
                recorded = gitdir_file.read_text(encoding="utf-8").strip()
            except OSError:
                prunable.append(metadata_dir.name)
                continue

            target = Path(recorded)
            if not target.is_absolute():
                target = metadata_dir / target
            if not recorded or not os.path.exists(target):
                prunable.append(metadata_dir.name)

        return prunable

    def prune_worktrees(self) -> None:
        """Prune stale worktree metadata. Real worktrees are never touched.

        Raises:
            GitOperationError: If git worktree prune fails
        """
        try:
            self._get_repo().git.worktree("prune")
        except git.exc.CommandError as e:
            error_msg = f"git worktree prune failed ({describe_git_error(e)})"
            logger.error(f"Failed to prune worktrees in {self.repo_path}: {error_msg}")
            raise GitOperationError("prune", self.repo_path, error_msg) from e
        logger.info(f"Pruned stale worktree metadata in {self.repo_path}")

    def repair_worktree(self, worktree_path: str) -> None:
        """Regenerate both halves of the link between this repo and a worktree.

        Works when the repository moved, the worktree moved or both, as long
        as repo_path and worktree_path are their current locations. Repairing
        a valid link is a no-op.

        Raises:
            RepairError: If git cannot repair the link or it is still broken afterwards
        """
        if links.is_link_valid(worktree_path):
            logger.debug(f"Link for {worktree_path} already valid, nothing to repair")
            return

        if not links.is_main_repo(self.repo_path):
            raise RepairError(worktree_path, f"main repository not found at {self.repo_path}")

        try:
            self._get_repo().git.worktree("repair", worktree_path)
        except git.exc.CommandError as e:
            raise RepairError(worktree_path, f"git worktree repair failed ({describe_git_error(e)})") from e
        except ProbeError as e:
            raise RepairError(worktree_path, str(e)) from e

        if not links.is_link_valid(worktree_path):
            raise RepairError(worktree_path, "link still broken after git worktree repair")

        logger.info(f"Repaired worktree link {worktree_path} <-> {self.repo_path}")
