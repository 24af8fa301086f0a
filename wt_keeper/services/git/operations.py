"""Git operations service"""

import git

from wt_keeper.exceptions import ProbeError
from wt_keeper.logging_config import get_logger
from wt_keeper.models.worktree import WorktreeInfo
from wt_keeper.services.git import links

logger = get_logger(__name__)

DETACHED_BRANCH = "(detached)"


def describe_git_error(e: git.exc.CommandError) -> str:
    """Turn a git CommandError into a one-line message with exit status and stderr."""
    stderr = (e.stderr if hasattr(e, "stderr") and e.stderr else "").strip()
    if stderr.startswith("stderr:"):
        stderr = stderr[len("stderr:"):].strip().strip("'").strip()
    status = e.status if hasattr(e, "status") else "unknown"

    if stderr:
        return f"exit {status}: {stderr}"
    return f"exit code {status}"


class GitOperations:
    """Read-only git queries against worktrees and repositories."""

    def _git(self, path: str) -> git.Git:
        """Git command runner bound to a working directory.

        Unlike git.Repo, this does not validate the repository up front, so
        worktrees with half-broken links still get git's own error message.
        """
        return git.Git(path)

    def get_current_branch(self, path: str) -> str:
        """Return the branch checked out at path, or "(detached)".

        Raises:
            ProbeError: If git cannot read the worktree
        """
        try:
            branch = self._git(path).branch("--show-current").strip()
        except git.exc.CommandError as e:
            raise ProbeError("get_current_branch", path, describe_git_error(e)) from e
        except OSError as e:
            raise ProbeError("get_current_branch", path, str(e)) from e
        return branch or DETACHED_BRANCH

    def get_origin_url(self, repo_path: str) -> str:
        """Return the origin URL of a repository, or "" for local-only repos."""
        try:
            return self._git(repo_path).remote("get-url", "origin").strip()
        except git.exc.CommandError as e:
            logger.debug(f"No origin URL for {repo_path}: {describe_git_error(e)}")
            return ""
        except OSError as e:
            logger.debug(f"No origin URL for {repo_path}: {e}")
            return ""

    def get_worktree_info(self, path: str) -> WorktreeInfo:
        """Probe a worktree for everything the cache stores about it.

        Raises:
            ProbeError: If the worktree's repository or branch cannot be determined
        """
        repo_path = links.get_main_repo_path(path)
        branch = self.get_current_branch(path)
        origin_url = self.get_origin_url(repo_path)
        logger.debug(f"Probed {path}: repo={repo_path} branch={branch}")
        return WorktreeInfo(path=path, repo_path=repo_path, branch=branch, origin_url=origin_url)
