"""Read-only probes of the link between a worktree and its main repository.

A linked worktree and its repository point at each other:

    <worktree>/.git                       "gitdir: <repo>/.git/worktrees/<name>"
    <repo>/.git/worktrees/<name>/gitdir   "<worktree>/.git"

Either half goes stale when the repository or the worktree is moved. Nothing
here runs git; the files are read directly so that broken links, which make
git itself refuse to run, can still be inspected.
"""

import os
from pathlib import Path
from typing import Optional

from wt_keeper.exceptions import ProbeError
from wt_keeper.logging_config import get_logger

logger = get_logger(__name__)

GITDIR_PREFIX = "gitdir:"


def is_worktree(path: str) -> bool:
    """A linked worktree has a `.git` *file*."""
    return os.path.isfile(os.path.join(path, ".git"))


def is_main_repo(path: str) -> bool:
    """A main repository has a `.git` *directory*."""
    return os.path.isdir(os.path.join(path, ".git"))


def _read_pointer(pointer_file: Path, relative_to: Path) -> Path:
    """Read a one-line path pointer, resolving relative paths."""
    content = pointer_file.read_text(encoding="utf-8").strip()
    first_line = content.splitlines()[0].strip() if content else ""
    target = Path(first_line)
    if not target.is_absolute():
        target = relative_to / target
    return Path(os.path.normpath(target))


def read_gitdir(worktree_path: str) -> Path:
    """Return the metadata directory a worktree's `.git` file points at.

    The directory may no longer exist.

    Raises:
        ProbeError: If the `.git` file is missing or malformed
    """
    git_file = Path(worktree_path) / ".git"
    try:
        content = git_file.read_text(encoding="utf-8").strip()
    except OSError as e:
        raise ProbeError("read_gitdir", worktree_path, f"cannot read .git file: {e}") from e

    # Only the first line matters
    line = content.splitlines()[0].strip() if content else ""
    if not line.startswith(GITDIR_PREFIX):
        raise ProbeError("read_gitdir", worktree_path, "invalid .git file: expected 'gitdir: <path>'")

    gitdir = line[len(GITDIR_PREFIX):].strip()
    if not gitdir:
        raise ProbeError("read_gitdir", worktree_path, "invalid .git file: empty gitdir path")

    target = Path(gitdir)
    if not target.is_absolute():
        target = Path(worktree_path) / target
    return Path(os.path.normpath(target))


def get_metadata_name(worktree_path: str) -> str:
    """Name of the worktree's entry under `<repo>/.git/worktrees/`."""
    return read_gitdir(worktree_path).name


def get_main_repo_path(worktree_path: str) -> str:
    """Derive the main repository path from a worktree's `.git` file.

    Walks up from `<repo>/.git/worktrees/<name>` to the `.git` directory and
    returns its parent. The repository is not required to still exist there.

    Raises:
        ProbeError: If the `.git` file cannot be parsed or has no `.git` ancestor
    """
    gitdir = read_gitdir(worktree_path)
    for parent in gitdir.parents:
        if parent.name == ".git":
            return str(parent.parent)
    raise ProbeError("get_main_repo_path", worktree_path, f"no .git directory above {gitdir}")


def get_repo_name_from_worktree(worktree_path: str) -> Optional[str]:
    """Folder name of the worktree's main repository, or None if unknown."""
    try:
        return os.path.basename(get_main_repo_path(worktree_path))
    except ProbeError as e:
        logger.debug(f"Cannot determine repo name for {worktree_path}: {e}")
        return None


def is_link_valid(worktree_path: str) -> bool:
    """True when both halves of the worktree link resolve and agree."""
    try:
        gitdir = read_gitdir(worktree_path)
    except ProbeError:
        return False

    back_pointer = gitdir / "gitdir"
    if not back_pointer.is_file():
        return False

    try:
        recorded = _read_pointer(back_pointer, gitdir)
    except OSError:
        return False

    expected = Path(worktree_path) / ".git"
    return os.path.realpath(recorded) == os.path.realpath(expected)


def can_repair(worktree_path: str, repo_path: Optional[str] = None) -> bool:
    """True when the link can be regenerated without human input.

    Needs a parseable `.git` file in the worktree and a main repository that
    still holds the worktree's metadata directory with its recorded HEAD.

    Args:
        worktree_path: Current worktree location
        repo_path: Current main repository location; defaults to the one
            the worktree's `.git` file names
    """
    try:
        name = get_metadata_name(worktree_path)
        if repo_path is None:
            repo_path = get_main_repo_path(worktree_path)
    except ProbeError:
        return False

    if not is_main_repo(repo_path):
        return False

    metadata_dir = Path(repo_path) / ".git" / "worktrees" / name
    return (metadata_dir / "HEAD").is_file()
