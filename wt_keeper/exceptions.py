"""Custom exceptions for wt-keeper"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from wt_keeper.core.doctor import DoctorReport


class WtKeeperError(Exception):
    """Base exception for all wt-keeper errors."""
    pass


class LockError(WtKeeperError):
    """Exception raised when the cache lock cannot be acquired."""

    def __init__(self, lock_path: str, message: Optional[str] = None):
        self.lock_path = lock_path
        self.message = message

        error_msg = f"Failed to acquire lock {lock_path}"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)


class LockTimeoutError(LockError):
    """Exception raised when a bounded lock wait expires."""

    def __init__(self, lock_path: str, timeout: float):
        self.timeout = timeout
        super().__init__(lock_path, f"timed out after {timeout:g}s (held by another wt process?)")


class CacheLoadError(WtKeeperError):
    """Exception raised when the cache file exists but cannot be parsed."""

    def __init__(self, cache_path: str, message: Optional[str] = None):
        self.cache_path = cache_path
        self.message = message

        error_msg = f"Failed to load cache {cache_path}"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)


class CachePersistError(WtKeeperError):
    """Exception raised when the cache cannot be written to disk."""

    def __init__(self, cache_path: str, message: Optional[str] = None):
        self.cache_path = cache_path
        self.message = message

        error_msg = f"Failed to save cache {cache_path}"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)


class GitOperationError(WtKeeperError):
    """Exception raised for errors in Git operations."""

    def __init__(self, operation: str, path: Optional[str] = None, message: Optional[str] = None):
        self.operation = operation
        self.path = path
        self.message = message

        error_msg = f"Git operation '{operation}' failed"
        if path:
            error_msg += f" for '{path}'"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)


class ProbeError(GitOperationError):
    """Exception raised when a worktree or repository cannot be inspected."""
    pass


class RepairError(GitOperationError):
    """Exception raised when a worktree link could not be repaired."""

    def __init__(self, path: str, message: Optional[str] = None):
        super().__init__("repair", path, message)


class FixError(WtKeeperError):
    """Exception raised when a single doctor fix cannot be applied."""

    def __init__(self, key: str, message: str):
        self.key = key
        self.message = message
        super().__init__(f"{key}: {message}")


class DoctorIssuesError(WtKeeperError):
    """Exception raised when doctor finishes with unresolved issues."""

    def __init__(self, report: "DoctorReport"):
        self.report = report

        if report.failed:
            error_msg = f"{report.failed} fix(es) failed"
        else:
            error_msg = f"{len(report.issues)} issue(s) found"

        super().__init__(error_msg)


class UnknownWorktreeError(WtKeeperError):
    """Exception raised when no active worktree has the requested ID."""

    def __init__(self, worktree_id: int, message: Optional[str] = None):
        self.worktree_id = worktree_id
        self.message = message

        error_msg = f"No worktree with ID {worktree_id}"
        if message:
            error_msg += f" ({message})"

        super().__init__(error_msg)
