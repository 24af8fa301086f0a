"""Cross-process exclusive lock bound to an open file descriptor."""
import os
import time
from typing import Optional

from wt_keeper.exceptions import LockError, LockTimeoutError
from wt_keeper.logging_config import get_logger

# Import fcntl for POSIX file locking (Unix/Linux/macOS)
try:
    import fcntl
    HAS_FCNTL = True
except ImportError:
    HAS_FCNTL = False

logger = get_logger(__name__)

# How often a bounded wait retries a non-blocking flock
POLL_INTERVAL = 0.05


class FileLock:
    """Exclusive advisory lock on a lock file.

    The lock lives on the open descriptor, so the kernel drops it when the
    process exits or crashes; no stale lock files need cleaning up.
    """

    def __init__(self, path: str, timeout: Optional[float] = None):
        """Initialize the lock.

        Args:
            path: Lock file path (created if missing)
            timeout: Seconds to wait before giving up; None blocks indefinitely
        """
        self.path = str(path)
        self.timeout = timeout
        self._fd: Optional[int] = None

    @property
    def is_locked(self) -> bool:
        return self._fd is not None

    def acquire(self) -> None:
        """Acquire the lock, blocking or waiting up to ``timeout`` seconds.

        Raises:
            LockError: If the lock file cannot be opened or locked
            LockTimeoutError: If the bounded wait expires
        """
        if self._fd is not None:
            return

        try:
            fd = os.open(self.path, os.O_CREAT | os.O_RDWR, 0o600)
        except OSError as e:
            raise LockError(self.path, str(e)) from e

        if not HAS_FCNTL:
            logger.warning("File locking not available on this platform; cache is unprotected")
            self._fd = fd
            return

        try:
            if self.timeout is None:
                self._block_for_lock(fd)
            else:
                self._wait_for_lock(fd)
        except BaseException:
            os.close(fd)
            raise

        self._fd = fd
        logger.debug(f"Acquired lock {self.path}")

    def _block_for_lock(self, fd: int) -> None:
        try:
            fcntl.flock(fd, fcntl.LOCK_EX)
        except OSError as e:
            raise LockError(self.path, str(e)) from e

    def _wait_for_lock(self, fd: int) -> None:
        deadline = time.monotonic() + self.timeout
        while True:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                return
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    raise LockTimeoutError(self.path, self.timeout)
                time.sleep(POLL_INTERVAL)
            except OSError as e:
                raise LockError(self.path, str(e)) from e

    def release(self) -> None:
        """Release the lock and close the descriptor. Safe to call twice."""
        if self._fd is None:
            return

        fd, self._fd = self._fd, None
        try:
            if HAS_FCNTL:
                fcntl.flock(fd, fcntl.LOCK_UN)
            logger.debug(f"Released lock {self.path}")
        except OSError as e:
            logger.debug(f"Error releasing lock: {e}")
        finally:
            os.close(fd)

    def __enter__(self) -> "FileLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
