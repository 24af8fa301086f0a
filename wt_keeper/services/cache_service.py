"""Cache service for persisting worktree IDs."""
import json
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from wt_keeper.exceptions import CacheLoadError, CachePersistError
from wt_keeper.logging_config import get_logger
from wt_keeper.models.cache import WorktreeCache
from wt_keeper.services.file_lock import FileLock

logger = get_logger(__name__)

CACHE_FILENAME = ".wt-cache.json"
LOCK_FILENAME = ".wt-cache.lock"


class CacheService:
    """Loads and saves the identity cache of one scan directory."""

    def __init__(self, scan_dir: str, lock_timeout: Optional[float] = None):
        """Initialize cache service for a scan directory.

        Args:
            scan_dir: Directory holding the worktrees, the cache and its lock
            lock_timeout: Seconds to wait for the lock; None blocks
        """
        self.scan_dir = Path(scan_dir).resolve()
        self.cache_file = self.scan_dir / CACHE_FILENAME
        self.lock_file = self.scan_dir / LOCK_FILENAME
        self.lock_timeout = lock_timeout

    def lock(self, timeout: Optional[float] = None) -> FileLock:
        """Return an unacquired lock for this scan directory.

        Args:
            timeout: Seconds to wait; defaults to the service's lock_timeout
        """
        return FileLock(str(self.lock_file), timeout=timeout if timeout is not None else self.lock_timeout)

    def load(self) -> WorktreeCache:
        """Load the cache from disk.

        Returns:
            The stored cache, or an empty one if no cache file exists yet

        Raises:
            CacheLoadError: If the file exists but cannot be read or parsed
        """
        if not self.cache_file.exists():
            logger.debug("No cache file found, starting with an empty cache")
            return WorktreeCache()

        try:
            with open(self.cache_file, "r", encoding="utf-8") as f:
                cache_data = json.load(f)
        except json.JSONDecodeError as e:
            raise CacheLoadError(str(self.cache_file), f"invalid JSON: {e}") from e
        except OSError as e:
            raise CacheLoadError(str(self.cache_file), str(e)) from e

        try:
            cache = WorktreeCache.from_dict(cache_data)
        except ValueError as e:
            raise CacheLoadError(str(self.cache_file), str(e)) from e

        logger.debug(f"Loaded cache with {len(cache.worktrees)} entries, next_id={cache.next_id}")
        return cache

    def save(self, cache: WorktreeCache) -> None:
        """Save the cache using an atomic write.

        Raises:
            CachePersistError: If the file cannot be written
        """
        temp_file = self.cache_file.with_suffix(".tmp")
        try:
            with open(temp_file, "w", encoding="utf-8") as f:
                json.dump(cache.to_dict(), f, indent=2)
                f.write("\n")
                f.flush()

            # Atomic rename (POSIX systems guarantee atomicity)
            temp_file.replace(self.cache_file)
            logger.debug(f"Saved cache with {len(cache.worktrees)} entries, next_id={cache.next_id}")
        except OSError as e:
            raise CachePersistError(str(self.cache_file), str(e)) from e
        finally:
            # Clean up temp file if it still exists
            if temp_file.exists():
                try:
                    temp_file.unlink()
                except OSError:
                    pass

    @contextmanager
    def locked(self, timeout: Optional[float] = None) -> Iterator[WorktreeCache]:
        """Hold the cache lock and yield the loaded cache.

        The lock is released on every exit path. Nothing is saved
        automatically; callers persist explicitly once their work succeeded.

        Args:
            timeout: Seconds to wait for the lock; defaults to the service's
                lock_timeout, which blocks when None

        Raises:
            LockError: If the lock cannot be acquired
            CacheLoadError: If the cache file is corrupt
        """
        with self.lock(timeout):
            yield self.load()
