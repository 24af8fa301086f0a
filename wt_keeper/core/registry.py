"""Everyday cache access: syncing with the scan directory and ID lookup."""

from typing import Optional

from wt_keeper.config import Config
from wt_keeper.exceptions import UnknownWorktreeError
from wt_keeper.logging_config import get_logger
from wt_keeper.models.cache import WorktreeCache
from wt_keeper.services.cache_service import CacheService
from wt_keeper.services.git import GitOperations, discovery

logger = get_logger(__name__)


def sync_cache(config: Config, git_ops: Optional[GitOperations] = None) -> WorktreeCache:
    """Reconcile the cache with the worktrees on disk and save it.

    Known folders keep their IDs, new folders get fresh ones and vanished
    folders are soft-deleted.
    """
    cache_service = CacheService(config.worktree_dir, lock_timeout=config.lock_timeout)
    with cache_service.locked() as cache:
        worktrees = discovery.scan_worktrees(config.worktree_dir, git_ops)
        cache.sync_worktrees(worktrees)
        cache_service.save(cache)
    logger.debug(f"Synced {len(worktrees)} worktrees in {config.worktree_dir}")
    return cache


def resolve_path(config: Config, worktree_id: int) -> str:
    """Return the path of the active worktree with the given ID.

    Raises:
        UnknownWorktreeError: If no entry has the ID or it has been retired
    """
    cache_service = CacheService(config.worktree_dir, lock_timeout=config.lock_timeout)
    with cache_service.locked() as cache:
        found = cache.get_by_id(worktree_id)

    if found is None:
        raise UnknownWorktreeError(worktree_id)
    key, entry = found
    if entry.is_removed:
        raise UnknownWorktreeError(worktree_id, f"'{key}' was removed")
    return entry.path
