"""Worktree identity cache models.

The cache maps a lookup key (the worktree's folder name inside the scan
directory) to a CacheEntry holding its stable ID and the metadata needed to
repair it later. Entries are soft-deleted via ``removed_at`` so that retired
IDs stay visible until an explicit reset.
"""

import os
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional, Tuple

from wt_keeper.models.worktree import WorktreeInfo

# Keys from an earlier schema were "<repo>::<branch>"
LEGACY_KEY_SEPARATOR = "::"

_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


def make_worktree_key(path: str) -> str:
    """Cache key for a worktree path: its folder name."""
    return os.path.basename(os.path.normpath(path))


def is_legacy_key(key: str) -> bool:
    """True for keys written by the old repo::branch schema."""
    return LEGACY_KEY_SEPARATOR in key


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 timestamp, including ones with nanosecond precision."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(r"\1", text)
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class CacheEntry:
    """One tracked worktree."""

    id: int
    path: str
    repo_path: str = ""
    branch: str = ""
    origin_url: str = ""
    removed_at: Optional[datetime] = None

    @property
    def is_removed(self) -> bool:
        return self.removed_at is not None

    def update_from(self, info: WorktreeInfo) -> None:
        """Refresh metadata from a fresh probe and revive the entry."""
        self.path = info.path
        self.repo_path = info.repo_path
        self.branch = info.branch
        self.origin_url = info.origin_url
        self.removed_at = None

    def to_dict(self) -> Dict:
        data = {
            "id": self.id,
            "path": self.path,
            "repo_path": self.repo_path,
            "branch": self.branch,
        }
        if self.origin_url:
            data["origin_url"] = self.origin_url
        if self.removed_at is not None:
            data["removed_at"] = self.removed_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> "CacheEntry":
        """Build an entry from its JSON form. Unknown fields are ignored.

        Raises:
            ValueError: If a required field is missing or has the wrong type
        """
        if not isinstance(data, dict):
            raise ValueError("entry is not an object")

        entry_id = data.get("id")
        if not isinstance(entry_id, int) or isinstance(entry_id, bool):
            raise ValueError(f"invalid id {entry_id!r}")

        removed_at = data.get("removed_at")
        return cls(
            id=entry_id,
            path=str(data.get("path") or ""),
            repo_path=str(data.get("repo_path") or ""),
            branch=str(data.get("branch") or ""),
            origin_url=str(data.get("origin_url") or ""),
            removed_at=parse_timestamp(removed_at) if removed_at else None,
        )


@dataclass
class WorktreeCache:
    """Mapping of lookup key to CacheEntry plus the next ID to hand out."""

    worktrees: Dict[str, CacheEntry] = field(default_factory=dict)
    next_id: int = 1

    def active_entries(self) -> Iterator[Tuple[str, CacheEntry]]:
        """Yield (key, entry) for entries that are not soft-deleted, in key order."""
        for key in sorted(self.worktrees):
            entry = self.worktrees[key]
            if not entry.is_removed:
                yield key, entry

    def count_active(self) -> int:
        return sum(1 for _ in self.active_entries())

    def _issue_id(self) -> int:
        """Hand out a fresh ID that no entry, active or retired, has ever held."""
        highest = max((entry.id for entry in self.worktrees.values()), default=0)
        new_id = max(self.next_id, highest + 1)
        self.next_id = new_id + 1
        return new_id

    def _id_taken(self, worktree_id: int, key: str) -> bool:
        """True if an active entry other than key holds worktree_id."""
        return any(
            other_key != key and entry.id == worktree_id
            for other_key, entry in self.active_entries()
        )

    def get_or_assign_id(self, info: WorktreeInfo) -> int:
        """Return the ID for a worktree, assigning a new one if it is unknown.

        Calling this again for the same folder returns the same ID and does not
        advance ``next_id``. Metadata of an existing entry is refreshed and a
        soft-deleted entry is revived, keeping its old ID unless an active
        entry has taken it in the meantime.
        """
        key = make_worktree_key(info.path)

        entry = self.worktrees.get(key)
        if entry is not None:
            if entry.is_removed and self._id_taken(entry.id, key):
                entry.id = self._issue_id()
            entry.update_from(info)
            return entry.id

        new_id = self._issue_id()
        self.worktrees[key] = CacheEntry(
            id=new_id,
            path=info.path,
            repo_path=info.repo_path,
            branch=info.branch,
            origin_url=info.origin_url,
        )
        return new_id

    def reassign_id(self, key: str) -> Optional[int]:
        """Give an entry a fresh ID. Returns the new ID or None if the key is unknown."""
        entry = self.worktrees.get(key)
        if entry is None:
            return None
        entry.id = self._issue_id()
        return entry.id

    def resolve_duplicate_ids(self) -> List[Tuple[str, int, int]]:
        """Give a fresh ID to every active entry sharing one with a lower key.

        Returns:
            (key, old_id, new_id) for each reassigned entry
        """
        holders: Dict[int, str] = {}
        changes = []
        for key, entry in self.active_entries():
            if entry.id not in holders:
                holders[entry.id] = key
                continue
            old_id = entry.id
            entry.id = self._issue_id()
            changes.append((key, old_id, entry.id))
        return changes

    def mark_removed(self, key: str) -> bool:
        """Soft-delete an entry. Returns False if the key is unknown."""
        entry = self.worktrees.get(key)
        if entry is None:
            return False
        if entry.removed_at is None:
            entry.removed_at = _utcnow()
        return True

    def remove(self, key: str) -> bool:
        """Hard-delete an entry. Only used for debris that never held a real ID."""
        return self.worktrees.pop(key, None) is not None

    def get_by_id(self, worktree_id: int) -> Optional[Tuple[str, CacheEntry]]:
        """Look up an entry by ID, preferring active entries over retired ones."""
        retired = None
        for key, entry in self.worktrees.items():
            if entry.id != worktree_id:
                continue
            if not entry.is_removed:
                return key, entry
            if retired is None:
                retired = (key, entry)
        return retired

    def sync_worktrees(self, worktrees: List[WorktreeInfo]) -> Dict[str, int]:
        """Reconcile the cache with a fresh scan.

        New folders get new IDs, known folders get their metadata refreshed and
        folders that vanished are soft-deleted. Entries are never purged here.

        Returns:
            Mapping of worktree path to its ID
        """
        current_keys = set()
        path_to_id = {}

        for info in worktrees:
            current_keys.add(make_worktree_key(info.path))
            path_to_id[info.path] = self.get_or_assign_id(info)

        now = _utcnow()
        for key, entry in self.worktrees.items():
            if key not in current_keys and entry.removed_at is None:
                entry.removed_at = now

        return path_to_id

    def to_dict(self) -> Dict:
        return {
            "worktrees": {key: entry.to_dict() for key, entry in sorted(self.worktrees.items())},
            "next_id": self.next_id,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "WorktreeCache":
        """Build a cache from its JSON form.

        Raises:
            ValueError: If the document or one of its entries is malformed
        """
        if not isinstance(data, dict):
            raise ValueError("cache document is not an object")

        raw_worktrees = data.get("worktrees") or {}
        if not isinstance(raw_worktrees, dict):
            raise ValueError("'worktrees' is not an object")

        worktrees = {}
        for key, raw_entry in raw_worktrees.items():
            try:
                worktrees[key] = CacheEntry.from_dict(raw_entry)
            except ValueError as e:
                raise ValueError(f"entry '{key}': {e}") from e

        next_id = data.get("next_id", 1)
        if not isinstance(next_id, int) or isinstance(next_id, bool):
            raise ValueError(f"invalid next_id {next_id!r}")

        return cls(worktrees=worktrees, next_id=max(next_id, 1))
