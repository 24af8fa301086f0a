"""Configuration handling for wt-keeper"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass
class Config:
    """Configuration for wt-keeper with validation."""

    # Directory scanned for worktrees; holds the cache and lock files
    worktree_dir: str = "."
    # Extra directory searched when a main repository has moved
    repo_dir: Optional[str] = None

    # Cache lock (None = block until acquired)
    lock_timeout: Optional[float] = None

    # Execution modes
    verbose: bool = False
    debug: bool = False
    sequential: bool = False  # Force sequential probing (disable parallelism)
    workers: Optional[int] = None  # Number of parallel workers (None = auto-detect)

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate_worktree_dir()
        self._validate_repo_dir()
        self._validate_lock_timeout()
        self._validate_workers()

    def _validate_worktree_dir(self):
        """Validate worktree_dir is not empty and make it absolute."""
        if not self.worktree_dir or not str(self.worktree_dir).strip():
            raise ValueError("worktree_dir cannot be empty")
        self.worktree_dir = str(Path(str(self.worktree_dir).strip()).expanduser().resolve())

    def _validate_repo_dir(self):
        """Normalize repo_dir; empty string means unset."""
        if self.repo_dir is not None and not str(self.repo_dir).strip():
            self.repo_dir = None
        if self.repo_dir is not None:
            self.repo_dir = str(Path(str(self.repo_dir).strip()).expanduser().resolve())

    def _validate_lock_timeout(self):
        """Validate lock_timeout is positive when set."""
        if self.lock_timeout is not None and self.lock_timeout <= 0:
            raise ValueError(f"lock_timeout must be positive, got {self.lock_timeout}")

    def _validate_workers(self):
        """Validate workers is positive when set."""
        if self.workers is not None and self.workers <= 0:
            raise ValueError(f"workers must be positive, got {self.workers}")

    @property
    def search_dirs(self) -> list[str]:
        """Directories searched for a main repository that has moved."""
        dirs = []
        if self.repo_dir:
            dirs.append(self.repo_dir)
        if self.worktree_dir != self.repo_dir:
            dirs.append(self.worktree_dir)
        return dirs

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {
            "worktree_dir": self.worktree_dir,
            "repo_dir": self.repo_dir,
            "lock_timeout": self.lock_timeout,
            "verbose": self.verbose,
            "debug": self.debug,
            "sequential": self.sequential,
            "workers": self.workers,
        }

    def get(self, key: str, default=None):
        """Get config value by key."""
        return getattr(self, key, default)

    @classmethod
    def from_dict(cls, config_dict: dict) -> "Config":
        """Create Config from dictionary."""
        # Extract only known fields
        known_fields = {
            "worktree_dir",
            "repo_dir",
            "lock_timeout",
            "verbose",
            "debug",
            "sequential",
            "workers",
        }

        filtered = {k: v for k, v in config_dict.items() if k in known_fields}
        return cls(**filtered)

    @classmethod
    def from_env(cls, **overrides) -> "Config":
        """Create Config from WT_* environment variables, with explicit overrides winning."""
        values = {
            "worktree_dir": os.environ.get("WT_WORKTREE_DIR") or os.getcwd(),
            "repo_dir": os.environ.get("WT_REPO_DIR"),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.from_dict(values)
