"""
wt-keeper - Stable IDs and consistency checks for git worktrees
"""

from .__version__ import __version__
from .core import Doctor
from .cli.main import main

__all__ = ["Doctor", "main", "__version__"]
