"""Utility functions for wt-keeper.

This package provides utility modules:
- threading: Worker sizing for parallel git probes
"""

from .threading import (
    is_free_threading_enabled,
    get_optimal_worker_count,
    get_threading_info,
)

__all__ = [
    "is_free_threading_enabled",
    "get_optimal_worker_count",
    "get_threading_info",
]
