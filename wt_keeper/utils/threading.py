"""Worker-count helpers for parallel, read-only git probes."""

import os
import sys
from typing import Any, Dict, Optional


def is_free_threading_enabled() -> bool:
    """True on Python 3.13+ builds running with the GIL disabled."""
    try:
        return hasattr(sys, "_is_gil_enabled") and not sys._is_gil_enabled()
    except Exception:
        return False


def get_optimal_worker_count(task_count: int, user_specified: Optional[int] = None) -> int:
    """Number of threads to use for task_count independent probes.

    Probes mostly wait on git subprocesses, so the pool is sized for I/O
    rather than CPU, and never exceeds the number of tasks.

    Args:
        task_count: Number of independent probes to run
        user_specified: Worker count from --workers, if given

    Returns:
        Worker count of at least 1
    """
    if user_specified is not None and user_specified > 0:
        workers = user_specified
    else:
        cpu_count = os.cpu_count() or 1
        cap = 64 if is_free_threading_enabled() else 32
        workers = min(cap, cpu_count + 4)

    return max(1, min(workers, task_count))


def get_threading_info() -> Dict[str, Any]:
    """Threading details printed by --debug."""
    return {
        "python_version": f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
        "free_threading": is_free_threading_enabled(),
        "cpu_count": os.cpu_count() or 1,
    }
