"""Core operations of wt-keeper."""

from .doctor import Doctor, DoctorReport, reset, run
from .registry import resolve_path, sync_cache

__all__ = ["Doctor", "DoctorReport", "reset", "run", "resolve_path", "sync_cache"]
