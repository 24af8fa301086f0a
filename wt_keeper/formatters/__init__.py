"""Formatting utilities for wt-keeper.

- path: shortening paths for terminal output
- issue: doctor issue and fix-result lines
"""

# Path formatters
from .path import format_path

# Issue formatters
from .issue import (
    format_issue,
    format_fix_success,
    format_fix_failure,
    format_fix_totals,
)

__all__ = [
    # Path
    "format_path",
    # Issue
    "format_issue",
    "format_fix_success",
    "format_fix_failure",
    "format_fix_totals",
]
