"""Path formatting utilities."""

import os
from typing import Optional


def format_path(path: str, home: Optional[str] = None) -> str:
    """
    Shorten a path under the home directory to "~/...".

    Args:
        path: Absolute path
        home: Home directory (defaults to the current user's)

    Returns:
        Display form of the path
    """
    if not path:
        return ""
    home = home or os.path.expanduser("~")
    if path == home:
        return "~"
    prefix = home.rstrip(os.sep) + os.sep
    if path.startswith(prefix):
        return "~" + os.sep + path[len(prefix):]
    return path
