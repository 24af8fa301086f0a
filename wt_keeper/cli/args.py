"""Command-line argument parsing for wt-keeper."""

import argparse
from typing import List, Optional

from wt_keeper.__version__ import __version__


def _positive_float(value: str) -> float:
    number = float(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {value}")
    return number


def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    """Build the `wt` argument parser."""
    parser = argparse.ArgumentParser(
        prog="wt",
        description="Stable IDs and consistency checks for git worktrees",
        epilog="Environment: WT_WORKTREE_DIR sets the default scan directory, "
        "WT_REPO_DIR an extra directory searched for moved repositories.",
    )
    parser.add_argument("--version", action="version", version=f"wt-keeper {__version__}")
    parser.add_argument(
        "-d",
        "--dir",
        dest="worktree_dir",
        metavar="DIR",
        help="Directory holding the worktrees (default: $WT_WORKTREE_DIR or current directory)",
    )
    parser.add_argument(
        "--repo-dir",
        metavar="DIR",
        help="Directory searched for main repositories that have moved (default: $WT_REPO_DIR)",
    )
    parser.add_argument(
        "--lock-timeout",
        type=_positive_float,
        metavar="SECONDS",
        help="Give up waiting for the cache lock after this many seconds (default: wait forever)",
    )
    parser.add_argument(
        "--workers",
        type=_positive_int,
        metavar="N",
        help="Number of parallel workers for repository checks (default: auto-detect)",
    )
    parser.add_argument(
        "--sequential",
        action="store_true",
        help="Force sequential processing (disable parallelism)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show verbose output")
    parser.add_argument(
        "--debug", action="store_true", help="Show debug information for troubleshooting"
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    doctor = subparsers.add_parser("doctor", help="Check the worktree cache and git links")
    doctor.add_argument("--fix", action="store_true", help="Repair the issues found")
    doctor.add_argument(
        "--reset",
        action="store_true",
        help="Rebuild the cache from scratch (renumbers all IDs from 1)",
    )

    subparsers.add_parser("list", help="Sync the cache and list worktrees with their IDs")

    path = subparsers.add_parser("path", help="Print the path of the worktree with the given ID")
    path.add_argument("id", type=int, help="Worktree ID")

    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    return build_parser().parse_args(argv)
