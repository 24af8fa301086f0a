"""Command-line entry point for wt-keeper"""

import argparse
import sys
from typing import List, Optional

from rich.console import Console
from rich.markup import escape

from wt_keeper.config import Config
from wt_keeper.core import Doctor, resolve_path, sync_cache
from wt_keeper.exceptions import DoctorIssuesError, WtKeeperError
from wt_keeper.logging_config import get_log_file, setup_logging
from wt_keeper.services.display_service import DisplayService
from wt_keeper.utils.threading import get_threading_info

from .args import parse_args

console = Console(highlight=False)


def _build_config(parsed_args: argparse.Namespace) -> Config:
    return Config.from_env(
        worktree_dir=parsed_args.worktree_dir,
        repo_dir=parsed_args.repo_dir,
        lock_timeout=parsed_args.lock_timeout,
        workers=parsed_args.workers,
        verbose=parsed_args.verbose,
        debug=parsed_args.debug,
        sequential=parsed_args.sequential,
    )


def _print_debug_info(config: Config) -> None:
    console.print("[yellow]Debug mode enabled[/yellow]")
    console.print(f"  Log file: {escape(str(get_log_file()))}")

    threading_info = get_threading_info()
    console.print("[yellow]Threading Information:[/yellow]")
    console.print(f"  Python version: {threading_info['python_version']}")
    console.print(f"  CPU count: {threading_info['cpu_count']}")
    console.print(f"  Free-threading enabled: {threading_info['free_threading']}")

    console.print("[yellow]Configuration:[/yellow]")
    for key, value in config.to_dict().items():
        console.print(f"  {key}: {escape(str(value))}")


def _run_command(parsed_args: argparse.Namespace, config: Config) -> int:
    display = DisplayService(console)

    if parsed_args.command == "doctor":
        doctor = Doctor(config, display=display)
        if parsed_args.reset:
            doctor.reset()
        else:
            doctor.run(fix=parsed_args.fix)
        return 0

    if parsed_args.command == "list":
        display.display_worktree_table(sync_cache(config))
        return 0

    if parsed_args.command == "path":
        # Plain print so the output can be used in `cd "$(wt path 3)"`
        print(resolve_path(config, parsed_args.id))
        return 0

    raise ValueError(f"Unknown command: {parsed_args.command}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the application."""
    parsed_args = parse_args(argv)

    try:
        setup_logging(verbose=parsed_args.verbose, debug=parsed_args.debug)
        config = _build_config(parsed_args)

        if parsed_args.debug:
            _print_debug_info(config)

        return _run_command(parsed_args, config)
    except DoctorIssuesError:
        # The report has already been printed
        return 1
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        return 1
    except (WtKeeperError, ValueError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        if parsed_args.debug:
            console.print_exception()
        return 1


if __name__ == "__main__":
    sys.exit(main())
