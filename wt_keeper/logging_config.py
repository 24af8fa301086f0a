"""Logging configuration for wt-keeper"""
import logging
import sys
from pathlib import Path

LOG_DIR_NAME = ".wt-keeper"
LOG_FILE_NAME = "wt-keeper.log"

_LEVEL_COLORS = {
    logging.DEBUG: "\033[36m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[35m",
}
_RESET = "\033[0m"


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the level name when stderr is a terminal."""

    def format(self, record):
        color = _LEVEL_COLORS.get(record.levelno)
        if color and sys.stderr.isatty():
            record = logging.makeLogRecord(record.__dict__)
            record.levelname = f"{color}{record.levelname}{_RESET}"
        return super().format(record)


def get_log_file() -> Path:
    """Path of the debug log, recreated on every --debug run."""
    return Path.home() / LOG_DIR_NAME / LOG_FILE_NAME


def _file_handler() -> logging.Handler:
    log_file = get_log_file()
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_file, mode="w")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(
        fmt="%(asctime)s - %(process)d - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    return handler


def setup_logging(verbose: bool = False, debug: bool = False) -> None:
    """
    Configure the root logger.

    Report output goes through rich; logging only carries diagnostics on
    stderr. WARNING by default, INFO with verbose, DEBUG with debug.

    Args:
        verbose: Show INFO level messages
        debug: Show DEBUG level messages and write them to get_log_file()
    """
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # GitPython logs every subprocess at DEBUG
    logging.getLogger("git").setLevel(logging.WARNING)

    if debug:
        root_logger.addHandler(_file_handler())
        fmt = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    else:
        fmt = "[%(name)s] %(message)s"

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(ColoredFormatter(fmt=fmt, datefmt="%Y-%m-%d %H:%M:%S"))
    root_logger.addHandler(console_handler)


def get_logger(name: str) -> logging.Logger:
    """Logger for a wt_keeper module, named without the package prefixes.

    "wt_keeper.services.fix_service" becomes "fix_service".
    """
    for prefix in ("wt_keeper.", "services."):
        if name.startswith(prefix):
            name = name[len(prefix):]
    return logging.getLogger(name)
