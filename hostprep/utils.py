"""Utility functions for the bootstrap tool."""
import logging
import os
from pathlib import Path
from typing import Optional, Union

import typer

logger = logging.getLogger("hostprep")

LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


def is_root() -> bool:
    """Check if the script is running as root."""
    return os.geteuid() == 0


class ConsoleFormatter(logging.Formatter):
    """Short, human-facing console lines."""

    PREFIXES = {
        logging.DEBUG: "[DEBUG] ",
        logging.INFO: "[INFO] ",
        logging.WARNING: "[WARN] ",
        logging.ERROR: "[ERROR] ",
        logging.CRITICAL: "[ERROR] ",
    }

    def format(self, record: logging.LogRecord) -> str:
        prefix = getattr(record, "prefix", None)
        if prefix is None:
            prefix = self.PREFIXES.get(record.levelno, "")
        return f"{prefix}{record.getMessage()}"


class ConsoleHandler(logging.Handler):
    """Write records with typer.echo; warnings and errors go to stderr."""

    def emit(self, record: logging.LogRecord) -> None:
        if not getattr(record, "console", True):
            return
        try:
            typer.echo(self.format(record), err=record.levelno >= logging.WARNING)
        except Exception:
            self.handleError(record)


def _open_log_file(path: Path) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.touch(mode=0o600, exist_ok=True)
    os.chmod(path, 0o600)
    handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    handler.setFormatter(logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(message)s",
        datefmt=LOG_DATE_FORMAT,
    ))
    handler.setLevel(logging.DEBUG)
    return handler


def setup_logging(verbose: bool = False, log_file: Optional[Union[str, Path]] = None) -> Optional[Path]:
    """Setup console and log file handlers.

    Every record goes to the log file; the console gets INFO and up, or
    everything when verbose. Calling it again replaces the previous handlers.
    Returns the log file in use, or None when it could not be opened.
    """
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.setLevel(logging.DEBUG)

    console = ConsoleHandler()
    console.setFormatter(ConsoleFormatter())
    console.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.addHandler(console)

    if log_file is None:
        return None

    path = Path(log_file)
    try:
        logger.addHandler(_open_log_file(path))
    except OSError as e:
        log_warning(f"Cannot open log file {path} ({e}); logging to console only.")
        return None

    log_detail("=" * 20)
    log_detail("Bootstrap run started")
    log_detail("=" * 20)
    return path


def log_info(message: str) -> None:
    """Log an informational message."""
    logger.info(message)


def log_action(message: str) -> None:
    """Log an action being performed."""
    logger.info(message, extra={"prefix": "  -> "})


def log_warning(message: str) -> None:
    """Log a tolerated failure."""
    logger.warning(message)


def log_error(message: str) -> None:
    """Log an error."""
    logger.error(message)


def log_detail(message: str) -> None:
    """Log a detail to the log file only (console too when verbose)."""
    logger.debug(message)


def log_console(message: str = "") -> None:
    """Print to the console as is and record the line in the log file."""
    typer.echo(message)
    if message.strip():
        logger.info(message, extra={"console": False})
