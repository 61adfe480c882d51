"""Logging setup -- rich console output plus a best-effort log file.

Modules log through ``logging.getLogger(__name__)``. ``configure_logging``
attaches a rich console handler and a daily log file. Writing the log
file is best-effort: a failure to open or write it is reported once on
the console and never interrupts a run.

Typical usage::

    import logging
    from copilot_usage_export.log import configure_logging, log_success

    configure_logging(config.log_dir, level="INFO")
    logger = logging.getLogger(__name__)
    log_success(logger, "Exported %d files", 3)
"""

from __future__ import annotations

import logging
import time
from datetime import UTC, datetime
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

ROOT_LOGGER = "copilot_usage_export"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%SZ"


class SafeFileHandler(logging.FileHandler):
    """File handler that drops records it cannot write.

    Opening is deferred to the first record. Any error while opening or
    writing the file is discarded so log-file problems (locked file,
    full disk, lost permissions) cannot abort the caller.
    """

    def __init__(self, filename: Path) -> None:
        super().__init__(filename, encoding="utf-8", delay=True)

    def emit(self, record: logging.LogRecord) -> None:
        # FileHandler opens the deferred stream outside its own error handling.
        try:
            super().emit(record)
        except OSError:
            self.handleError(record)

    def handleError(self, record: logging.LogRecord) -> None:  # noqa: N802
        """Discard the failed record instead of printing a traceback."""


def log_success(logger: logging.Logger, msg: str, *args: object) -> None:
    """Log ``msg`` at the SUCCESS level.

    Args:
        logger: Logger to emit on.
        msg: Message format string.
        *args: Format arguments.
    """
    logger.log(SUCCESS, msg, *args)


def log_file_path(log_dir: Path, when: datetime | None = None) -> Path:
    """Daily log file location under ``log_dir``, dated in UTC like the exports."""
    stamp = (when or datetime.now(UTC)).strftime("%Y%m%d")
    return log_dir / f"copilot-usage-export_{stamp}.log"


def configure_logging(
    log_dir: Path | None,
    *,
    level: str = "INFO",
    verbose: bool = False,
    console: Console | None = None,
) -> logging.Logger:
    """Configure the package logger.

    Replaces any handlers from a previous call, so it is safe to call
    more than once (tests, repeated CLI invocations in one process).

    Args:
        log_dir: Directory for the daily log file. None disables file
            logging.
        level: Minimum level name (e.g. "INFO", "WARNING").
        verbose: Force DEBUG level.
        console: Rich console for terminal output. Defaults to stderr.

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    threshold = logging.getLevelNamesMapping().get(level.upper(), logging.INFO)
    logger.setLevel(logging.DEBUG if verbose else threshold)

    rich_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        log_time_format="[%Y-%m-%d %H:%M:%S]",
    )
    logger.addHandler(rich_handler)

    if log_dir is not None:
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.warning("Log file disabled, cannot create %s: %s", log_dir, exc)
        else:
            file_handler = SafeFileHandler(log_file_path(log_dir))
            formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
            formatter.converter = time.gmtime
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger
