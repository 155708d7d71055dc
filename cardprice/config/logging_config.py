# cardprice/config/logging_config.py

"""Logging for cardprice batch jobs.

Every invocation writes one DEBUG log file under ``Settings.LOGS_DIR``,
named after the job and its start time, e.g.
``logs/run_resolve_20260214_153045.log``.  All ``cardprice.*`` module
loggers (normalizer, resolver, rollup, store, cli) propagate into it.

The stderr handler is quieter: ``CARDPRICE_LOG_LEVEL`` (default
WARNING) or ``--verbose`` (INFO).  Row counts for operators are printed
by the CLI runner, not through logging.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from cardprice.config.settings import Settings

ROOT_LOGGER = "cardprice"

_FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | "
    "%(funcName)s:%(lineno)d | %(message)s"
)
_CONSOLE_FORMAT = "%(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def console_level(verbose: bool = False) -> int:
    """Numeric stderr level from ``--verbose`` or ``Settings.LOG_LEVEL``."""
    if verbose:
        return logging.INFO
    return logging.getLevelNamesMapping().get(
        Settings.LOG_LEVEL, logging.WARNING
    )


def log_file_name(job: str | None, started: datetime) -> str:
    """``run_<job>_<YYYYMMDD_HHMMSS>.log``; the job part is optional."""
    stamp = started.strftime("%Y%m%d_%H%M%S")
    return f"run_{job}_{stamp}.log" if job else f"run_{stamp}.log"


def _existing_log_file(root_logger: logging.Logger) -> Path | None:
    for handler in root_logger.handlers:
        if isinstance(handler, logging.FileHandler):
            return Path(handler.baseFilename)
    return None


def setup_logging(job: str | None = None, verbose: bool = False) -> Path:
    """Attach the run file and stderr handlers to the ``cardprice`` logger.

    A second call in the same process keeps the existing handlers (only
    the stderr level is updated) and returns the file already in use.

    Returns:
        Path of this run's log file.
    """
    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(logging.DEBUG)

    existing = _existing_log_file(root_logger)
    if existing is not None:
        for handler in root_logger.handlers:
            if not isinstance(handler, logging.FileHandler):
                handler.setLevel(console_level(verbose))
        return existing

    logs_dir: Path = Settings.LOGS_DIR
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_file = logs_dir / log_file_name(job, datetime.now())

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT)
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level(verbose))
    console_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT))

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    if Settings.LOG_LEVEL not in logging.getLevelNamesMapping():
        root_logger.warning(
            "Unknown CARDPRICE_LOG_LEVEL %r, using WARNING",
            Settings.LOG_LEVEL,
        )
    root_logger.info("Starting %s, log file: %s", job or "run", log_file)
    return log_file
