"""
zoneHealth Logging
==================

Leveled logging routed to per-category, append-only log files.

Two categories exist:
- messages: everything under the ``zonehealth`` logger tree, written to
  ``zonehealth.log``
- secure: the ``zonehealth.secure`` logger, written to
  ``zonehealth-secure.log`` only. It does not propagate, so credential
  related lines never reach the console or the general log.

Modules call get_logger(__name__) at import time; handlers are attached
once by configure_logging() when the CLI starts. Without configuration the
loggers fall through to whatever the host application set up.
"""

import logging
from pathlib import Path

ROOT_LOGGER = "zonehealth"
SECURE_LOGGER = "zonehealth.secure"

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_logger(name: str) -> logging.Logger:
    """Get a logger in the zonehealth tree for a component."""
    if not name.startswith(ROOT_LOGGER):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


def get_secure_logger() -> logging.Logger:
    """Get the logger for sensitive events (authentication, credentials)."""
    logger = logging.getLogger(SECURE_LOGGER)
    logger.propagate = False
    return logger


def configure_logging(
    log_dir: str = "logs",
    level: int = logging.INFO,
    console_level: int = logging.WARNING
) -> None:
    """Attach file and console handlers to the zonehealth loggers.

    Safe to call more than once; existing handlers are replaced.

    Args:
        log_dir: Directory for the log files (created if missing)
        level: Level for the file handlers
        console_level: Level for the console handler
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level)
    _reset_handlers(root)

    file_handler = logging.FileHandler(log_path / "zonehealth.log", mode="a", encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    root.addHandler(console_handler)

    secure = get_secure_logger()
    secure.setLevel(level)
    _reset_handlers(secure)

    secure_handler = logging.FileHandler(log_path / "zonehealth-secure.log", mode="a", encoding="utf-8")
    secure_handler.setLevel(level)
    secure_handler.setFormatter(formatter)
    secure.addHandler(secure_handler)


def _reset_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

