"""Logging setup for sync runs and scripts."""

import logging
import sys
from pathlib import Path
from typing import Iterable, Optional

ROOT_LOGGER_NAME = "leadscout"

# Records are processed on worker threads ("sync_0", "sync_1", ...)
DEFAULT_FORMAT = "%(asctime)s | %(levelname)-8s | %(threadName)-10s | %(name)s | %(message)s"

# Third-party loggers that log every HTTP request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "openai")

_configured = False


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    format_string: Optional[str] = None,
    quiet_loggers: Iterable[str] = NOISY_LOGGERS,
) -> logging.Logger:
    """Configure the leadscout logger hierarchy.

    Safe to call more than once; handlers are replaced, not duplicated.

    Args:
        level: Logging level name (unknown names fall back to INFO)
        log_file: Optional path for an additional file handler
        format_string: Optional custom format string
        quiet_loggers: Library loggers capped at WARNING

    Returns:
        The "leadscout" logger
    """
    global _configured

    formatter = logging.Formatter(format_string or DEFAULT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if _configured:
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
            handler.close()

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    for name in quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)

    _configured = True
    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger below the leadscout hierarchy.

    Args:
        name: Area name (e.g., "orchestrator", "registry.client")

    Returns:
        Logger named "leadscout.<name>"
    """
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
