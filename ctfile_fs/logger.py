"""
Logging setup for ctfile-fs.

Every module logs through ``logging.getLogger(__name__)``, so records carry
their origin (``ctfile_fs.retry``, ``ctfile_fs.resolver``, ...). Retries
and rate limiting show up at WARNING, cache misses and remote listings at
DEBUG. Console output goes to stderr so ``ctfile-fs get <path> -`` can
stream file bytes on stdout.
"""

import logging
import sys
from pathlib import Path

from .config import LogConfig

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(threadName)s - %(name)s - %(message)s"

# HTTP transport loggers; their per-request chatter only shows at DEBUG
NOISY_LOGGERS = ("urllib3", "requests")


def _make_handler(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def setup_logging(config: LogConfig) -> None:
    """
    Route ctfile-fs log records according to the [logging] config section.

    Handlers installed by an earlier call are closed and replaced, so the CLI
    can call this once per run and tests can call it repeatedly.

    Args:
        config: LogConfig with the level name, an optional log file path
            (parent directories are created) and the console switch.
    """
    level = getattr(logging, config.level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    if config.file:
        log_path = Path(config.file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        root_logger.addHandler(
            _make_handler(logging.FileHandler(log_path, mode="a", encoding="utf-8"), level)
        )

    if config.console:
        root_logger.addHandler(_make_handler(logging.StreamHandler(sys.stderr), level))

    transport_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(transport_level)
