"""Structlog configuration for fzk.

The TUI owns the terminal, so log events go to a JSON Lines file instead of
the console. Modules log through ``structlog.get_logger()``.
"""

from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path

import structlog

DEFAULT_LOG_PATH = Path.home() / ".local" / "state" / "fzk" / "fzk.log"
LOG_MAX_BYTES = 1024 * 1024
LOG_BACKUP_COUNT = 3


def configure(log_path: Path | None = DEFAULT_LOG_PATH, level: str = "INFO") -> None:
    """Configure structlog to write JSON lines to a rotating file.

    Args:
        log_path: Destination file. None discards all log output.
        level: Minimum stdlib level name to record.
    """
    stdlib_root = logging.getLogger()
    stdlib_root.setLevel(level.upper())

    # Clear any existing handlers
    stdlib_root.handlers.clear()

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
        structlog.processors.add_log_level,
    ]

    if log_path is None:
        stdlib_root.addHandler(logging.NullHandler())
    else:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.processors.JSONRenderer(),
                foreign_pre_chain=shared_processors,
            )
        )
        stdlib_root.addHandler(file_handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
            structlog.processors.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
