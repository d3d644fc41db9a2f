"""Structured logging for the API process and the sync scripts.

Design Decisions:

1. structlog on top of stdlib logging:
   - Sync runs emit many small, related events (feeds fetched, articles
     skipped, chunks deleted); key/value context keeps them greppable
   - uvicorn and SQLAlchemy keep logging through stdlib handlers

2. Renderer per deployment:
   - Console output with colors when attached to a terminal
   - JSON lines (JSON_LOGS=true) for the long-running push loop and cron
     syncs, where logs are shipped rather than read

3. Sync context:
   - ``bind_sync_context`` puts the sync id into contextvars so every event
     of a run carries it, including events from services that never see
     the id
   - SQLAlchemy gets its own level (SQLALCHEMY_LOG_LEVEL); INFO there logs
     every statement of a sync

Usage:
    from rss_reader_service.logging_config import configure_logging, get_logger

    configure_logging(settings.log_level, settings.json_logs)
    logger = get_logger(__name__)
    logger.info("sync_started", full_sync=True)
"""

import logging
import sys
from typing import Any

import structlog

SQLALCHEMY_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool")


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def configure_logging(
    log_level: str = "INFO",
    json_logs: bool = False,
    sqlalchemy_level: str = "WARNING",
) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: Level for application loggers (DEBUG, INFO, WARNING, ERROR)
        json_logs: Render JSON lines instead of console output
        sqlalchemy_level: Level for the SQLAlchemy engine and pool loggers
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=_level(log_level),
    )
    for name in SQLALCHEMY_LOGGERS:
        logging.getLogger(name).setLevel(_level(sqlalchemy_level))

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.CallsiteParameterAdder(
            parameters=[
                structlog.processors.CallsiteParameter.FILENAME,
                structlog.processors.CallsiteParameter.FUNC_NAME,
                structlog.processors.CallsiteParameter.LINENO,
            ]
        ),
    ]

    if json_logs:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=sys.stdout.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_sync_context(sync_id: str) -> None:
    """Attach ``sync_id`` to every event logged by the current task."""
    structlog.contextvars.bind_contextvars(sync_id=sync_id)


def clear_sync_context() -> None:
    structlog.contextvars.unbind_contextvars("sync_id")


def get_logger(name: str) -> Any:
    """Structured logger for a module (``__name__``).

    Typed as Any; the concrete type is structlog.stdlib.BoundLogger.
    """
    return structlog.get_logger(name)
