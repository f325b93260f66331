"""Structured logging configuration for the curtailment ledger.

Uses structlog with context variables and ISO timestamps. Console rendering
is used when ``settings.debug`` is on, JSON lines otherwise, so reconciliation
runs launched from cron can be shipped to a log collector unchanged.

``bind_settlement_date`` scopes a settlement date onto every event emitted by
the current task, which keeps concurrently reconciled dates apart in the logs.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date

import structlog

_configured = False


def configure_logging(json_output: bool | None = None, level: int = 0) -> None:
    """Configure structlog processors once.

    Safe to call multiple times -- only the first invocation takes effect.

    Args:
        json_output: Force JSON (True) or console (False) rendering. Defaults
            to console when ``settings.debug`` is set.
        level: Minimum stdlib log level number passed to the filtering logger.
    """
    global _configured
    if _configured:
        return

    if json_output is None:
        from curtailment.core.config import settings

        json_output = not settings.debug

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a bound logger with the given component name."""
    configure_logging()
    return structlog.get_logger(logger_name=name)


@contextmanager
def bind_settlement_date(settlement_date: date) -> Iterator[None]:
    """Bind ``settlement_date`` to every log event inside the block."""
    with structlog.contextvars.bound_contextvars(settlement_date=str(settlement_date)):
        yield
