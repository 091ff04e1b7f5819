import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager

import structlog

LOG_LEVEL_ENV_VAR = "SUPERLOADER_LOG_LEVEL"


def resolve_log_level(*, level: str | int | None = None) -> int:
    """
    Resolve the package log level.

    Parameters
    ----------
    level : str | int | None, optional
        Explicit level name or number. Falls back to ``SUPERLOADER_LOG_LEVEL``,
        then ``WARNING``.

    Returns
    -------
    int
        Numeric stdlib log level.
    """
    if level is None:
        level = os.getenv(LOG_LEVEL_ENV_VAR) or "WARNING"
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


def setup_logging(*, level: str | int | None = None) -> None:
    logging.getLogger(name="superloader").setLevel(level=resolve_log_level(level=level))
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


@contextmanager
def logging_context(**required_context) -> Iterator[None]:
    current = structlog.contextvars.get_contextvars()
    to_bind = {k: v for k, v in required_context.items() if k not in current}

    if to_bind:
        with structlog.contextvars.bound_contextvars(**to_bind):
            yield
    else:
        yield
