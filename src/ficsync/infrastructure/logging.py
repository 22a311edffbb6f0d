"""Cycle-scoped logging: one correlation id per notification cycle, story/stage on every line."""

import logging
import sys
import uuid
from contextvars import ContextVar

# Set at the start of each cycle; worker threads inherit it through copied contexts
correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s correlation_id=%(correlation_id)s story=%(story)s %(message)s"

# Loggers of the HTTP client used by source adapters; they log every request at INFO
HTTP_LOGGERS = ("httpx", "httpcore")


def new_correlation_id() -> str:
    """Start a fresh correlation id for the current cycle and return it."""
    corr_id = uuid.uuid4().hex
    correlation_id_var.set(corr_id)
    return corr_id


def current_correlation_id() -> str:
    """Return the running cycle's correlation id, or "-" outside a cycle."""
    return correlation_id_var.get() or "-"


class CycleContextFilter(logging.Filter):
    """
    Fills the fields used by LOG_FORMAT.

    `correlation_id` comes from the current context unless the call passed
    one explicitly; `story` defaults to "-" for lines not tied to a story.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = current_correlation_id()  # type: ignore[attr-defined]
        if not hasattr(record, "story"):
            record.story = "-"  # type: ignore[attr-defined]
        return True


def configure_logging(level: int | str = logging.INFO, verbose: bool = False) -> None:
    """
    Install a stdout handler on the root logger.

    Args:
        level: Logging level, as a number or a name such as "DEBUG"
        verbose: Show HTTP client request logs at INFO instead of DEBUG
    """
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown logging level: {level!r}")
        level = resolved

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S"))
    handler.addFilter(CycleContextFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    http_level = logging.INFO if verbose else logging.DEBUG
    for logger_name in HTTP_LOGGERS:
        logging.getLogger(logger_name).setLevel(http_level)
