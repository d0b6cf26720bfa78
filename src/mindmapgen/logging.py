"""Logging utilities."""

from __future__ import annotations

import contextlib
import contextvars
import logging
from typing import Any

from rich.logging import RichHandler


_run_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("mindmapgen_run_id", default="-")
_topic_var: contextvars.ContextVar[str] = contextvars.ContextVar("mindmapgen_topic", default="-")


class _ContextFilter(logging.Filter):
    """Inject batch context into log records."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        record.run_id = _run_id_var.get()  # type: ignore[attr-defined]
        if not hasattr(record, "topic"):
            record.topic = _topic_var.get()  # type: ignore[attr-defined]
        return True


@contextlib.contextmanager
def run_context(*, run_id: str | None = None, topic: str | None = None) -> Any:
    """Temporarily bind batch context for structured logging.

    Each asyncio task copies the current context on creation, so binding the topic inside a
    row task never leaks into sibling rows.

    Args:
        run_id: Batch run identifier. Keeps the current one when omitted.
        topic: Topic of the row being processed.
    """

    token_run = _run_id_var.set(run_id or _run_id_var.get())
    token_topic = _topic_var.set(topic or _topic_var.get())
    try:
        yield
    finally:
        _run_id_var.reset(token_run)
        _topic_var.reset(token_topic)


def configure_logging(level: str = "INFO") -> None:
    """Configure application logging.

    Args:
        level: Logging level name.
    """

    handler = RichHandler(rich_tracebacks=True, show_time=True, show_level=True)
    handler.addFilter(_ContextFilter())

    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s run=%(run_id)s topic=%(topic)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    # Avoid duplicate handlers if configure_logging is called multiple times
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        root.addHandler(handler)
    else:
        for h in root.handlers:
            if isinstance(h, RichHandler):
                for f in [f for f in h.filters if isinstance(f, _ContextFilter)]:
                    h.removeFilter(f)
                h.addFilter(_ContextFilter())
                h.setFormatter(formatter)


def get_logger(name: str) -> logging.Logger:
    """Get a module logger."""

    return logging.getLogger(name)


def log_exception(logger: logging.Logger, msg: str, **context: Any) -> None:
    """Log an exception with optional structured context."""

    if context:
        logger.exception("%s | context=%s", msg, context)
    else:
        logger.exception("%s", msg)
