"""structlog configuration and per-operation logging context.

Provides structured log configuration for console and JSON output with
optional file logging, plus a context manager that binds operation-level
metadata (search, detail lookup) to every log entry emitted inside it.
"""

from __future__ import annotations

import logging
import sys
import uuid
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

# ---------------------------------------------------------------------------
# structlog configuration
# ---------------------------------------------------------------------------


_VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

# Third-party loggers that log every HTTP request or completion at INFO
_CHATTY_LOGGERS = ("httpx", "httpcore", "LiteLLM")


def configure_logging(
    level: str = "INFO",
    fmt: str = "console",
    log_file: str | Path | None = None,
) -> None:
    """Route structlog and stdlib logging through one renderer.

    Output always goes to stderr and, when ``log_file`` is given, to that
    file as well. Provider client loggers stay at WARNING unless ``level``
    is DEBUG.

    Raises:
        ValueError: If ``level`` is not a recognized log level.
    """
    level_upper = level.upper()
    if level_upper not in _VALID_LEVELS:
        msg = f"Invalid log level: {level!r}. Must be one of {sorted(_VALID_LEVELS)}"
        raise ValueError(msg)
    numeric_level = getattr(logging, level_upper)

    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if fmt == "json" else structlog.dev.ConsoleRenderer()
    )
    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(str(log_file), encoding="utf-8"))

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()
    for handler in handlers:
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    client_level = logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(client_level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


# ---------------------------------------------------------------------------
# Operation logging context manager
# ---------------------------------------------------------------------------


@contextmanager
def operation_logging_context(
    operation: str,
    **extra: Any,
) -> Iterator[structlog.stdlib.BoundLogger]:
    """Bind operation-level metadata to structlog for one logical call.

    Logs operation start and end, and binds the operation name and a
    fresh ``operation_id`` to all log entries within the context.

    Args:
        operation: Name of the operation (e.g. ``"search"``, ``"detail"``).
        **extra: Additional key-value pairs to bind.

    Yields:
        A bound structlog logger with operation context.

    Example::

        with operation_logging_context("search", query=query) as log:
            log.info("fan_out_started", slots=2)
    """
    operation_id = uuid.uuid4().hex[:12]
    structlog.contextvars.bind_contextvars(
        operation=operation,
        operation_id=operation_id,
        **extra,
    )

    log: structlog.stdlib.BoundLogger = structlog.get_logger(operation)
    log.debug("operation_start")

    try:
        yield log
    except Exception:
        log.exception("operation_error")
        raise
    finally:
        log.debug("operation_end")
        structlog.contextvars.unbind_contextvars(
            "operation", "operation_id", *extra.keys()
        )
