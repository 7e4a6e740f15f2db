"""Structured logging for Tempo.

Built on structlog over the stdlib ``logging`` module. Every event carries a
``component`` name and, while a run is active, the fields of the current
``RunContext`` (run_id, attempt).

Example usage:
    from tempo.core.logging import configure_logging, get_logger

    configure_logging(level="DEBUG", format="console")

    logger = get_logger("processor.scheduler")
    logger.info("scheduler.job_dispatched", slot=3, kind="blocking")

    ctx = RunContext(attempt=2)
    with run_context(ctx):
        logger.info("processor.run_started")  # includes run_id, attempt
"""

from __future__ import annotations

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Literal

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

# Keys whose values are never written to logs
SENSITIVE_PATTERNS = frozenset({
    "api_key",
    "token",
    "secret",
    "password",
    "credential",
    "authorization",
})


@dataclass(frozen=True)
class RunContext:
    """Correlation fields for one processor run.

    Attributes:
        run_id: Unique identifier of a ``JobProcessor.start`` invocation.
        attempt: 1 for the first run, incremented by each retry round.
    """

    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    attempt: int = 1

    def next_attempt(self) -> RunContext:
        """Context for the following retry round (fresh run_id)."""
        return RunContext(attempt=self.attempt + 1)

    def to_dict(self) -> dict[str, Any]:
        return {"run_id": self.run_id, "attempt": self.attempt}


_current_context: ContextVar[RunContext | None] = ContextVar(
    "tempo_run_context", default=None
)


def get_current_context() -> RunContext | None:
    """Return the active RunContext, if any."""
    return _current_context.get()


@contextmanager
def run_context(ctx: RunContext) -> Iterator[RunContext]:
    """Bind ``ctx`` for the duration of a block.

    Tasks created inside the block copy the context variable, so settlement
    callbacks of dispatched jobs log with the same run_id.
    """
    token = _current_context.set(ctx)
    try:
        yield ctx
    finally:
        _current_context.reset(token)


def _redact(key: str, value: Any) -> Any:
    key_lower = key.lower()
    if any(pattern in key_lower for pattern in SENSITIVE_PATTERNS):
        return "[REDACTED]"
    return value


def _sanitize_event_dict(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that redacts sensitive fields (one level deep)."""
    sanitized: EventDict = {}
    for key, value in event_dict.items():
        if isinstance(value, dict):
            sanitized[key] = {k: _redact(k, v) for k, v in value.items()}
        else:
            sanitized[key] = _redact(key, value)
    return sanitized


def _add_timestamp(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    event_dict["timestamp"] = datetime.now(UTC).isoformat()
    return event_dict


def _add_context(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Merge RunContext fields into the event; explicit keys win."""
    ctx = get_current_context()
    if ctx is not None:
        for key, value in ctx.to_dict().items():
            event_dict.setdefault(key, value)
    return event_dict


class TempoLogger:
    """Component-bound logger wrapper around structlog.

    The underlying structlog logger is fetched on every call so loggers
    created at import time still honour a later ``configure_logging()``.
    """

    def __init__(self, component: str, **initial_context: Any) -> None:
        self._context: dict[str, Any] = {"component": component, **initial_context}

    def _get_logger(self) -> structlog.stdlib.BoundLogger:
        logger: structlog.stdlib.BoundLogger = structlog.get_logger().bind(**self._context)
        return logger

    @property
    def component(self) -> str:
        return str(self._context["component"])

    def bind(self, **context: Any) -> TempoLogger:
        """Return a new logger with additional bound context."""
        new_logger = TempoLogger.__new__(TempoLogger)
        new_logger._context = {**self._context, **context}
        return new_logger

    def debug(self, event: str, **kw: Any) -> None:
        self._get_logger().debug(event, **kw)

    def info(self, event: str, **kw: Any) -> None:
        self._get_logger().info(event, **kw)

    def warning(self, event: str, **kw: Any) -> None:
        self._get_logger().warning(event, **kw)

    def error(self, event: str, **kw: Any) -> None:
        self._get_logger().error(event, **kw)

    def exception(self, event: str, **kw: Any) -> None:
        """Log at error level with the active exception's traceback."""
        self._get_logger().exception(event, **kw)


def _build_processors(
    renderer: Processor,
    include_timestamps: bool,
    include_context: bool,
) -> list[Processor]:
    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        _sanitize_event_dict,
    ]
    if include_context:
        processors.append(_add_context)
    if include_timestamps:
        processors.append(_add_timestamp)
    processors.extend([
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        renderer,
    ])
    return processors


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO",
    format: Literal["json", "console"] = "console",  # noqa: A002
    file_path: Path | None = None,
    max_file_size_mb: int = 20,
    backup_count: int = 3,
    include_timestamps: bool = True,
    include_context: bool = True,
) -> None:
    """Configure Tempo structured logging.

    Call once at startup. Console output goes to stderr; when ``file_path``
    is given, events are also written to a size-rotated file.

    Args:
        level: Minimum level to emit.
        format: ``"console"`` for human-readable output, ``"json"`` for one
            JSON object per line.
        file_path: Optional log file.
        max_file_size_mb: Rotation threshold for the log file.
        backup_count: Rotated files to keep.
        include_timestamps: Add ISO-8601 UTC timestamps.
        include_context: Merge the active RunContext into every event.

    Raises:
        ValueError: If ``level`` is not a known level name.
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        raise ValueError(f"Unknown log level: {level}")

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if file_path is not None:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                file_path,
                maxBytes=max_file_size_mb * 1024 * 1024,
                backupCount=backup_count,
                encoding="utf-8",
            )
        )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in handlers:
        handler.setLevel(log_level)
        root_logger.addHandler(handler)

    renderer: Processor
    if format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=file_path is None)

    # cache_logger_on_first_use=False so import-time loggers pick up this config
    structlog.configure(
        processors=_build_processors(renderer, include_timestamps, include_context),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(component: str, **initial_context: Any) -> TempoLogger:
    """Get a logger bound to ``component`` (e.g. ``"processor.runner"``)."""
    return TempoLogger(component, **initial_context)


__all__ = [
    "RunContext",
    "SENSITIVE_PATTERNS",
    "TempoLogger",
    "configure_logging",
    "get_current_context",
    "get_logger",
    "run_context",
]
