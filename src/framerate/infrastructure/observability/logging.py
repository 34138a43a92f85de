"""Logging setup: human-readable or JSON lines, tagged with the current tick."""

import contextvars
import logging
import sys
import traceback
import uuid
from pathlib import Path
from typing import Any

from pythonjsonlogger import jsonlogger

# Hey future me, contextvars are task-local, so the two sync workers never see each other's
# id. Each tick sets "<worker>-<n>" and every line it logs (select, fetch, persist) carries it.
correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)

# Keys from `extra=` that the sync workers attach and that we surface as top-level JSON fields
ENTRY_CONTEXT_KEYS = ("media_type", "external_id", "status")

NOISY_LOGGERS = ("httpx", "httpcore", "asyncio", "sqlalchemy.engine", "uvicorn.access")


def get_correlation_id() -> str:
    """Return the correlation id of the running task ("" outside a tick or request)."""
    return correlation_id_var.get()


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Bind a correlation id to the running task.

    Args:
        correlation_id: Id to bind, a random UUID4 when omitted

    Returns:
        The id now bound
    """
    value = correlation_id if correlation_id is not None else str(uuid.uuid4())
    correlation_id_var.set(value)
    return value


class CorrelationIdFilter(logging.Filter):
    """Stamp every record with the task's correlation id."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()
        return True


def _exception_chain(exc: BaseException) -> list[BaseException]:
    chain: list[BaseException] = []
    current: BaseException | None = exc
    while current is not None and current not in chain:
        chain.append(current)
        current = current.__cause__ or current.__context__
    return chain[::-1]


class CompactExceptionFormatter(logging.Formatter):
    """Text formatter that prints exception chains root cause first.

    Each exception in the chain gets one ``╰─►`` header line followed by
    the frames that belong to the framerate package. Library frames are
    dropped, which keeps httpx/SQLAlchemy failures readable in container logs.
    """

    def formatException(self, ei: Any) -> str:
        exc = ei[1]
        if exc is None:
            return ""

        out: list[str] = []
        for link in _exception_chain(exc):
            out.append(f"╰─► {type(link).__name__}: {link}")
            for frame in traceback.extract_tb(link.__traceback__):
                if "/site-packages/" in frame.filename or "framerate" not in frame.filename:
                    continue
                out.append(
                    f'    File "{Path(frame.filename).name}", line {frame.lineno}, in {frame.name}'
                )
                if frame.line:
                    out.append(f"      {frame.line.strip()}")
        return "\n".join(out)


class EntrySyncJsonFormatter(jsonlogger.JsonFormatter):  # type: ignore[name-defined,misc]
    """JSON formatter with source location, correlation id and entry context."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record.update(
            timestamp=self.formatTime(record, self.datefmt),
            level=record.levelname,
            logger=record.name,
            source=f"{record.module}.{record.funcName}:{record.lineno}",
        )

        correlation_id = getattr(record, "correlation_id", "")
        if correlation_id:
            log_record["correlation_id"] = correlation_id

        for key in ENTRY_CONTEXT_KEYS:
            value = getattr(record, key, None)
            if value is not None:
                log_record[key] = value

        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)


def _build_formatter(json_format: bool) -> logging.Formatter:
    if json_format:
        return EntrySyncJsonFormatter(
            "%(timestamp)s %(level)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )
    return CompactExceptionFormatter(
        fmt="%(asctime)s │ %(levelname)-7s │ %(correlation_id)s │ %(name)s │ %(message)s",
        datefmt="%H:%M:%S",
    )


# Listen future me, the lifespan calls this ONCE at startup. It replaces every root handler, so
# calling it again (tests do) never stacks duplicate output.
def configure_logging(
    log_level: str = "INFO",
    json_format: bool = False,
    app_name: str = "framerate",
) -> None:
    """Install a single stdout handler on the root logger.

    Args:
        log_level: Level name; unknown names fall back to INFO
        json_format: Emit JSON lines instead of the compact text format
        app_name: Included in the startup log line
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(CorrelationIdFilter())
    handler.setFormatter(_build_formatter(json_format))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging configured for %s (level=%s, json=%s)",
        app_name,
        logging.getLevelName(level),
        json_format,
    )
