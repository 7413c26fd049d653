"""qrstudio structured logging: audit events and render tracing."""

import functools
import inspect
import json
import logging
import sys
import time
import traceback
from datetime import datetime, timezone

# Custom AUDIT level (between WARNING=30 and ERROR=40)
AUDIT = 35
logging.addLevelName(AUDIT, "AUDIT")

ROOT_LOGGER = "qrstudio"
logging.getLogger(ROOT_LOGGER).addHandler(logging.NullHandler())


def _truncate(value: object, max_len: int = 80) -> str:
    s = str(value)
    if len(s) > max_len:
        return s[:max_len] + "..."
    return s


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record):
        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "level": record.levelname,
            "src": record.name,
        }
        if hasattr(record, "event"):
            entry["event"] = record.event
        if hasattr(record, "duration_ms"):
            entry["duration_ms"] = round(record.duration_ms, 2)
        if hasattr(record, "ctx"):
            entry["ctx"] = record.ctx
        if record.getMessage() and not hasattr(record, "event"):
            entry["msg"] = record.getMessage()
        if record.exc_info and record.exc_info[1]:
            entry["traceback"] = traceback.format_exception(*record.exc_info)
        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable colored console output."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "AUDIT": "\033[35m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
    }
    RESET = "\033[0m"

    def format(self, record):
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc).strftime("%H:%M:%S.%f")[:-3]
        color = self.COLORS.get(record.levelname, "")
        parts = [ts, f"{color}{record.levelname:5s}{self.RESET}", f"[{record.name}]"]

        if hasattr(record, "event"):
            parts.append(record.event)
        if hasattr(record, "duration_ms"):
            parts.append(f"({record.duration_ms:.1f}ms)")

        if hasattr(record, "ctx") and record.ctx:
            parts.append(" ".join(f"{k}={_truncate(v)}" for k, v in record.ctx.items()))
        elif record.getMessage() and not hasattr(record, "event"):
            parts.append(record.getMessage())

        if record.exc_info and record.exc_info[1]:
            parts.append(f"\n{''.join(traceback.format_exception(*record.exc_info))}")

        return " ".join(parts)


def setup_logging(level: str = "INFO", log_file: str | None = None, json_format: bool = False):
    """Configure the root qrstudio logger.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR, AUDIT).
        log_file: If set, also write JSON logs to this file path.
        json_format: If True, use JSON format on the console too.
    """
    root = logging.getLogger(ROOT_LOGGER)
    name = level.upper()
    root.setLevel(AUDIT if name == "AUDIT" else getattr(logging, name, logging.INFO))
    root.handlers.clear()

    console = logging.StreamHandler()
    console.setFormatter(JsonFormatter() if json_format else ConsoleFormatter())
    root.addHandler(console)

    if log_file:
        fh = logging.FileHandler(log_file)
        fh.setFormatter(JsonFormatter())
        root.addHandler(fh)


def get_logger(module_name: str) -> logging.Logger:
    """Get a logger scoped under the qrstudio namespace."""
    return logging.getLogger(f"{ROOT_LOGGER}.{module_name}")


def _emit(log: logging.Logger, level: int, event: str, ctx: dict,
          duration_ms: float | None = None, exc_info=None):
    record = log.makeRecord(
        name=log.name, level=level, fn="", lno=0,
        msg="", args=(), exc_info=exc_info,
    )
    record.event = event
    record.ctx = ctx
    if duration_ms is not None:
        record.duration_ms = duration_ms
    log.handle(record)


def audit(event: str, logger: logging.Logger | None = None, **context):
    """Emit an AUDIT-level structured log entry.

    Args:
        event: Machine-readable event tag (e.g. "export.done").
        logger: Logger to use. Defaults to the qrstudio root.
        **context: Key-value pairs for the event context.
    """
    log = logger or logging.getLogger(ROOT_LOGGER)
    if log.isEnabledFor(AUDIT):
        _emit(log, AUDIT, event, context)


def _summarize(result) -> str:
    if isinstance(result, (str, int, float, bool)):
        return _truncate(repr(result), 80)
    if isinstance(result, (bytes, bytearray)):
        return f"bytes[{len(result)}]"
    if isinstance(result, (list, tuple)):
        return f"{type(result).__name__}[{len(result)}]"
    return type(result).__name__


def _safe_args(args, kwargs):
    safe = []
    for a in args:
        s = repr(a)
        if len(s) > 100 or "Image" in type(a).__name__:
            safe.append(f"<{type(a).__name__}>")
        else:
            safe.append(_truncate(s, 80))
    return {"args": safe, "kwargs": {k: _truncate(repr(v), 80) for k, v in kwargs.items()}}


def trace(func=None, *, logger_name: str | None = None):
    """Decorator that logs entry/exit with timing for sync and async callables.

    - DEBUG on entry with arguments
    - INFO on exit with duration
    - ERROR on exception with traceback and duration
    """
    def decorator(fn):
        _logger_name = logger_name or fn.__module__.replace(f"{ROOT_LOGGER}.", "")
        log = get_logger(_logger_name)
        fn_name = fn.__name__

        def enter(args, kwargs):
            if log.isEnabledFor(logging.DEBUG):
                _emit(log, logging.DEBUG, f"{fn_name}.enter", _safe_args(args, kwargs))

        def done(result, start):
            elapsed = (time.perf_counter() - start) * 1000
            if log.isEnabledFor(logging.INFO):
                _emit(log, logging.INFO, f"{fn_name}.done", {"result": _summarize(result)}, elapsed)

        def failed(start):
            elapsed = (time.perf_counter() - start) * 1000
            _emit(log, logging.ERROR, f"{fn_name}.error", {"function": fn_name},
                  elapsed, exc_info=sys.exc_info())

        if inspect.iscoroutinefunction(fn):
            @functools.wraps(fn)
            async def async_wrapper(*args, **kwargs):
                enter(args, kwargs)
                start = time.perf_counter()
                try:
                    result = await fn(*args, **kwargs)
                except Exception:
                    failed(start)
                    raise
                done(result, start)
                return result

            return async_wrapper

        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            enter(args, kwargs)
            start = time.perf_counter()
            try:
                result = fn(*args, **kwargs)
            except Exception:
                failed(start)
                raise
            done(result, start)
            return result

        return wrapper

    if func is not None:
        return decorator(func)
    return decorator
