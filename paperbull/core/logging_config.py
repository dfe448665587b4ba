"""Structured logging configuration.

Every record emitted while a backtest is executing carries that run's
identity (id, strategy, symbol), bound with :func:`backtest_scope`. The
JSON formatter writes it under ``"backtest"``; the text formatter prefixes
the message with a short tag.
"""

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator

_backtest_fields: ContextVar[Dict[str, Any]] = ContextVar("backtest_fields", default={})

TEXT_FORMAT = "%(asctime)s [%(levelname)-5s] %(name)s: %(backtest_tag)s%(message)s"


@contextmanager
def backtest_scope(**fields: Any) -> Iterator[Dict[str, Any]]:
    """Bind backtest identity fields to all log records inside the block.

    Nested scopes extend the outer one.
    """
    merged = {**_backtest_fields.get(), **fields}
    token = _backtest_fields.set(merged)
    try:
        yield merged
    finally:
        _backtest_fields.reset(token)


def current_backtest_fields() -> Dict[str, Any]:
    return dict(_backtest_fields.get())


class BacktestContextFilter(logging.Filter):
    """Copy the bound backtest fields onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        fields = _backtest_fields.get()
        record.backtest = dict(fields)
        if fields:
            parts = [f"bt={fields['backtest_id']}"] if "backtest_id" in fields else []
            parts += [str(fields[k]) for k in ("strategy", "symbol") if k in fields]
            record.backtest_tag = f"[{' '.join(parts)}] "
        else:
            record.backtest_tag = ""
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        backtest = getattr(record, "backtest", None)
        if backtest:
            log_entry["backtest"] = backtest
        if hasattr(record, "extra_data"):
            log_entry["data"] = record.extra_data
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)
        # numpy scalars and dates reach us through extra_data
        return json.dumps(log_entry, ensure_ascii=False, default=str)


def configure_logging(*, json_output: bool = False, level: str = "INFO") -> None:
    """Configure application-wide logging for the API and Celery workers.

    Args:
        json_output: Use JSON formatter (production).
        level: Root log level.
    """
    root = logging.getLogger()
    root.setLevel(level)

    for existing in root.handlers[:]:
        root.removeHandler(existing)

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(BacktestContextFilter())
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(handler)

    # Per-request HTTP and SQL chatter drowns out backtest progress
    for name in ("sqlalchemy.engine", "httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)


def log_context(**data) -> dict:
    """Build ``extra`` kwargs so JSONFormatter emits *data* under ``"data"``.

    Usage::

        logger.info("Backtest finished", **log_context(symbol="AAPL", trades=4))
    """
    return {"extra": {"extra_data": data}}
