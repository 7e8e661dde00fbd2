"""
Logging utilities for Markup Printer.

- RequestIdFilter attaches request_id and path (when in a Flask request context)
  and the label of the print job being compiled or delivered
- job_context() scopes that label to one job on the current thread
- JsonFormatter emits structured logs when MARKUPPRINTER_JSON_LOGS=true
- configure_logging() initializes root logging with journald or console and
  routes Flask's logger through the root handlers
"""

from __future__ import annotations

import contextvars
import logging
import os
from contextlib import contextmanager
from typing import Iterator

_CURRENT_JOB: contextvars.ContextVar[str] = contextvars.ContextVar("markup_printer_job", default="-")


@contextmanager
def job_context(label: str) -> Iterator[None]:
    """Tag every record logged inside the block with `label` (as `job`)."""
    token = _CURRENT_JOB.set(label)
    try:
        yield
    finally:
        _CURRENT_JOB.reset(token)


def current_job() -> str:
    return _CURRENT_JOB.get()


class RequestIdFilter(logging.Filter):
    """
    Attach request-scoped metadata (request_id, path) and the current job
    label to log records. Safely degrades outside of a Flask request context.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        record.job = current_job()
        try:
            from flask import g, has_request_context, request  # lazy import

            record.request_id = g.request_id if has_request_context() and hasattr(g, "request_id") else "-"
            record.path = request.path if has_request_context() else "-"
        except Exception:
            record.request_id = "-"
            record.path = "-"
        return True


class JsonFormatter(logging.Formatter):
    """
    JSON formatter: timestamp, level, logger, message, request_id, job and path.
    """

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        from json import dumps

        base = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
            "job": getattr(record, "job", "-"),
        }
        path = getattr(record, "path", None)
        if path is not None:
            base["path"] = path
        if record.exc_info:
            base["exc"] = self.formatException(record.exc_info)
        return dumps(base, ensure_ascii=False)


def configure_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Configure root logging for the application.

    Behavior:
    - Sets root logger to `level` (INFO by default)
    - Clears any existing handlers to avoid duplicates on reload
    - Chooses JSON or plain formatter based on MARKUPPRINTER_JSON_LOGS
    - Prefer systemd's JournalHandler, fallback to StreamHandler
    - Adds RequestIdFilter so formatters can reference %(request_id)s and %(job)s
    - Ensures Flask app logger propagates to root (no separate handlers)

    Returns the configured root logger.
    """
    root = logging.getLogger()
    root.setLevel(level)

    # Avoid duplicate logs in dev reloads or repeated factory calls
    root.handlers = []

    json_logs = os.environ.get("MARKUPPRINTER_JSON_LOGS", "false").lower() in ("1", "true", "yes")
    formatter: logging.Formatter
    if json_logs:
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter("[%(asctime)s] %(levelname)s %(request_id)s %(job)s %(name)s: %(message)s")

    # Prefer systemd journal when available
    try:
        from systemd.journal import JournalHandler  # type: ignore

        handler: logging.Handler = JournalHandler()
        handler.setFormatter(formatter)
    except Exception:
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)

    handler.addFilter(RequestIdFilter())
    root.addHandler(handler)

    flask_logger = logging.getLogger("flask.app")
    flask_logger.handlers = []
    flask_logger.propagate = True

    return root


__all__ = ["JsonFormatter", "RequestIdFilter", "configure_logging", "current_job", "job_context"]
