"""
Logging for the grade tracker.

Every record logged inside a request is tagged with the request id, the
owner cache key being served and where the grades came from (``remote``,
``local``, ``synced`` or ``saved_locally``). Routes publish the last two on
``g`` once the sync service has answered; see ``helpers.note_sync``.

LOG_FORMAT=json emits one JSON object per line, anything else is text.
"""

from __future__ import annotations

import json
import logging
import time
import uuid

from flask import Flask, g, has_request_context, request

SYNC_FIELDS = ("request_id", "owner_key", "sync_source")

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [%(request_id)s]: %(message)s"


class SyncContextFilter(logging.Filter):
    """Copy request id, owner key and sync source from ``g`` onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        for field in SYNC_FIELDS:
            if getattr(record, field, None) is not None:
                continue
            value = getattr(g, field, None) if has_request_context() else None
            setattr(record, field, value or "-")
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in SYNC_FIELDS:
            value = getattr(record, field, "-")
            if value != "-":
                entry[field] = value
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def init_logging(app: Flask) -> None:
    """Install the root handler and the per-request id / access log hooks."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, app.config.get("LOG_LEVEL", "INFO").upper(), logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler()
    handler.addFilter(SyncContextFilter())
    if app.config.get("LOG_FORMAT", "text") == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(handler)

    # requests/urllib3 log every CMS connection at INFO
    for name in ("werkzeug", "urllib3", "tenacity"):
        logging.getLogger(name).setLevel(logging.WARNING)

    @app.before_request
    def _start_request():
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
        g.request_start = time.monotonic()

    @app.after_request
    def _access_log(response):
        response.headers["X-Request-ID"] = getattr(g, "request_id", "-")
        source = getattr(g, "sync_source", None)
        if source:
            response.headers["X-Grade-Source"] = source

        elapsed_ms = (time.monotonic() - getattr(g, "request_start", time.monotonic())) * 1000
        if source:
            app.logger.info("%s %s -> %s (%s for %s) %.0fms", request.method, request.path,
                            response.status_code, source, g.owner_key, elapsed_ms)
        else:
            app.logger.info("%s %s -> %s %.0fms", request.method, request.path,
                            response.status_code, elapsed_ms)
        return response
