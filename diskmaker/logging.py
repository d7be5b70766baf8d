from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Any, Dict, Optional

from flask import Flask, Response, g, has_request_context, request
from flask.signals import got_request_exception

EXTRA_FIELDS = ("storage_class", "device", "reason", "owner", "request_id",
                "method", "path", "status_code", "duration_ms")

REQUEST_ID_HEADER = "X-Request-ID"


def current_request_id() -> Optional[str]:
    """Request ID of the status request being served, if any."""
    if not has_request_context():
        return None
    return g.get("request_id")


def _request_extra(**fields: Any) -> Dict[str, Any]:
    extra = {"request_id": current_request_id(), "method": request.method, "path": request.path}
    extra.update({key: value for key, value in fields.items() if value is not None})
    return extra


class JsonLogFormatter(logging.Formatter):
    """Render log records as JSON lines, carrying disk and request metadata when present."""

    default_time_format = "%Y-%m-%dT%H:%M:%S"
    default_msec_format = "%s.%03dZ"

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.default_time_format),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if getattr(record, "request_id", None) is None:
            request_id = current_request_id()
            if request_id:
                payload["request_id"] = request_id

        for name in EXTRA_FIELDS:
            value = getattr(record, name, None)
            if value not in (None, ""):
                payload[name] = value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=True)


def configure_logging(level: str = "INFO", json_format: bool = True) -> logging.Handler:
    """Install a single stream handler on the root logger."""

    handler = logging.StreamHandler()
    if json_format:
        handler.setFormatter(JsonLogFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())

    # APScheduler logs every job run at INFO.
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    return handler


def init_request_logging(app: Flask) -> None:
    """Tag status requests with an ID and log their outcome through the root handler."""

    app.logger.handlers.clear()
    app.logger.propagate = True

    def start_request() -> None:
        g.request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        g.request_started = time.monotonic()

    def finish_request(response: Response) -> Response:
        request_id = current_request_id()
        if request_id:
            response.headers[REQUEST_ID_HEADER] = request_id
        started = g.get("request_started")
        duration_ms = round((time.monotonic() - started) * 1000, 2) if started is not None else None
        app.logger.debug("request complete",
                         extra=_request_extra(status_code=response.status_code, duration_ms=duration_ms))
        return response

    def request_failed(sender, exception, **kwargs) -> None:
        app.logger.error("request error",
                         exc_info=(type(exception), exception, exception.__traceback__),
                         extra=_request_extra())

    app.before_request(start_request)
    app.after_request(finish_request)
    got_request_exception.connect(request_failed, app, weak=False)
