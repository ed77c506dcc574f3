"""
Structured JSON logging for the Khidma API.

Log lines are single JSON objects: timestamp, level, logger, message, source
location, the request context (request id, method, path, caller) when one is
active, and whatever keyword fields the caller passed. Payment flows log
through a FlowLogger so each of their steps is tagged with the flow name.

KHIDMA_LOG_JSON=false switches to plain text; LOG_LEVEL sets the threshold.
"""

import json
import logging
import os
from datetime import datetime, timezone

from flask import Flask, has_request_context, request

from khidma.services.request_context import elapsed_ms, get_request_context, get_request_id

# Loggers whose level follows LOG_LEVEL
APP_LOGGERS = (
    'khidma.flows',
    'khidma.auth',
    'khidma.jobs',
    'khidma.webhooks',
    'khidma.requests',
)


class StructuredFormatter(logging.Formatter):
    """Render records as JSON lines, or as plain messages when disabled."""

    def __init__(self, json_enabled: bool = True):
        super().__init__()
        self.json_enabled = json_enabled

    def format(self, record: logging.LogRecord) -> str:
        if not self.json_enabled:
            return super().format(record)

        entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }
        if has_request_context():
            entry.update(get_request_context())
        entry.update(getattr(record, 'extra_fields', {}))
        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str, ensure_ascii=False)


class StructuredLogger:
    """Logger taking structured keyword fields next to the message."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def log(self, level: int, message: str, exc_info=False, **fields):
        if has_request_context():
            fields.setdefault('request_id', get_request_id())
        self.logger.log(level, message, exc_info=exc_info, extra={'extra_fields': fields})

    def debug(self, message: str, **fields):
        self.log(logging.DEBUG, message, **fields)

    def info(self, message: str, **fields):
        self.log(logging.INFO, message, **fields)

    def warning(self, message: str, **fields):
        self.log(logging.WARNING, message, **fields)

    def error(self, message: str, **fields):
        self.log(logging.ERROR, message, **fields)

    def exception(self, message: str, **fields):
        self.log(logging.ERROR, message, exc_info=True, **fields)

    def log_request_start(self, method: str, path: str, **fields):
        self.info(f"{method} {path} started", event_type='request_start',
                  method=method, path=path, **fields)

    def log_request_end(self, method: str, path: str, status_code: int, duration_ms, **fields):
        self.info(f"{method} {path} -> {status_code} in {duration_ms}ms", event_type='request_end',
                  method=method, path=path, status_code=status_code,
                  duration_ms=duration_ms, **fields)

    def log_auth_event(self, event: str, success: bool, **fields):
        outcome = 'success' if success else 'failure'
        self.log(logging.INFO if success else logging.WARNING,
                 f"Authentication {event}: {outcome}",
                 event_type='auth_event', auth_event=event, success=success, **fields)


class FlowLogger(StructuredLogger):
    """
    Step logger for one payment flow.

    Every line carries the flow tag, e.g.
    "[CREATE-FOOD-ORDER] Order created" with order_id=... as fields.
    """

    def __init__(self, flow: str):
        super().__init__(f'khidma.flows.{flow}')
        self.flow = flow
        self.tag = flow.upper()

    def step(self, step: str, **details):
        self.info(f"[{self.tag}] {step}", event_type='flow_step', flow=self.flow, **details)

    def failure(self, message: str, **details):
        self.error(f"[{self.tag}] ERROR", event_type='flow_error', flow=self.flow,
                   error_message=message, **details)


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(name)


def get_flow_logger(flow: str) -> FlowLogger:
    return FlowLogger(flow)


def configure_logging(app: Flask):
    """Send every record through one StructuredFormatter handler on the root logger."""
    json_enabled = os.environ.get('KHIDMA_LOG_JSON', 'true').lower() == 'true'
    level_name = os.environ.get('LOG_LEVEL', 'INFO').upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter(json_enabled=json_enabled))

    root = logging.getLogger()
    for existing in root.handlers[:]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    app.logger.setLevel(level)
    for name in APP_LOGGERS:
        logging.getLogger(name).setLevel(level)

    get_logger('khidma.config').info("Logging configured", json_enabled=json_enabled,
                                     log_level=level_name)


class LoggingMiddleware:
    """Logs the start and end of each request, except health checks and metric scrapes."""

    QUIET_PATHS = ('/health', '/healthz', '/readyz', '/metrics')

    def __init__(self, app: Flask):
        self.logger = get_logger('khidma.requests')
        app.before_request(self._before_request)
        app.after_request(self._after_request)

    def _before_request(self):
        if request.path in self.QUIET_PATHS:
            return
        self.logger.log_request_start(request.method, request.path,
                                      content_length=request.content_length)

    def _after_request(self, response):
        if request.path not in self.QUIET_PATHS:
            self.logger.log_request_end(request.method, request.path, response.status_code,
                                        elapsed_ms() or 0)
        return response


def init_logging(app: Flask):
    configure_logging(app)
    LoggingMiddleware(app)
    get_logger('khidma.startup').info("Application starting", debug=app.debug,
                                      testing=app.testing)
