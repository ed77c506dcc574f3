# -*- coding: utf-8 -*-
"""
Per-request tracing context.

Every request carries an id, taken from a valid incoming X-Request-ID header
or freshly generated, that is echoed back on the response and stamped on each
log line written while the request is served. Once the bearer token has been
verified the caller's user id joins the context.
"""

import time
import uuid
from typing import Optional

from flask import Flask, Response, g, request

REQUEST_ID_HEADER = 'X-Request-ID'
RESPONSE_TIME_HEADER = 'X-Response-Time'


def _incoming_request_id() -> Optional[str]:
    value = request.headers.get(REQUEST_ID_HEADER)
    if not value:
        return None
    try:
        uuid.UUID(value)
    except ValueError:
        return None
    return value


class RequestContextMiddleware:
    """Opens the tracing context before a request and reports it on the response."""

    def __init__(self, app: Flask):
        app.before_request(self.open)
        app.after_request(self.close)

    @staticmethod
    def open():
        g.request_id = _incoming_request_id() or str(uuid.uuid4())
        g.request_start_time = time.time()
        g.user_id = None

    @staticmethod
    def close(response: Response) -> Response:
        request_id = get_request_id()
        if request_id:
            response.headers[REQUEST_ID_HEADER] = request_id
        elapsed = elapsed_ms()
        if elapsed is not None:
            response.headers[RESPONSE_TIME_HEADER] = f"{elapsed}ms"
        return response


def elapsed_ms() -> Optional[float]:
    """Milliseconds since the request started, if it has."""
    started = getattr(g, 'request_start_time', None)
    if started is None:
        return None
    return round((time.time() - started) * 1000, 2)


def get_request_id() -> Optional[str]:
    return getattr(g, 'request_id', None)


def get_request_context() -> dict:
    """Fields every log line written during this request should carry."""
    context = {
        'request_id': get_request_id(),
        'method': request.method,
        'path': request.path,
        'remote_addr': request.remote_addr,
    }
    elapsed = elapsed_ms()
    if elapsed is not None:
        context['duration_ms'] = elapsed
    user_id = getattr(g, 'user_id', None)
    if user_id:
        context['user_id'] = user_id
    return context


def set_user_context(user_id: Optional[str]):
    """Record the authenticated caller for the current request."""
    g.user_id = user_id


def init_request_context(app: Flask) -> RequestContextMiddleware:
    return RequestContextMiddleware(app)
