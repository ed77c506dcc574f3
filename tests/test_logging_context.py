# -*- coding: utf-8 -*-
"""
Test suite for structured logging and request context propagation.

Tests request_id generation, caller propagation, the JSON log format and the
step lines written by the payment flows.
"""

import io
import json
import logging
import uuid

import pytest
from flask import Flask, request

from khidma.services.request_context import (
    get_request_context, get_request_id, init_request_context, set_user_context
)
from khidma.services.structured_logging import (
    FlowLogger, StructuredFormatter, StructuredLogger, get_flow_logger, init_logging
)


@pytest.fixture
def app():
    """Create test Flask app."""
    app = Flask(__name__)
    app.config['TESTING'] = True
    return app


def _capture(logger: StructuredLogger) -> io.StringIO:
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter(json_enabled=True))
    logger.logger.addHandler(handler)
    logger.logger.setLevel(logging.DEBUG)
    return stream


@pytest.fixture
def traced(app):
    """App with request tracing and routes echoing the tracing context."""
    init_request_context(app)

    @app.route('/orders/echo-id')
    def echo_id():
        return {'request_id': get_request_id()}

    @app.route('/orders/echo-context', methods=['GET', 'POST'])
    def echo_context():
        if request.method == 'POST':
            set_user_context('user-123')
        return get_request_context()

    return app.test_client()


class TestRequestContextMiddleware:

    def test_request_id_generated_and_echoed(self, traced):
        response = traced.get('/orders/echo-id')
        assert response.status_code == 200

        request_id = response.get_json()['request_id']
        assert uuid.UUID(request_id).version == 4
        assert response.headers['X-Request-ID'] == request_id
        assert response.headers['X-Response-Time'].endswith('ms')

    def test_incoming_request_id_is_kept(self, traced):
        incoming = str(uuid.uuid4())
        response = traced.get('/orders/echo-id', headers={'X-Request-ID': incoming})
        assert response.get_json()['request_id'] == incoming

    def test_invalid_incoming_request_id_is_replaced(self, traced):
        response = traced.get('/orders/echo-id', headers={'X-Request-ID': 'not-a-uuid'})
        assert response.get_json()['request_id'] != 'not-a-uuid'

    def test_each_request_gets_its_own_id(self, traced):
        seen = {traced.get('/orders/echo-id').get_json()['request_id'] for _ in range(5)}
        assert len(seen) == 5

    def test_authenticated_caller_joins_context(self, traced):
        context = traced.post('/orders/echo-context', json={}).get_json()
        assert (context['method'], context['path']) == ('POST', '/orders/echo-context')
        assert context['user_id'] == 'user-123'

    def test_anonymous_request_has_no_user(self, traced):
        assert 'user_id' not in traced.get('/orders/echo-context').get_json()


class TestStructuredFormatter:
    """Test structured logging formatter."""

    def _record(self, msg='Test message'):
        return logging.LogRecord(
            name='test.logger',
            level=logging.INFO,
            pathname='test.py',
            lineno=42,
            msg=msg,
            args=(),
            exc_info=None
        )

    def test_json_formatting_enabled(self):
        data = json.loads(StructuredFormatter(json_enabled=True).format(self._record()))

        assert data['level'] == 'INFO'
        assert data['logger'] == 'test.logger'
        assert data['message'] == 'Test message'
        assert data['line'] == 42
        assert 'timestamp' in data

    def test_json_formatting_disabled(self):
        formatted = StructuredFormatter(json_enabled=False).format(self._record())
        with pytest.raises(json.JSONDecodeError):
            json.loads(formatted)
        assert 'Test message' in formatted

    def test_arabic_text_is_not_escaped(self):
        formatted = StructuredFormatter(json_enabled=True).format(self._record('طاهية'))
        assert 'طاهية' in formatted

    def test_extra_fields_included(self):
        record = self._record()
        record.extra_fields = {'order_id': 'order-1', 'user_id': 'user-1'}

        data = json.loads(StructuredFormatter(json_enabled=True).format(record))
        assert data['order_id'] == 'order-1'
        assert data['user_id'] == 'user-1'


class TestFlowLogger:

    def test_step_lines_carry_flow_tag(self):
        logger = get_flow_logger('confirm-order-delivery')
        stream = _capture(logger)

        logger.step("Confirmation updated", order_id='order-1', role='client')

        data = json.loads(stream.getvalue().strip())
        assert data['message'] == "[CONFIRM-ORDER-DELIVERY] Confirmation updated"
        assert data['flow'] == 'confirm-order-delivery'
        assert data['event_type'] == 'flow_step'
        assert data['order_id'] == 'order-1'

    def test_failure_is_logged_as_error(self):
        logger = FlowLogger('create-food-order')
        stream = _capture(logger)

        logger.failure("Your card was declined.", order_id='order-2')

        data = json.loads(stream.getvalue().strip())
        assert data['level'] == 'ERROR'
        assert data['message'] == "[CREATE-FOOD-ORDER] ERROR"
        assert data['error_message'] == "Your card was declined."

    def test_auth_event_levels(self):
        logger = StructuredLogger('test.auth')
        stream = _capture(logger)

        logger.log_auth_event('bearer', success=True, user_id='u1')
        logger.log_auth_event('bearer', success=False, failure_reason='expired')

        levels = [json.loads(line)['level'] for line in stream.getvalue().strip().split('\n')]
        assert levels == ['INFO', 'WARNING']


class TestLoggingMiddleware:

    def test_requests_are_logged(self, app):
        init_request_context(app)
        init_logging(app)
        stream = _capture(StructuredLogger('khidma.requests'))

        @app.route('/api/test')
        def test_route():
            return {'ok': True}

        response = app.test_client().get('/api/test')

        lines = [json.loads(line) for line in stream.getvalue().strip().split('\n')]
        events = [line['event_type'] for line in lines]
        assert events == ['request_start', 'request_end']
        assert lines[1]['status_code'] == 200
        assert lines[1]['request_id'] == response.headers['X-Request-ID']

    def test_health_check_paths_are_quiet(self, app):
        init_request_context(app)
        init_logging(app)
        stream = _capture(StructuredLogger('khidma.requests'))

        @app.route('/healthz')
        def healthz():
            return {'status': 'healthy'}

        app.test_client().get('/healthz')
        assert stream.getvalue() == ''
