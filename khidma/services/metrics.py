# -*- coding: utf-8 -*-
"""
Prometheus metrics for the Khidma API.

HTTP traffic is counted by route, method and status. The payment flows count
their own milestones: orders reaching checkout, intake failures, escrow
releases, rejected captures and subscription resolutions. Each app keeps its
own registry, exposed on /metrics unless KHIDMA_METRICS_ENABLED=false.
"""

import os
import time
import uuid
from typing import Optional

from flask import Flask, current_app, g, has_app_context, request
from prometheus_client import CollectorRegistry, Counter, Histogram
from prometheus_client.exposition import CONTENT_TYPE_LATEST, generate_latest

# attribute -> (metric name, help text, label names)
COUNTERS = {
    'http_requests_total': (
        'khidma_http_requests_total', 'HTTP requests served.', ('route', 'method', 'status')),
    'http_errors_total': (
        'khidma_http_errors_total', 'API errors by category.', ('kind',)),
    'orders_created_total': (
        'khidma_orders_created_total', 'Food orders that reached checkout.', ()),
    'order_intake_failures_total': (
        'khidma_order_intake_failures_total', 'Food orders marked failed during intake.', ()),
    'escrow_releases_total': (
        'khidma_escrow_releases_total', 'Orders whose held payment was released.', ()),
    'capture_failures_total': (
        'khidma_capture_failures_total', 'Captures rejected by the payments provider.', ()),
    'subscription_checks_total': (
        'khidma_subscription_checks_total', 'Subscription resolutions by status.', ('status',)),
}


class MetricsService:

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.enabled = os.environ.get('KHIDMA_METRICS_ENABLED', 'true').lower() == 'true'
        self.registry = registry if registry is not None else CollectorRegistry()
        if not self.enabled:
            return

        for attr, (name, documentation, labels) in COUNTERS.items():
            setattr(self, attr, Counter(name, documentation, labels, registry=self.registry))
        self.http_request_duration_seconds = Histogram(
            'khidma_http_request_duration_seconds', 'HTTP request latency.',
            ('route', 'method'), registry=self.registry)

    def _inc(self, attr: str, **labels):
        if not self.enabled:
            return
        counter = getattr(self, attr)
        (counter.labels(**labels) if labels else counter).inc()

    def record_http_request(self, route: str, method: str, status_code: int,
                            duration_seconds: float):
        if not self.enabled:
            return
        route = self._normalize_route(route)
        self._inc('http_requests_total', route=route, method=method, status=str(status_code))
        self.http_request_duration_seconds.labels(route=route, method=method).observe(
            duration_seconds)

    def record_error(self, kind: str):
        self._inc('http_errors_total', kind=kind)

    def record_order_created(self):
        self._inc('orders_created_total')

    def record_intake_failure(self):
        self._inc('order_intake_failures_total')

    def record_escrow_release(self):
        self._inc('escrow_releases_total')

    def record_capture_failure(self):
        self._inc('capture_failures_total')

    def record_subscription_check(self, status: str):
        self._inc('subscription_checks_total', status=status)

    def get_metrics(self) -> str:
        """Exposition text for the registry, empty when metrics are off."""
        if not self.enabled:
            return ""
        return generate_latest(self.registry).decode('utf-8')

    @staticmethod
    def _normalize_route(path: str) -> str:
        """Collapse numeric and uuid path segments so label cardinality stays bounded."""
        segments = []
        for segment in path.split('/'):
            if segment.isdigit():
                segment = '{id}'
            else:
                try:
                    uuid.UUID(segment)
                    segment = '{uuid}'
                except ValueError:
                    pass
            segments.append(segment)
        return '/'.join(segments)


def init_metrics(app: Flask, registry: Optional[CollectorRegistry] = None) -> MetricsService:
    service = MetricsService(registry=registry)
    app.extensions['metrics'] = service
    if not service.enabled:
        return service

    def start_timer():
        g.metrics_started = time.perf_counter()

    def observe(response):
        started = getattr(g, 'metrics_started', None)
        duration = time.perf_counter() - started if started is not None else 0.0
        service.record_http_request(request.path, request.method, response.status_code,
                                    duration)
        return response

    app.before_request(start_timer)
    app.after_request(observe)
    app.add_url_rule('/metrics', 'metrics', lambda: (
        service.get_metrics(), 200, {'Content-Type': CONTENT_TYPE_LATEST}))
    return service


def get_metrics_service() -> Optional[MetricsService]:
    if has_app_context():
        return current_app.extensions.get('metrics')
    return None
