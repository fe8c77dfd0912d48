# -*- coding: utf-8 -*-
"""
Service for managing Prometheus metrics.

Each application gets its own ``CollectorRegistry`` so several apps (tests)
can live in one process. HTTP requests are recorded by middleware; the
checkout and webhook paths record their own domain counters.
"""

import time
import uuid
from typing import Optional
from flask import Flask, request, g
from prometheus_client import CollectorRegistry, Counter, Histogram
from prometheus_client.exposition import generate_latest


def init_metrics(app: Flask) -> None:
    """Initialize metrics service and endpoints."""
    service = MetricsService(enabled=app.config.get('WEDDINGPAY_METRICS_ENABLED', True))
    app.extensions['metrics'] = service

    if service.enabled:
        @app.before_request
        def before_request():
            g.metrics_start_time = time.time()

        @app.after_request
        def after_request(response):
            started = getattr(g, 'metrics_start_time', None)
            duration = time.time() - started if started else 0.0
            service.record_http_request(
                route=request.path,
                method=request.method,
                status_code=response.status_code,
                duration_seconds=duration
            )
            return response

        @app.route("/metrics")
        def metrics():
            return generate_latest(service.registry), 200, {
                'Content-Type': 'text/plain; version=0.0.4; charset=utf-8'}


class MetricsService:
    """Service for managing Prometheus metrics."""

    def __init__(self, registry: Optional[CollectorRegistry] = None, enabled: bool = True):
        self.enabled = enabled
        self.registry = registry if registry is not None else CollectorRegistry()

        if self.enabled:
            self.http_requests_total = Counter(
                "weddingpay_http_requests_total",
                "Total number of HTTP requests.",
                ["route", "method", "status"],
                registry=self.registry
            )
            self.http_request_duration_seconds = Histogram(
                "weddingpay_http_request_duration_seconds",
                "Duration of HTTP requests in seconds.",
                ["route", "method"],
                registry=self.registry
            )
            self.checkouts_total = Counter(
                "weddingpay_checkouts_total",
                "Checkout attempts by payment method and outcome.",
                ["method", "outcome"],
                registry=self.registry
            )
            self.webhooks_total = Counter(
                "weddingpay_webhooks_total",
                "Gateway webhook deliveries by reconciliation result.",
                ["result"],
                registry=self.registry
            )

    def record_http_request(
            self,
            route: str,
            method: str,
            status_code: int,
            duration_seconds: float):
        if self.enabled:
            normalized_route = self._normalize_route(route)
            self.http_requests_total.labels(
                route=normalized_route,
                method=method,
                status=status_code).inc()
            self.http_request_duration_seconds.labels(
                route=normalized_route, method=method).observe(duration_seconds)

    def record_checkout(self, method: str, outcome: str):
        """Record a checkout outcome (e.g. ``created``, ``confirmed``, ``products_not_found``)."""
        if self.enabled:
            self.checkouts_total.labels(method=method or "unknown", outcome=outcome).inc()

    def record_webhook(self, result: str):
        if self.enabled:
            self.webhooks_total.labels(result=result).inc()

    def get_metrics(self) -> str:
        if self.enabled:
            return generate_latest(self.registry).decode('utf-8')
        return ""

    def _normalize_route(self, route: str) -> str:
        parts = route.split('/')
        for i, part in enumerate(parts):
            if part.isdigit():
                parts[i] = '{id}'
                continue
            try:
                uuid.UUID(part)
                parts[i] = '{uuid}'
            except (ValueError, AttributeError):
                pass
        return '/'.join(parts)
