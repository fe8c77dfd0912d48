"""
Tests for the ambient stack: health checks, request ids, metrics, structured
logging and the audit trail.
"""
import json
import logging
import uuid

from flask import Flask

from weddingpay import extensions
from weddingpay.models import AuditLog
from weddingpay.services.audit import MemoryAuditTrail, StructuredAuditTrail, mask_card_number
from weddingpay.services.metrics import MetricsService
from weddingpay.services.structured_logging import StructuredFormatter, get_logger


class TestHealth:

    def test_health_endpoints(self, client):
        for path in ("/health", "/healthz"):
            resp = client.get(path)
            assert resp.status_code == 200
            assert resp.get_json()["status"] == "healthy"

    def test_readyz_checks_database(self, client):
        resp = client.get("/readyz")
        assert resp.status_code == 200
        assert resp.get_json()["checks"]["database"] is True

    def test_unknown_route_is_json(self, client):
        resp = client.get("/api/nope")
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "not_found"


class TestRequestContext:

    def test_request_id_is_generated(self, client):
        resp = client.get("/healthz")
        uuid.UUID(resp.headers["X-Request-ID"])
        assert resp.headers["X-Response-Time"].endswith("ms")

    def test_incoming_request_id_is_kept(self, client):
        request_id = str(uuid.uuid4())
        resp = client.get("/healthz", headers={"X-Request-ID": request_id})
        assert resp.headers["X-Request-ID"] == request_id

    def test_invalid_request_id_is_replaced(self, client):
        resp = client.get("/healthz", headers={"X-Request-ID": "not-a-uuid"})
        assert resp.headers["X-Request-ID"] != "not-a-uuid"


class TestMetrics:

    def test_metrics_endpoint_exposes_domain_counters(self, client, make_product, checkout_body):
        make_product("planner", 100)
        make_product("site-premium", 50)
        client.post("/api/checkout", json=checkout_body())
        client.post("/api/checkout", json=checkout_body(productIds=["ghost"]))

        resp = client.get("/metrics")

        assert resp.status_code == 200
        text = resp.get_data(as_text=True)
        assert 'weddingpay_checkouts_total{method="PIX",outcome="created"} 1.0' in text
        assert 'weddingpay_checkouts_total{method="PIX",outcome="products_not_found"} 1.0' in text
        assert "weddingpay_http_requests_total" in text

    def test_webhook_results_are_counted(self, client):
        client.post("/api/webhooks/asaas", json={"event": "PAYMENT_CREATED"},
                    headers={"asaas-access-token": "whsec-test-token"})

        text = client.get("/metrics").get_data(as_text=True)
        assert 'weddingpay_webhooks_total{result="ignored"} 1.0' in text

    def test_app_service_is_registered(self, app):
        assert extensions.get_metrics() is app.extensions["metrics"]
        assert isinstance(extensions.get_metrics(), MetricsService)

    def test_disabled_service_records_nothing(self):
        service = MetricsService(enabled=False)
        service.record_checkout("PIX", "created")
        assert service.get_metrics() == ""

    def test_routes_with_ids_are_normalized(self):
        service = MetricsService()
        assert service._normalize_route(f"/api/orders/{uuid.uuid4()}/items/12") == "/api/orders/{uuid}/items/{id}"


class TestStructuredLogging:

    def _record(self, logger_name="weddingpay.test", **fields):
        record = logging.LogRecord(logger_name, logging.INFO, __file__, 10, "Order created", None, None)
        record.extra_fields = fields
        return record

    def test_json_format_includes_context(self):
        line = StructuredFormatter(json_enabled=True).format(self._record(order_id="o-1"))

        entry = json.loads(line)
        assert entry["message"] == "Order created"
        assert entry["level"] == "INFO"
        assert entry["logger"] == "weddingpay.test"
        assert entry["order_id"] == "o-1"

    def test_plain_format_appends_context(self):
        line = StructuredFormatter(json_enabled=False).format(self._record(order_id="o-1"))
        assert "Order created" in line
        assert "order_id=o-1" in line

    def test_logger_passes_keyword_context(self):
        captured = []

        class ListHandler(logging.Handler):
            def emit(self, record):
                captured.append(record)

        logger = get_logger("weddingpay.test.kwargs")
        handler = ListHandler()
        logger.logger.addHandler(handler)
        logger.logger.setLevel(logging.INFO)
        try:
            logger.info("Access granted", customer_id="c-1")
        finally:
            logger.logger.removeHandler(handler)

        assert captured[0].extra_fields == {"customer_id": "c-1"}


class TestAuditTrail:

    def test_persisted_audit_row(self, app, session):
        StructuredAuditTrail(persist=True).record(
            "order.created", resource_type="order", resource_id="o-1", total_price="150.00")

        row = session.query(AuditLog).one()
        assert row.action == "order.created"
        assert row.resource_id == "o-1"
        assert row.details == {"total_price": "150.00"}

    def test_audit_failure_is_swallowed(self):
        app = Flask(__name__)
        app.config["SQLALCHEMY_DATABASE_URI"] = "sqlite://"
        with app.app_context():
            # no SQLAlchemy bound to this app, the write fails and is dropped
            StructuredAuditTrail(persist=True).record("order.created")

    def test_memory_trail(self):
        audit = MemoryAuditTrail()
        audit.record("webhook.not_found", level="warning", resource_id=42)

        event = audit.events[0]
        assert (event.action, event.level, event.resource_id) == ("webhook.not_found", "warning", "42")

    def test_unknown_level_falls_back_to_info(self):
        audit = MemoryAuditTrail()
        audit.record("x", level="loud")
        assert audit.events[0].level == "info"

    def test_card_numbers_are_masked(self):
        assert mask_card_number("5162 3060 0000 0008") == "****0008"
