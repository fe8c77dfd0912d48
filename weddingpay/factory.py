# -*- coding: utf-8 -*-
import os
from typing import Any, Mapping, Optional

from flask import Flask
from flask_cors import CORS

from weddingpay.config import Config
from weddingpay.database import db
from weddingpay import extensions

# Observability imports
from weddingpay.services.metrics import init_metrics
from weddingpay.services.request_context import init_request_context
from weddingpay.services.structured_logging import init_logging

from weddingpay.services.asaas_gateway import AsaasGateway
from weddingpay.services.audit import StructuredAuditTrail
from weddingpay.services.identity_provider import SqlIdentityProvider
from weddingpay.services.notifications import NotificationDispatcher
from weddingpay.services.retry import RetryPolicy


def _normalize_db_url(url: str) -> str:
    """
    Normalize DATABASE_URL so SQLAlchemy loads the right DBAPI.
    We standardize on the psycopg v3 driver ('+psycopg').
    """
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    if url.startswith("postgresql://") and "+psycopg://" not in url:
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


def _default_db_url() -> str:
    db_path = os.path.join(os.path.dirname(__file__), "..", "instance", "weddingpay.db")
    os.makedirs(os.path.dirname(db_path), exist_ok=True)
    return f"sqlite:///{os.path.abspath(db_path)}"


def create_app(config: Optional[Mapping[str, Any]] = None) -> Flask:
    app = Flask(__name__)
    app.url_map.strict_slashes = False

    # --- Config: environment defaults, then explicit overrides (tests) ---
    app.config.from_object(Config)
    if config:
        app.config.update(config)

    db_url = app.config.get("SQLALCHEMY_DATABASE_URI")
    app.config["SQLALCHEMY_DATABASE_URI"] = _normalize_db_url(db_url) if db_url else _default_db_url()
    db.init_app(app)

    # --- CORS ---
    cors_origins = [
        origin.strip()
        for origin in str(app.config.get("CORS_ALLOWED_ORIGINS", "")).split(",")
        if origin.strip()
    ]
    CORS(app, resources={
        r"/api/*": {
            "origins": cors_origins,
            "methods": ["GET", "POST", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization", "X-Request-ID"],
            "supports_credentials": False,
            "max_age": 600,
        }}
    )

    # --- Initialize observability ---
    init_logging(app)
    init_request_context(app)
    init_metrics(app)

    from weddingpay.middleware.errors import register_error_handlers
    register_error_handlers(app)

    # --- Pipeline collaborators (swappable in tests) ---
    app.extensions[extensions.GATEWAY] = AsaasGateway.from_config(app.config)
    app.extensions[extensions.IDENTITY_PROVIDER] = SqlIdentityProvider()
    app.extensions[extensions.AUDIT] = StructuredAuditTrail(persist=app.config["WEDDINGPAY_AUDIT_PERSIST"])
    app.extensions[extensions.NOTIFIER] = NotificationDispatcher(enabled=app.config["NOTIFICATIONS_ENABLED"])
    app.extensions[extensions.RETRY_POLICY] = RetryPolicy(
        max_attempts=int(app.config["CUSTOMER_CREATE_MAX_ATTEMPTS"]),
        initial_delay=int(app.config["CUSTOMER_CREATE_BACKOFF_MS"]) / 1000.0,
    )

    # --- Mount blueprints ---
    from weddingpay.routes import checkout, health, payments, webhooks
    app.register_blueprint(checkout.checkout_bp, url_prefix="/api")
    app.register_blueprint(webhooks.webhooks_bp, url_prefix="/api")
    app.register_blueprint(payments.payments_bp, url_prefix="/api")
    app.register_blueprint(health.health_bp)

    # --- DB init ---
    with app.app_context():
        # Only auto-create tables in testing or if explicitly enabled
        import weddingpay.models  # noqa: F401  (register tables on the metadata)
        if app.config.get("TESTING") or app.config.get("WEDDINGPAY_DB_AUTOCREATE"):
            db.create_all()

    return app
