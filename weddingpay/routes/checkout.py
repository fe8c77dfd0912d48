# -*- coding: utf-8 -*-
"""
Checkout endpoint.

POST /api/checkout creates a pending order and its gateway charge. The
response carries the PIX QR code, or the card charge outcome.
"""
from flask import Blueprint, request, jsonify

from weddingpay.errors import WeddingPayError
from weddingpay.extensions import (
    get_audit, get_gateway, get_identity_provider, get_metrics, get_notifier, get_retry_policy,
)
from weddingpay.infra.db import db
from weddingpay.schemas import validate_payload
from weddingpay.schemas.checkout import CheckoutRequest
from weddingpay.services.checkout import CheckoutService
from weddingpay.services.reconciler import WebhookReconciler
from weddingpay.services.request_context import client_ip

checkout_bp = Blueprint('checkout', __name__)


def build_checkout_service() -> CheckoutService:
    audit = get_audit()
    reconciler = WebhookReconciler(db.session, audit=audit, notifier=get_notifier())
    return CheckoutService(
        db.session,
        gateway=get_gateway(),
        identity_provider=get_identity_provider(),
        audit=audit,
        reconciler=reconciler,
        retry_policy=get_retry_policy(),
    )


@checkout_bp.route('/checkout', methods=['POST'])
def checkout():
    req = validate_payload(CheckoutRequest, request.get_json(silent=True))
    method = req.payment_method.value
    metrics = get_metrics()

    try:
        result = build_checkout_service().checkout(
            req,
            client_ip=client_ip(),
            user_agent=request.headers.get('User-Agent'),
        )
    except WeddingPayError as e:
        metrics.record_checkout(method, e.error)
        raise

    metrics.record_checkout(method, "confirmed" if result.confirmed else "created")
    return jsonify(result.to_dict()), 200
