# -*- coding: utf-8 -*-
"""
Asaas webhook endpoint.

Every outcome the gateway should stop retrying (processed, ignored,
not_found, already_processed) is answered with 200.
"""
from flask import Blueprint, current_app, request, jsonify

from weddingpay.errors import ValidationError
from weddingpay.extensions import get_audit, get_metrics, get_notifier
from weddingpay.infra.db import db
from weddingpay.services.reconciler import WebhookReconciler

webhooks_bp = Blueprint('webhooks', __name__)

TOKEN_HEADER = 'asaas-access-token'


@webhooks_bp.route('/webhooks/asaas', methods=['POST'])
def asaas_webhook():
    reconciler = WebhookReconciler(
        db.session,
        webhook_token=current_app.config.get('ASAAS_WEBHOOK_TOKEN'),
        audit=get_audit(),
        notifier=get_notifier(),
    )
    # token first, so unauthenticated callers learn nothing about the payload
    reconciler.verify_token(request.headers.get(TOKEN_HEADER))

    payload = request.get_json(silent=True)
    if payload is None:
        raise ValidationError("Webhook body must be JSON")

    outcome = reconciler.handle(payload, request.headers.get(TOKEN_HEADER))
    get_metrics().record_webhook(outcome.result)
    return jsonify(outcome.to_dict()), 200
