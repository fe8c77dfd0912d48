# -*- coding: utf-8 -*-
"""Payment helpers used by the checkout page: status polling and installment quotes."""
from flask import Blueprint, request, jsonify

from weddingpay.extensions import get_audit, get_gateway, get_notifier
from weddingpay.infra.db import db
from weddingpay.schemas import validate_payload
from weddingpay.schemas.checkout import InstallmentsRequest
from weddingpay.services.asaas_gateway import CONFIRMED_STATUSES
from weddingpay.services.installments import calculate_installments
from weddingpay.services.order_store import OrderStore
from weddingpay.services.reconciler import WebhookReconciler

payments_bp = Blueprint('payments', __name__)


@payments_bp.route('/payments/<payment_id>/status', methods=['GET'])
def payment_status(payment_id):
    """
    Ask the gateway for the payment status.

    When the gateway already confirmed the payment and the local order is
    still pending, the order is finalized the same way the webhook would.
    """
    status = get_gateway().get_payment_status(payment_id)
    body = {'payment_id': payment_id, 'status': status}

    if status.upper() in CONFIRMED_STATUSES:
        order = OrderStore(db.session).find_by_gateway_payment_id(payment_id)
        if order is not None:
            reconciler = WebhookReconciler(db.session, audit=get_audit(), notifier=get_notifier())
            outcome = reconciler.confirm_order(order, source="status_check")
            body['order_id'] = order.id
            body['result'] = outcome.result

    return jsonify(body), 200


@payments_bp.route('/payments/installments', methods=['POST'])
def installments():
    req = validate_payload(InstallmentsRequest, request.get_json(silent=True))
    return jsonify({'installments': calculate_installments(req.total_price)}), 200
