# weddingpay/jobs/notifications.py
"""Jobs run by the RQ worker after an order is paid."""
from __future__ import annotations

import os
from html import escape
from typing import Any, Dict

from weddingpay.services.emailer import send_email
from weddingpay.services.structured_logging import get_logger

logger = get_logger('weddingpay.notifications')

JSON = Dict[str, Any]


def send_receipt_email(payload: JSON) -> bool:
    """Email the buyer a payment receipt with a link to the members area."""
    email = payload.get("email")
    if not email:
        logger.warning("Receipt skipped, no email", order_id=payload.get("order_id"))
        return False

    name = escape(payload.get("name") or "")
    total = payload.get("total_price")
    login_url = os.environ.get("APP_LOGIN_URL", "http://localhost:5173/login")
    html = (
        f"<p>Olá {name},</p>"
        f"<p>Recebemos o pagamento do pedido <b>{escape(str(payload.get('order_id')))}</b>"
        f" no valor de R$ {total}.</p>"
        f"<p>Seus produtos já estão liberados: <a href=\"{escape(login_url)}\">acessar</a>.</p>"
    )
    sent = send_email(email, "Pagamento confirmado", html)
    logger.info("Receipt email processed", order_id=payload.get("order_id"), sent=sent)
    return sent


def record_purchase_event(payload: JSON) -> JSON:
    """Emit the purchase analytics event with the checkout tracking data."""
    event = {
        "event_name": "Purchase",
        "order_id": payload.get("order_id"),
        "value": payload.get("total_price"),
        "currency": "BRL",
        "content_ids": payload.get("product_ids") or [],
        "tracking": payload.get("tracking") or {},
    }
    logger.info("Purchase event", event_type='analytics', **event)
    return event
