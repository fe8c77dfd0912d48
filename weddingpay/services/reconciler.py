# -*- coding: utf-8 -*-
"""
Webhook reconciler.

The gateway delivers payment callbacks at least once and in no particular
order. Every delivery is answered with a result instead of an error so the
gateway stops retrying:

    processed          this delivery moved the order to paid and granted access
    already_processed  the order (or reservation) was already finalized
    ignored            event not relevant, or the order was cancelled
    not_found          no order or reservation matches the payment

Only the delivery whose conditional UPDATE changed the row grants access and
sends notifications. The card checkout and the status polling endpoint reuse
``confirm_order`` so all three paths share the same idempotent transition.
"""
import hmac
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from weddingpay.errors import Unauthorized, ValidationError, WeddingPayError
from weddingpay.models.customer import Customer
from weddingpay.models.gift import Gift, GiftReservation, ReservationStatus
from weddingpay.models.order import Order, OrderStatus
from weddingpay.schemas import validate_payload
from weddingpay.schemas.webhook import WebhookEnvelope
from weddingpay.services.access_grantor import AccessGrantor
from weddingpay.services.audit import AuditTrail, MemoryAuditTrail
from weddingpay.services.notifications import NotificationDispatcher
from weddingpay.services.order_store import OrderStore
from weddingpay.services.structured_logging import get_logger

logger = get_logger('weddingpay.webhooks')

PAYMENT_EVENTS = frozenset({"PAYMENT_CONFIRMED", "PAYMENT_RECEIVED"})
GIFT_PREFIX = "gift:"

PROCESSED = "processed"
ALREADY_PROCESSED = "already_processed"
IGNORED = "ignored"
NOT_FOUND = "not_found"


@dataclass
class ReconcileResult:
    result: str
    reason: Optional[str] = None
    order_id: Optional[str] = None
    reservation_id: Optional[str] = None
    granted: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"result": self.result}
        if self.reason:
            body["reason"] = self.reason
        if self.order_id:
            body["order_id"] = self.order_id
        if self.reservation_id:
            body["reservation_id"] = self.reservation_id
        if self.granted:
            body["granted"] = self.granted
        return body


class WebhookReconciler:

    def __init__(self, db_session: Session, webhook_token: Optional[str] = None,
                 audit: Optional[AuditTrail] = None,
                 notifier: Optional[NotificationDispatcher] = None):
        self.db = db_session
        self.webhook_token = webhook_token or None
        self.audit = audit if audit is not None else MemoryAuditTrail()
        self.notifier = notifier
        self.orders = OrderStore(db_session)
        self.grantor = AccessGrantor(db_session, audit=self.audit)

    # -- entry point ---------------------------------------------------------

    def verify_token(self, token_header: Optional[str]) -> None:
        """Reject the delivery unless it carries the configured token."""
        if not self.webhook_token:
            return
        if not token_header or not hmac.compare_digest(
                token_header.encode("utf-8"), self.webhook_token.encode("utf-8")):
            logger.log_security_event("webhook_token_mismatch", severity='warning',
                                      token_present=bool(token_header))
            self.audit.record("webhook.unauthorized", level="warning", resource_type="webhook")
            raise Unauthorized("Invalid webhook token")

    def handle(self, payload: Any, token_header: Optional[str] = None) -> ReconcileResult:
        self.verify_token(token_header)
        envelope = payload if isinstance(payload, WebhookEnvelope) else validate_payload(WebhookEnvelope, payload)

        event = envelope.normalized_event
        if event not in PAYMENT_EVENTS:
            logger.info("Webhook event ignored", event=envelope.event)
            return ReconcileResult(IGNORED, reason="unsupported_event")

        payment = envelope.payment
        if payment is None or not payment.id:
            raise ValidationError("Payment confirmation without a payment id")

        reference = payment.external_reference or ""
        if reference.startswith(GIFT_PREFIX):
            return self._handle_gift(payment.id, reference[len(GIFT_PREFIX):])

        order = self.orders.find_by_gateway_payment_id(payment.id)
        if order is None and reference:
            order = self._order_by_reference(reference, payment.id)
        if order is None:
            logger.warning("Webhook for unknown payment", gateway_payment_id=payment.id,
                           external_reference=reference or None)
            self.audit.record("webhook.not_found", level="warning", resource_type="payment",
                              resource_id=payment.id, event=event)
            return ReconcileResult(NOT_FOUND)

        return self.confirm_order(order, source="webhook")

    # -- orders --------------------------------------------------------------

    def confirm_order(self, order: Order, source: str = "webhook") -> ReconcileResult:
        """Finalize a pending order as paid, grant access and notify, exactly once."""
        if order.status == OrderStatus.PAID.value:
            return self._already_processed(order, source)
        if order.status == OrderStatus.CANCELLED.value:
            return self._cancelled(order, source)

        if not self.orders.transition(order.id, OrderStatus.PAID.value):
            # another delivery got there first
            current = self.orders.get(order.id)
            if current is not None and current.status == OrderStatus.CANCELLED.value:
                return self._cancelled(current, source)
            return self._already_processed(order, source)

        self.audit.record("order.paid", resource_type="order", resource_id=order.id,
                          source=source, gateway_payment_id=order.gateway_payment_id)

        granted: List[str] = []
        try:
            granted = self.grantor.grant(order.customer_id, list(order.ordered_product_ids or [])).added
        except (WeddingPayError, SQLAlchemyError) as e:
            self.db.rollback()
            logger.critical("Order paid but access grant failed", order_id=order.id,
                            customer_id=order.customer_id, error=str(e))
            self.audit.record("access.grant_failed", level="critical", resource_type="order",
                              resource_id=order.id, customer_id=order.customer_id, error=str(e))
            return ReconcileResult(PROCESSED, reason="access_grant_failed", order_id=order.id)

        self._notify(order, granted)
        logger.info("Order reconciled", order_id=order.id, source=source, granted=granted)
        return ReconcileResult(PROCESSED, order_id=order.id, granted=granted)

    def _order_by_reference(self, reference: str, gateway_payment_id: str) -> Optional[Order]:
        """Find an order whose gateway link was never stored, and link it now."""
        order = self.orders.get(reference)
        if order is None:
            return None
        if order.gateway_payment_id and order.gateway_payment_id != gateway_payment_id:
            logger.warning("Webhook reference points at an order linked to another payment",
                           order_id=order.id, gateway_payment_id=gateway_payment_id,
                           linked_payment_id=order.gateway_payment_id)
            return None
        if not order.gateway_payment_id:
            self.orders.attach_gateway_payment_id(order.id, gateway_payment_id)
            logger.info("Order linked from webhook reference", order_id=order.id,
                        gateway_payment_id=gateway_payment_id)
            self.audit.record("order.payment_linked", resource_type="order", resource_id=order.id,
                              gateway_payment_id=gateway_payment_id, source="webhook")
        return order

    def _already_processed(self, order: Order, source: str) -> ReconcileResult:
        logger.info("Order already processed", order_id=order.id, source=source)
        self.audit.record("webhook.already_processed", resource_type="order",
                          resource_id=order.id, source=source)
        return ReconcileResult(ALREADY_PROCESSED, order_id=order.id)

    def _cancelled(self, order: Order, source: str) -> ReconcileResult:
        logger.warning("Payment confirmed for a cancelled order", order_id=order.id, source=source)
        self.audit.record("webhook.order_cancelled", level="warning", resource_type="order",
                          resource_id=order.id, source=source)
        return ReconcileResult(IGNORED, reason="order_cancelled", order_id=order.id)

    def _notify(self, order: Order, granted: List[str]):
        if self.notifier is None:
            return
        try:
            customer = self.db.get(Customer, order.customer_id)
            self.notifier.order_paid(order, customer, granted)
        except Exception as e:
            logger.warning("Notification dispatch failed", order_id=order.id, error=str(e))

    # -- gift registry -------------------------------------------------------

    def _handle_gift(self, gateway_payment_id: str, reservation_ref: str) -> ReconcileResult:
        reservation = (
            self.db.query(GiftReservation).filter_by(gateway_payment_id=gateway_payment_id).first()
        )
        if reservation is None and reservation_ref:
            reservation = self.db.get(GiftReservation, reservation_ref)
        if reservation is None:
            logger.warning("Webhook for unknown gift reservation",
                           gateway_payment_id=gateway_payment_id, reservation_ref=reservation_ref)
            return ReconcileResult(NOT_FOUND)

        if reservation.status == ReservationStatus.PURCHASED.value:
            return ReconcileResult(ALREADY_PROCESSED, reservation_id=reservation.id)
        if reservation.status == ReservationStatus.CANCELLED.value:
            return ReconcileResult(IGNORED, reason="reservation_cancelled", reservation_id=reservation.id)

        reservation_id = reservation.id
        gift_id = reservation.gift_id
        quantity = reservation.quantity or 1
        try:
            moved = (
                self.db.query(GiftReservation)
                .filter(GiftReservation.id == reservation_id,
                        GiftReservation.status == ReservationStatus.PENDING.value)
                .update({GiftReservation.status: ReservationStatus.PURCHASED.value},
                        synchronize_session=False)
            )
            if moved == 1:
                self.db.query(Gift).filter(Gift.id == gift_id).update(
                    {Gift.quantity_purchased: Gift.quantity_purchased + quantity},
                    synchronize_session=False,
                )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        if moved != 1:
            return ReconcileResult(ALREADY_PROCESSED, reservation_id=reservation_id)

        logger.info("Gift reservation purchased", reservation_id=reservation_id,
                    gift_id=gift_id, quantity=quantity)
        self.audit.record("gift.purchased", resource_type="gift_reservation",
                          resource_id=reservation_id, gift_id=gift_id, quantity=quantity)
        return ReconcileResult(PROCESSED, reservation_id=reservation_id)
