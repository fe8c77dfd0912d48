# -*- coding: utf-8 -*-
"""
Checkout orchestrator.

Runs one checkout end to end: price the products, apply the coupon, resolve
the customer, create the pending order and create the gateway charge. If the
charge step fails the order is cancelled before the error propagates. PIX
orders stay pending until the webhook arrives; a card charge the gateway
confirms on the spot is finalized right away through the reconciler.
"""
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

from weddingpay.models.customer import Customer
from weddingpay.models.order import Order, OrderStatus
from weddingpay.schemas.checkout import CheckoutRequest, PaymentMethod
from weddingpay.services.asaas_gateway import AsaasGateway, CardCharge
from weddingpay.services.audit import AuditTrail, MemoryAuditTrail, mask_card_number
from weddingpay.services.coupons import CouponEngine
from weddingpay.services.customer_resolver import CustomerResolver
from weddingpay.services.identity_provider import IdentityProvider
from weddingpay.services.order_store import OrderStore
from weddingpay.services.pricing import PricingValidator
from weddingpay.services.reconciler import PROCESSED, ALREADY_PROCESSED, WebhookReconciler
from weddingpay.services.retry import RetryPolicy
from weddingpay.services.structured_logging import get_logger

logger = get_logger('weddingpay.checkout')


@dataclass
class CheckoutResult:
    order_id: str
    payment_id: str
    payment_method: str
    status: str
    total_price: Decimal
    is_existing_customer: bool
    coupon_code: Optional[str] = None
    qr_payload: Optional[str] = None
    qr_image: Optional[str] = None
    confirmed: bool = False
    authorization_code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "order_id": self.order_id,
            "payment_id": self.payment_id,
            "payment_method": self.payment_method,
            "status": self.status,
            "total_price": float(self.total_price),
            "is_existing_customer": self.is_existing_customer,
        }
        if self.coupon_code:
            body["coupon_code"] = self.coupon_code
        if self.payment_method == PaymentMethod.PIX.value:
            body["qr_payload"] = self.qr_payload
            body["qr_image"] = self.qr_image
        else:
            body["confirmed"] = self.confirmed
            body["authorization_code"] = self.authorization_code
        return body


class CheckoutService:

    def __init__(self, db_session, gateway: AsaasGateway, identity_provider: IdentityProvider,
                 audit: Optional[AuditTrail] = None,
                 reconciler: Optional[WebhookReconciler] = None,
                 retry_policy: Optional[RetryPolicy] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.db = db_session
        self.gateway = gateway
        self.audit = audit if audit is not None else MemoryAuditTrail()
        self.pricing = PricingValidator(db_session)
        self.coupons = CouponEngine(db_session)
        self.orders = OrderStore(db_session)
        self.resolver = CustomerResolver(db_session, identity_provider, audit=self.audit,
                                         retry_policy=retry_policy, sleep=sleep)
        self.reconciler = reconciler or WebhookReconciler(db_session, audit=self.audit)

    def checkout(self, req: CheckoutRequest, client_ip: Optional[str] = None,
                 user_agent: Optional[str] = None) -> CheckoutResult:
        method = req.payment_method.value

        priced = self.pricing.validate_products(req.product_ids)
        discounted = self.coupons.apply_coupon(req.coupon_code, priced.total)
        resolved = self.resolver.resolve(req.email, req.cpf, req.name, req.phone)

        order = self.orders.create(
            customer_id=resolved.customer_id,
            product_ids=priced.product_ids,
            total_price=discounted.total,
            tracking_metadata=self._tracking(req.tracking, client_ip, user_agent),
            payment_method=method,
            coupon_code=discounted.code,
        )
        order_id = order.id
        self.audit.record("order.created", resource_type="order", resource_id=order_id,
                          customer_id=resolved.customer_id, total_price=str(discounted.total),
                          payment_method=method, coupon_code=discounted.code,
                          product_count=len(priced.product_ids))

        try:
            charge = self._charge(order, req, client_ip)
        except Exception as e:
            self._cancel(order_id, e)
            raise

        self.orders.attach_gateway_payment_id(order_id, charge.gateway_payment_id)
        self.audit.record("payment.created", resource_type="order", resource_id=order_id,
                          gateway_payment_id=charge.gateway_payment_id, status=charge.status,
                          payment_method=method)

        result = CheckoutResult(
            order_id=order_id,
            payment_id=charge.gateway_payment_id,
            payment_method=method,
            status=charge.status,
            total_price=discounted.total,
            is_existing_customer=resolved.is_existing,
            coupon_code=discounted.code,
        )

        if isinstance(charge, CardCharge):
            result.authorization_code = charge.authorization_code
            if charge.confirmed:
                outcome = self.reconciler.confirm_order(self.orders.get(order_id), source="checkout")
                result.confirmed = outcome.result in (PROCESSED, ALREADY_PROCESSED)
        else:
            result.qr_payload = charge.qr_payload
            result.qr_image = charge.qr_image

        logger.info("Checkout completed", order_id=order_id, payment_method=method,
                    gateway_payment_id=charge.gateway_payment_id, confirmed=result.confirmed)
        return result

    def _charge(self, order: Order, req: CheckoutRequest, client_ip: Optional[str]):
        customer = self.db.get(Customer, order.customer_id)
        if req.payment_method is PaymentMethod.PIX:
            return self.gateway.create_pix_charge(order, customer)
        logger.info("Charging card", order_id=order.id, card=mask_card_number(req.credit_card.number),
                    installments=req.credit_card.installment_count)
        return self.gateway.create_card_charge(order, customer, req.credit_card, client_ip)

    def _cancel(self, order_id: str, cause: Exception):
        try:
            cancelled = self.orders.transition(order_id, OrderStatus.CANCELLED.value)
        except Exception as e:
            logger.error("Could not cancel order after charge failure", order_id=order_id,
                         error=str(e), cause=str(cause))
            return
        logger.warning("Order cancelled after charge failure", order_id=order_id,
                       cancelled=cancelled, error_type=type(cause).__name__, error=str(cause))
        self.audit.record("order.cancelled", level="warning", resource_type="order",
                          resource_id=order_id, error_type=type(cause).__name__, error=str(cause))

    @staticmethod
    def _tracking(tracking: Optional[Dict[str, Any]], client_ip: Optional[str],
                  user_agent: Optional[str]) -> Dict[str, Any]:
        metadata = dict(tracking or {})
        if client_ip:
            metadata["client_ip_address"] = client_ip
        if user_agent:
            metadata["client_user_agent"] = user_agent
        return metadata
