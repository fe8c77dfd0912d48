# -*- coding: utf-8 -*-
"""
Order store.

Orders are created ``pending`` and leave that state exactly once, to ``paid``
or ``cancelled``. The transition is a single conditional UPDATE guarded by
``status = 'pending'``: with concurrent webhook deliveries only one caller
sees a changed row.
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from weddingpay.models.order import Order, OrderStatus
from weddingpay.services.pricing import to_money
from weddingpay.services.structured_logging import get_logger

logger = get_logger('weddingpay.orders')

_TERMINAL = (OrderStatus.PAID.value, OrderStatus.CANCELLED.value)


class OrderStore:

    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, customer_id: str, product_ids: List[str], total_price: Decimal,
               tracking_metadata: Optional[Dict[str, Any]] = None,
               payment_method: Optional[str] = None,
               coupon_code: Optional[str] = None) -> Order:
        order = Order(
            customer_id=customer_id,
            ordered_product_ids=list(product_ids),
            total_price=to_money(total_price),
            status=OrderStatus.PENDING.value,
            payment_method=payment_method,
            coupon_code=coupon_code,
            tracking_metadata=tracking_metadata or None,
        )
        try:
            self.db.add(order)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        logger.info("Order created", order_id=order.id, customer_id=customer_id,
                    total_price=str(order.total_price))
        return order

    def get(self, order_id: str) -> Optional[Order]:
        return self.db.get(Order, order_id)

    def find_by_gateway_payment_id(self, gateway_payment_id: str) -> Optional[Order]:
        if not gateway_payment_id:
            return None
        return self.db.query(Order).filter_by(gateway_payment_id=gateway_payment_id).first()

    def attach_gateway_payment_id(self, order_id: str, gateway_payment_id: str) -> bool:
        """Link an order to its gateway charge. Failures are logged, not raised."""
        try:
            updated = (
                self.db.query(Order)
                .filter(Order.id == order_id)
                .update({Order.gateway_payment_id: gateway_payment_id}, synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning("Could not link order to gateway payment",
                           order_id=order_id, gateway_payment_id=gateway_payment_id, error=str(e))
            return False
        if updated != 1:
            logger.warning("Order to link was not found", order_id=order_id,
                           gateway_payment_id=gateway_payment_id)
            return False
        return True

    def transition(self, order_id: str, new_status: str) -> bool:
        """
        Move a pending order to ``paid`` or ``cancelled``.

        Returns True only for the caller whose UPDATE changed the row; an
        order that already left ``pending`` is a no-op returning False.
        Raises ValueError for any other target status.
        """
        if isinstance(new_status, OrderStatus):
            new_status = new_status.value
        if new_status not in _TERMINAL:
            raise ValueError(f"Invalid order transition target: {new_status}")

        try:
            updated = (
                self.db.query(Order)
                .filter(Order.id == order_id, Order.status == OrderStatus.PENDING.value)
                .update({Order.status: new_status}, synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        if updated == 1:
            logger.info("Order transitioned", order_id=order_id, status=new_status)
            return True
        logger.info("Order transition skipped, not pending", order_id=order_id, target=new_status)
        return False

