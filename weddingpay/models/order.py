# -*- coding: utf-8 -*-
# weddingpay/models/order.py
import uuid
from datetime import datetime, timezone
from enum import Enum

from weddingpay.infra.db import db


def _utcnow():
    return datetime.now(timezone.utc)


class OrderStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    customer_id = db.Column(db.String(36), db.ForeignKey("profiles.id"), nullable=False, index=True)

    # snapshot taken at creation time, never a live reference
    ordered_product_ids = db.Column(db.JSON, nullable=False)
    total_price = db.Column(db.Numeric(12, 2), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=OrderStatus.PENDING.value, index=True)

    gateway_payment_id = db.Column(db.String(64), unique=True, nullable=True, index=True)
    payment_method = db.Column(db.String(16), nullable=True)
    coupon_code = db.Column(db.String(64), nullable=True)
    tracking_metadata = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    customer = db.relationship("Customer", lazy="joined")

    @property
    def is_pending(self) -> bool:
        return self.status == OrderStatus.PENDING.value

    def to_dict(self):
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "ordered_product_ids": list(self.ordered_product_ids or []),
            "total_price": float(self.total_price),
            "status": self.status,
            "gateway_payment_id": self.gateway_payment_id,
            "payment_method": self.payment_method,
            "coupon_code": self.coupon_code,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Order {self.id} {self.status}>"
