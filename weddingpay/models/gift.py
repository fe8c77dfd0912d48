# -*- coding: utf-8 -*-
# weddingpay/models/gift.py
import uuid
from datetime import datetime, timezone
from enum import Enum

from weddingpay.infra.db import db


class ReservationStatus(Enum):
    PENDING = "pending"
    PURCHASED = "purchased"
    CANCELLED = "cancelled"


class Gift(db.Model):
    """Registry gift. Guests buy it through a reservation."""
    __tablename__ = "gifts"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    wedding_list_id = db.Column(db.String(36), nullable=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    price = db.Column(db.Numeric(12, 2), nullable=False)
    quantity_wanted = db.Column(db.Integer, nullable=False, default=1)
    quantity_purchased = db.Column(db.Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<Gift {self.id} {self.quantity_purchased}/{self.quantity_wanted}>"


class GiftReservation(db.Model):
    __tablename__ = "gift_reservations"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    gift_id = db.Column(db.String(36), db.ForeignKey("gifts.id"), nullable=False, index=True)
    guest_name = db.Column(db.String(255))
    guest_email = db.Column(db.String(255))
    quantity = db.Column(db.Integer, nullable=False, default=1)
    total_price = db.Column(db.Numeric(12, 2), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=ReservationStatus.PENDING.value, index=True)
    gateway_payment_id = db.Column(db.String(64), unique=True, nullable=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    gift = db.relationship("Gift")

    def __repr__(self):
        return f"<GiftReservation {self.id} {self.status}>"
