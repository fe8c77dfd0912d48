# -*- coding: utf-8 -*-
# weddingpay/models/coupon.py
from enum import Enum

from weddingpay.infra.db import db


class DiscountType(Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class Coupon(db.Model):
    __tablename__ = "coupons"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), unique=True, nullable=False, index=True)
    discount_type = db.Column(db.String(16), nullable=False)
    value = db.Column(db.Numeric(12, 2), nullable=False)
    active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self):
        return {
            "code": self.code,
            "discount_type": self.discount_type,
            "value": float(self.value),
            "active": self.active,
        }

    def __repr__(self):
        return f"<Coupon {self.code} {self.discount_type}={self.value}>"
