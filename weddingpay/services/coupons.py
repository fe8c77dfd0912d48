# -*- coding: utf-8 -*-
"""Coupon engine: applies an optional discount code to a priced total."""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from weddingpay.errors import InvalidCoupon
from weddingpay.models.coupon import Coupon, DiscountType
from weddingpay.services.pricing import CENTS, to_money

ZERO = Decimal("0.00")


@dataclass
class CouponResult:
    total: Decimal
    coupon: Optional[Coupon] = None
    discount: Decimal = ZERO

    @property
    def code(self) -> Optional[str]:
        return self.coupon.code if self.coupon is not None else None


def discounted_total(total: Decimal, discount_type: str, value: Decimal) -> Decimal:
    """Apply a discount to ``total``; the result is never negative."""
    total = to_money(total)
    value = Decimal(value)
    if discount_type == DiscountType.PERCENTAGE.value:
        result = total * (Decimal(1) - value / Decimal(100))
    elif discount_type == DiscountType.FIXED.value:
        result = total - value
    else:
        raise InvalidCoupon(f"Unsupported discount type: {discount_type}")
    return max(ZERO, result).quantize(CENTS)


class CouponEngine:

    def __init__(self, db_session: Session):
        self.db = db_session

    def apply_coupon(self, code: Optional[str], total: Decimal) -> CouponResult:
        total = to_money(total)
        if code is None or not str(code).strip():
            return CouponResult(total=total)

        normalized = str(code).strip().upper()
        coupon = (
            self.db.query(Coupon)
            .filter(Coupon.code == normalized, Coupon.active.is_(True))
            .first()
        )
        if coupon is None:
            raise InvalidCoupon(f"Coupon {normalized} is invalid or inactive")

        new_total = discounted_total(total, coupon.discount_type, coupon.value)
        return CouponResult(total=new_total, coupon=coupon, discount=(total - new_total).quantize(CENTS))
