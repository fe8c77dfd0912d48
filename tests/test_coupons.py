"""Tests for the coupon engine."""
from decimal import Decimal

import pytest

from weddingpay.errors import InvalidCoupon
from weddingpay.services.coupons import CouponEngine, discounted_total


@pytest.mark.parametrize("code", [None, "", "   "])
def test_no_code_keeps_total(session, code):
    result = CouponEngine(session).apply_coupon(code, Decimal("150.00"))

    assert result.total == Decimal("150.00")
    assert result.coupon is None
    assert result.discount == Decimal("0.00")


def test_fixed_coupon(session, make_coupon):
    make_coupon("FESTA10", "fixed", 10)

    result = CouponEngine(session).apply_coupon("FESTA10", Decimal("150.00"))

    assert result.total == Decimal("140.00")
    assert result.discount == Decimal("10.00")
    assert result.code == "FESTA10"


def test_percentage_coupon(session, make_coupon):
    make_coupon("NOIVOS10", "percentage", 10)

    result = CouponEngine(session).apply_coupon("NOIVOS10", Decimal("150.00"))

    assert result.total == Decimal("135.00")


def test_code_is_trimmed_and_uppercased(session, make_coupon):
    make_coupon("NOIVOS10", "percentage", 10)

    result = CouponEngine(session).apply_coupon("  noivos10 ", Decimal("150.00"))

    assert result.total == Decimal("135.00")


def test_inactive_coupon_is_invalid(session, make_coupon):
    make_coupon("EXPIRED", "fixed", 10, active=False)

    with pytest.raises(InvalidCoupon):
        CouponEngine(session).apply_coupon("EXPIRED", Decimal("150.00"))


def test_unknown_coupon_is_invalid(session):
    with pytest.raises(InvalidCoupon) as exc:
        CouponEngine(session).apply_coupon("NOPE", Decimal("150.00"))
    assert exc.value.status_code == 422


def test_coupon_is_not_mutated(session, make_coupon):
    coupon = make_coupon("FESTA10", "fixed", 10)

    CouponEngine(session).apply_coupon("FESTA10", Decimal("150.00"))
    session.refresh(coupon)

    assert coupon.value == Decimal("10.00")
    assert coupon.active is True


@pytest.mark.parametrize("discount_type,value,expected", [
    ("fixed", 200, "0.00"),
    ("fixed", 150, "0.00"),
    ("percentage", 100, "0.00"),
    ("percentage", 150, "0.00"),
    ("percentage", 33, "100.50"),
])
def test_discount_never_goes_negative(discount_type, value, expected):
    assert discounted_total(Decimal("150.00"), discount_type, Decimal(value)) == Decimal(expected)
