# -*- coding: utf-8 -*-
"""
Installment options for card payments.

Fixed interest table used when the gateway does not quote installments:
1x is interest free, then 2.99% for 2x up to 12.99% for 12x.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List

from weddingpay.errors import ValidationError

MAX_INSTALLMENTS = 12

INTEREST_TABLE: Dict[int, Decimal] = {1: Decimal("0")}
INTEREST_TABLE.update({n: Decimal(n) + Decimal("0.99") for n in range(2, MAX_INSTALLMENTS + 1)})

CENTS = Decimal("0.01")


def calculate_installments(total_price) -> List[Dict[str, float]]:
    try:
        total = Decimal(str(total_price))
    except (ArithmeticError, ValueError) as e:
        raise ValidationError("total_price must be a number") from e
    if not total.is_finite() or total <= 0:
        raise ValidationError("total_price must be greater than zero")

    options = []
    for number in range(1, MAX_INSTALLMENTS + 1):
        rate = INTEREST_TABLE[number]
        total_with_interest = total * (Decimal(1) + rate / Decimal(100))
        options.append({
            "installment_number": number,
            "installment_value": float((total_with_interest / number).quantize(CENTS, rounding=ROUND_HALF_UP)),
            "total_value": float(total_with_interest.quantize(CENTS, rounding=ROUND_HALF_UP)),
            "interest_percentage": float(rate),
        })
    return options
