# -*- coding: utf-8 -*-
"""
Pricing validator.

Resolves the product ids of a checkout into product rows and the raw total.
Read-only: nothing here writes to the database.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List

from sqlalchemy.orm import Session

from weddingpay.errors import ProductsNotFound, ProductsUnavailable, ValidationError
from weddingpay.models.product import Product

CENTS = Decimal("0.01")


def to_money(value) -> Decimal:
    """Coerce a number to a Decimal rounded to cents."""
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENTS)


def dedupe(ids: Iterable[str]) -> List[str]:
    """Drop duplicates, keeping first-seen order."""
    seen = set()
    result = []
    for item in ids:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


@dataclass
class PricedProducts:
    products: List[Product]
    total: Decimal

    @property
    def product_ids(self) -> List[str]:
        return [p.id for p in self.products]


class PricingValidator:
    """Validates that every requested product exists and can be bought."""

    def __init__(self, db_session: Session):
        self.db = db_session

    def validate_products(self, product_ids: List[str]) -> PricedProducts:
        unique_ids = dedupe(pid for pid in (product_ids or []) if pid)
        if not unique_ids:
            raise ValidationError("At least one product is required")

        rows = self.db.query(Product).filter(Product.id.in_(unique_ids)).all()
        by_id = {p.id: p for p in rows}

        missing = [pid for pid in unique_ids if pid not in by_id]
        if missing:
            raise ProductsNotFound(missing)

        products = [by_id[pid] for pid in unique_ids]
        unavailable = [p.name for p in products if not p.is_purchasable]
        if unavailable:
            raise ProductsUnavailable(unavailable)

        total = sum((to_money(p.price) for p in products), Decimal("0.00"))
        return PricedProducts(products=products, total=total.quantize(CENTS))
