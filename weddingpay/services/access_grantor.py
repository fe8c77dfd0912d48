# -*- coding: utf-8 -*-
"""
Access grantor.

Purchased product ids are merged into the customer's access list. The list is
only ever extended: already present ids are kept in place, new ids are
appended, and granting the same ids twice changes nothing.
"""
from dataclasses import dataclass
from typing import Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from weddingpay.errors import CustomerNotFound
from weddingpay.models.customer import Customer
from weddingpay.models.product import Product
from weddingpay.services.audit import AuditTrail, MemoryAuditTrail
from weddingpay.services.pricing import dedupe
from weddingpay.services.structured_logging import get_logger

logger = get_logger('weddingpay.access')


def expand_bundles(products: Iterable[Product], requested_ids: Iterable[str]) -> List[str]:
    """
    Return the requested ids plus the constituents of any bundle among them.

    Bundles keep their own id. Bundles without a usable constituent list and
    ids with no matching product row contribute just themselves.
    """
    by_id = {p.id: p for p in products}
    expanded: List[str] = []
    for pid in requested_ids:
        expanded.append(pid)
        product = by_id.get(pid)
        if product is not None:
            expanded.extend(product.constituent_ids())
    return dedupe(expanded)


@dataclass
class GrantResult:
    added: List[str]
    access: List[str]

    @property
    def changed(self) -> bool:
        return bool(self.added)


class AccessGrantor:

    def __init__(self, db_session: Session, audit: Optional[AuditTrail] = None):
        self.db = db_session
        self.audit = audit if audit is not None else MemoryAuditTrail()

    def grant(self, customer_id: str, product_ids: List[str]) -> GrantResult:
        requested = dedupe(pid for pid in product_ids if pid)
        products = self.db.query(Product).filter(Product.id.in_(requested)).all() if requested else []
        expanded = expand_bundles(products, requested)

        customer = self.db.get(Customer, customer_id)
        if customer is None:
            logger.error("Cannot grant access, customer missing", customer_id=customer_id)
            raise CustomerNotFound(f"Customer {customer_id} not found")

        current = customer.access_list()
        current_set = set(current)
        added = [pid for pid in expanded if pid not in current_set]
        if not added:
            logger.info("Access already granted", customer_id=customer_id, product_ids=expanded)
            return GrantResult(added=[], access=current)

        merged = current + added
        # assign a new list so the JSON column is flagged dirty
        customer.access = merged
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info("Access granted", customer_id=customer_id, added=added)
        self.audit.record("access.granted", resource_type="customer",
                          resource_id=customer_id, added=added, total=len(merged))
        return GrantResult(added=added, access=merged)
