# -*- coding: utf-8 -*-
# weddingpay/models/product.py
from enum import Enum
from typing import List

from weddingpay.infra.db import db


class ProductStatus(Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    INACTIVE = "inactive"


class Product(db.Model):
    """Catalog item. Owned by catalog management; read-only to checkout."""
    __tablename__ = "products"

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    price = db.Column(db.Numeric(12, 2), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=ProductStatus.DRAFT.value, index=True)

    # bundle ("kit") products grant their constituent products on purchase
    is_bundle = db.Column(db.Boolean, nullable=False, default=False)
    bundle_product_ids = db.Column(db.JSON, nullable=True)

    @property
    def is_purchasable(self) -> bool:
        return self.status == ProductStatus.ACTIVE.value

    def constituent_ids(self) -> List[str]:
        """Valid constituent ids of a bundle; empty for plain products."""
        if not self.is_bundle or not isinstance(self.bundle_product_ids, list):
            return []
        return [pid for pid in self.bundle_product_ids if isinstance(pid, str) and pid]

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "price": float(self.price),
            "status": self.status,
            "is_bundle": self.is_bundle,
            "bundle_product_ids": self.constituent_ids(),
        }

    def __repr__(self):
        return f"<Product {self.id} {self.status}>"
