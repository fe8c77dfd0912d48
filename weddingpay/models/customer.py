# -*- coding: utf-8 -*-
# weddingpay/models/customer.py
from datetime import datetime, timezone

from weddingpay.infra.db import db


def _utcnow():
    return datetime.now(timezone.utc)


class Customer(db.Model):
    """Customer profile. Its id is the id of the linked identity account."""
    __tablename__ = "profiles"

    id = db.Column(db.String(36), primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    cpf = db.Column(db.String(11), unique=True, nullable=True, index=True)
    name = db.Column(db.String(255))
    phone = db.Column(db.String(32))

    # product ids the customer may use; merged, never replaced
    access = db.Column(db.JSON, nullable=False, default=list)

    is_admin = db.Column(db.Boolean, default=False, nullable=False)
    first_access = db.Column(db.Boolean, default=True, nullable=False)
    password_changed = db.Column(db.Boolean, default=False, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    def access_list(self):
        return list(self.access) if isinstance(self.access, list) else []

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "phone": self.phone,
            "access": self.access_list(),
            "is_admin": self.is_admin,
            "first_access": self.first_access,
            "password_changed": self.password_changed,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Customer {self.id} {self.email}>"
