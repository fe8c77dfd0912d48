# -*- coding: utf-8 -*-
# weddingpay/models/identity_account.py
import uuid
from datetime import datetime, timezone

from werkzeug.security import generate_password_hash, check_password_hash

from weddingpay.infra.db import db


class IdentityAccount(db.Model):
    """Login account owned by the identity provider, kept apart from profiles."""
    __tablename__ = "identity_accounts"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    user_metadata = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    # --- password helpers ---
    def set_password(self, raw_password: str):
        self.password_hash = generate_password_hash(raw_password)

    def check_password(self, raw_password: str) -> bool:
        return check_password_hash(self.password_hash, raw_password)

    def __repr__(self):
        return f"<IdentityAccount {self.id} {self.email}>"
