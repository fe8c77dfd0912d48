# -*- coding: utf-8 -*-
# weddingpay/models/audit_log.py
import uuid
from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import Column, String, DateTime, Text
from sqlalchemy.dialects.postgresql import JSONB

from weddingpay.infra.db import db


class AuditLog(db.Model):
    """Append-only trail of pipeline events (checkout, payment, access)."""
    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    level = Column(String(16), nullable=False, default="info")

    # e.g. "order.created", "webhook.already_processed"
    action = Column(String(120), nullable=False, index=True)
    # e.g. "order", "customer", "gift_reservation"
    resource_type = Column(String(64), nullable=True)
    resource_id = Column(String(64), nullable=True, index=True)

    # JSONB on PostgreSQL, JSON-as-text on SQLite
    details = Column(JSONB().with_variant(db.JSON, "sqlite"), nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "level": self.level,
            "action": self.action,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "details": self.details,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<AuditLog {self.id} action={self.action}>"
