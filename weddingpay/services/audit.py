# weddingpay/services/audit.py
"""
Audit trail for the checkout and reconciliation pipeline.

Components receive an ``AuditTrail`` and call ``record()``; they never insert
audit rows themselves. Recording is fire-and-forget: a failing audit write is
logged and dropped, it never fails the operation being audited.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from weddingpay.infra.db import db
from weddingpay.models.audit_log import AuditLog
from weddingpay.services.structured_logging import get_logger

logger = get_logger('weddingpay.audit')

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def mask_card_number(number: Optional[str]) -> Optional[str]:
    """Keep only the last four digits of a card number."""
    if not number:
        return number
    digits = "".join(ch for ch in str(number) if ch.isdigit())
    return f"****{digits[-4:]}" if digits else "****"


@dataclass
class AuditEvent:
    action: str
    level: str = "info"
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class AuditTrail:
    """Base audit capability."""

    def record(self, action: str, level: str = "info", resource_type: Optional[str] = None,
               resource_id: Optional[Any] = None, **details) -> None:
        event = AuditEvent(
            action=action,
            level=level if level in _LEVELS else "info",
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id is not None else None,
            details=details,
        )
        try:
            self._write(event)
        except Exception as e:
            logger.warning("Audit write failed", action=action, error=str(e))

    def _write(self, event: AuditEvent) -> None:
        raise NotImplementedError


class StructuredAuditTrail(AuditTrail):
    """
    Writes every event to the structured log and, when ``persist`` is on,
    to the ``audit_logs`` table through its own short-lived session so the
    caller's transaction is never committed or rolled back by auditing.
    """

    def __init__(self, persist: bool = True, engine=None):
        self.persist = persist
        self._engine = engine

    def _write(self, event: AuditEvent) -> None:
        logger.log(
            _LEVELS[event.level],
            f"Audit: {event.action}",
            event_type='audit',
            action=event.action,
            resource_type=event.resource_type,
            resource_id=event.resource_id,
            **event.details
        )
        if not self.persist:
            return

        engine = self._engine if self._engine is not None else db.engine
        with Session(bind=engine) as session:
            session.add(AuditLog(
                level=event.level,
                action=event.action,
                resource_type=event.resource_type,
                resource_id=event.resource_id,
                details=event.details or None,
                created_at=event.created_at,
            ))
            session.commit()


class MemoryAuditTrail(AuditTrail):
    """Keeps events in memory; used by tests and one-off scripts."""

    def __init__(self):
        self.events: List[AuditEvent] = []

    def _write(self, event: AuditEvent) -> None:
        self.events.append(event)

    def actions(self) -> List[str]:
        return [e.action for e in self.events]

    def find(self, action: str) -> List[AuditEvent]:
        return [e for e in self.events if e.action == action]

    def clear(self):
        self.events.clear()
