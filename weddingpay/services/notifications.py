# -*- coding: utf-8 -*-
"""
Post-payment notifications.

Dispatch is best-effort: the order is already paid and access granted when
these run, so a failure to enqueue is logged and never propagated.
"""
from typing import Any, Callable, Dict, List, Optional

from weddingpay.jobs.notifications import record_purchase_event, send_receipt_email
from weddingpay.services import queue
from weddingpay.services.structured_logging import get_logger

logger = get_logger('weddingpay.notifications')


class NotificationDispatcher:

    def __init__(self, enqueue: Optional[Callable[..., Any]] = None, enabled: bool = True):
        self._enqueue = enqueue or queue.enqueue
        self.enabled = enabled

    def order_paid(self, order, customer, granted: Optional[List[str]] = None) -> int:
        """Queue the receipt email and analytics event. Returns how many were queued."""
        if not self.enabled:
            return 0

        payload: Dict[str, Any] = {
            "order_id": order.id,
            "customer_id": order.customer_id,
            "email": getattr(customer, "email", None),
            "name": getattr(customer, "name", None),
            "total_price": str(order.total_price),
            "product_ids": list(order.ordered_product_ids or []),
            "granted": list(granted or []),
            "tracking": order.tracking_metadata or {},
        }

        queued = 0
        for job in (send_receipt_email, record_purchase_event):
            try:
                self._enqueue(job, payload)
                queued += 1
            except Exception as e:
                logger.warning("Notification enqueue failed", job=job.__name__,
                               order_id=order.id, error=str(e))
        return queued
