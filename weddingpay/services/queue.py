# weddingpay/services/queue.py
from __future__ import annotations
import os
from typing import Any, Optional
import redis
from rq import Queue

# Queue name must match the worker start command: `rq worker notifications`
QUEUE_NAME = "notifications"

_queue: Optional[Queue] = None


def get_queue(redis_url: Optional[str] = None) -> Queue:
    """Return the shared notifications queue, connecting lazily."""
    global _queue
    if _queue is None:
        url = redis_url or os.getenv("REDIS_URL", "redis://localhost:6379/0")
        # decode_responses=False keeps RQ binary-safe for pickled jobs.
        _queue = Queue(QUEUE_NAME, connection=redis.from_url(url, decode_responses=False))
    return _queue


def enqueue(func: Any, *args, **kwargs):
    """Enqueue a job on the notifications queue."""
    return get_queue().enqueue(func, *args, **kwargs)
