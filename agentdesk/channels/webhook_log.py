"""
Webhook Log Buffer - bounded in-memory record of recent inbound webhook payloads.
Used by developers to watch live traffic; not durable, empty after a restart.
"""

import threading
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, List
from pydantic import BaseModel, Field

DEFAULT_CAPACITY = 100


class WebhookLogEntry(BaseModel):
    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    )
    payload: Any = None


class WebhookLogBuffer:
    """
    Fixed-capacity ring buffer, newest entry first.
    Safe to share between threads; one instance lives on app.state.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._entries: Deque[WebhookLogEntry] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def record(self, payload: Any) -> WebhookLogEntry:
        """Prepend a payload; the oldest entry drops off when full."""
        entry = WebhookLogEntry(payload=payload)
        with self._lock:
            self._entries.appendleft(entry)
        return entry

    def entries(self) -> List[WebhookLogEntry]:
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
