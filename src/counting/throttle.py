"""
Rate limit for "counts changed" notifications.
"""

from __future__ import annotations

import threading
from typing import Optional


class UpdateThrottle:
    """
    Coalesces change marks into at most one notification per interval.

    ``mark_changed()`` may be called any number of times; the next
    ``should_notify_now()`` that falls at least ``min_interval_ms`` after the
    previous notification returns True once and clears the mark.
    """

    def __init__(self, min_interval_ms: int = 50, pending: bool = False):
        self.min_interval_ms = min_interval_ms
        self._pending = pending
        self._last_notified_ms: Optional[int] = None
        self._lock = threading.Lock()

    @property
    def pending(self) -> bool:
        return self._pending

    @property
    def last_notified_ms(self) -> Optional[int]:
        return self._last_notified_ms

    def mark_changed(self) -> None:
        with self._lock:
            self._pending = True

    def should_notify_now(self, now_ms: int, min_interval_ms: Optional[int] = None) -> bool:
        interval = self.min_interval_ms if min_interval_ms is None else min_interval_ms
        with self._lock:
            if not self._pending:
                return False
            if self._last_notified_ms is not None and now_ms - self._last_notified_ms < interval:
                return False
            self._pending = False
            self._last_notified_ms = now_ms
            return True
