"""Millisecond-timestamp ids.

Ids stay numeric and time-derived, but are strictly increasing within a
process: two requests in the same millisecond get ``t`` and ``t + 1``.
"""

import threading
import time


class MonotonicIdClock:
    def __init__(self, now_ms=None):
        self._now_ms = now_ms or (lambda: int(time.time() * 1000))
        self._last = 0
        self._lock = threading.Lock()

    def next_id(self) -> int:
        with self._lock:
            value = max(self._now_ms(), self._last + 1)
            self._last = value
            return value

    def next_str_id(self) -> str:
        return str(self.next_id())
