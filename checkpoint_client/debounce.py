from __future__ import annotations

import threading
import time
from collections import OrderedDict
from typing import Hashable


class DebounceTracker:
    """Suppresses repeat confirmations of one subject inside a time window.

    Held in memory by the capture session only; a client restart forgets it.
    """

    def __init__(self, window_seconds: float = 10.0, max_entries: int = 512):
        self.window_seconds = max(0.0, float(window_seconds))
        self.max_entries = max(1, int(max_entries))
        self._last_confirmed: OrderedDict[Hashable, float] = OrderedDict()
        self._lock = threading.Lock()

    def accept(self, subject_id: Hashable, now: float | None = None) -> bool:
        now = time.monotonic() if now is None else now
        with self._lock:
            self._evict_stale(now)
            last = self._last_confirmed.get(subject_id)
            if last is not None and now - last < self.window_seconds:
                return False

            self._last_confirmed.pop(subject_id, None)
            self._last_confirmed[subject_id] = now
            while len(self._last_confirmed) > self.max_entries:
                self._last_confirmed.popitem(last=False)
            return True

    def _evict_stale(self, now: float) -> None:
        # Entries are kept in confirmation order, so stale ones sit at the front.
        while self._last_confirmed:
            subject_id, confirmed_at = next(iter(self._last_confirmed.items()))
            if now - confirmed_at < self.window_seconds:
                break
            del self._last_confirmed[subject_id]

    def clear(self) -> None:
        with self._lock:
            self._last_confirmed.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._last_confirmed)
