"""
In-memory suppression of near-simultaneous duplicate events.

Slack delivers events at least once and retries when a response is slow, so
the same join can arrive several times within seconds. Each user id maps to
the time it was last accepted; a second event inside the window is skipped.

Process-lifetime only. Entries whose age reaches the window are treated as
absent and swept lazily on every accepted event; the map is also capped,
evicting the oldest entries first.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from typing import Optional

DEFAULT_WINDOW_MS = 30_000
DEFAULT_MAX_ENTRIES = 10_000


def now_ms() -> int:
    return int(time.time() * 1000)


class RecentlyProcessed:
    """Time-windowed map of user id -> last processed timestamp."""

    def __init__(
        self,
        window_ms: int = DEFAULT_WINDOW_MS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ):
        self.window_ms = window_ms
        self.max_entries = max_entries
        # Ordered oldest stamp first; re-stamping moves the key to the end.
        self._entries: "OrderedDict[str, int]" = OrderedDict()
        self._lock = threading.Lock()

    def check_and_mark(self, user_id: str, at_ms: Optional[int] = None) -> Optional[int]:
        """
        Atomically test and stamp ``user_id``.

        Returns:
            Milliseconds since the previous accepted event if the user was
            processed inside the window (caller should skip), otherwise None
            after stamping the user with the current time.
        """
        current = now_ms() if at_ms is None else at_ms
        with self._lock:
            stamped = self._entries.get(user_id)
            if stamped is not None and current - stamped < self.window_ms:
                return current - stamped

            self._entries[user_id] = current
            self._entries.move_to_end(user_id)
            self._sweep_locked(current)
            return None

    def _sweep_locked(self, current: int) -> None:
        expired = [
            key
            for key, stamped in self._entries.items()
            if current - stamped >= self.window_ms
        ]
        for key in expired:
            del self._entries[key]

        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
