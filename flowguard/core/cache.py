# flowguard/core/cache.py

from __future__ import annotations
import threading
import time
from typing import Callable, Dict, List, Tuple

from flowguard.core.models import ConversationRecord


class ConversationCache:
    """
    Recently fetched conversation summaries, per user.
    Entries may be stale for up to `max_age` seconds; any mutation of a
    user's conversations must call `invalidate(user_id)`.
    """

    def __init__(self, max_age: float = 30.0, clock: Callable[[], float] = time.monotonic):
        self.max_age = max_age
        self._clock = clock
        self._entries: Dict[str, Tuple[float, List[ConversationRecord]]] = {}
        self._lock = threading.Lock()

    def get(
        self, user_id: str, loader: Callable[[str], List[ConversationRecord]]
    ) -> List[ConversationRecord]:
        with self._lock:
            hit = self._entries.get(user_id)
            if hit and self._clock() - hit[0] < self.max_age:
                return list(hit[1])

        fresh = loader(user_id)
        with self._lock:
            self._entries[user_id] = (self._clock(), list(fresh))
        return fresh

    def invalidate(self, user_id: str) -> None:
        with self._lock:
            self._entries.pop(user_id, None)
