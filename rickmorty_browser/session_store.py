from __future__ import annotations

import time
import uuid
from collections import OrderedDict
from typing import Dict, Optional, Tuple

from . import metrics
from .session import BrowserSession
from .settings import settings


class SessionStore:
    """Tiny per-process LRU+TTL registry of browser sessions.

    Sessions idle longer than the TTL are dropped on access; the least recently
    used session is evicted once capacity is exceeded. Every change in size is
    reported to the ``browser_sessions_active`` gauge.
    """

    def __init__(self, ttl: float, capacity: int) -> None:
        """Initialize the store.

        Args:
            ttl: Idle time-to-live in seconds.
            capacity: Maximum number of sessions kept (LRU-evicted).
        """
        self._ttl = ttl
        self._cap = capacity
        self._store: "OrderedDict[str, Tuple[float, BrowserSession]]" = OrderedDict()

    def _report(self) -> None:
        metrics.observe_sessions(len(self._store))

    def create(self, session: Optional[BrowserSession] = None) -> Tuple[str, BrowserSession]:
        """Register a new session under a fresh id."""
        sid = uuid.uuid4().hex
        session = session if session is not None else BrowserSession()
        self._store[sid] = (time.time(), session)
        self._store.move_to_end(sid)
        while len(self._store) > self._cap:
            self._store.popitem(last=False)
        self._report()
        return sid, session

    def get(self, sid: str) -> Optional[BrowserSession]:
        """Return the session if still live (refreshing its idle clock), else None."""
        ts_val = self._store.get(sid)
        if not ts_val:
            return None
        ts, session = ts_val
        now = time.time()
        if now - ts > self._ttl:
            self._store.pop(sid, None)
            self._report()
            return None
        self._store[sid] = (now, session)
        self._store.move_to_end(sid)
        return session

    def discard(self, sid: str) -> bool:
        found = self._store.pop(sid, None) is not None
        self._report()
        return found

    def clear(self) -> None:
        self._store.clear()
        self._report()

    def __len__(self) -> int:
        return len(self._store)

    def stats(self) -> Dict[str, int]:
        return {"size": len(self._store), "capacity": self._cap}


session_store = SessionStore(
    ttl=settings.SESSION_TTL_SECONDS, capacity=settings.SESSION_MAX
)
