"""
Session Store

Holds at most ONE pending capture per chat, with expiry.

DESIGN DECISION: The store is a plain object owned by whoever builds
the dialogue controller (no module-level map), so tests get a fresh
store and a fake clock for free.

Expiry is lazy: nothing runs in the background; an expired entry is
evicted the next time anyone reads it.

The store never raises.
"""

import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import structlog

from chamber.models.capture import PendingCapture

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore:
    """
    chat_id → PendingCapture, with per-key atomic put/remove.

    Args:
        ttl: How long a capture stays confirmable
        clock: Current time source (UTC)
    """

    def __init__(
        self,
        ttl: timedelta = timedelta(minutes=5),
        clock: Clock = utc_now,
    ):
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[int, PendingCapture] = {}
        self._lock = threading.Lock()

    def now(self) -> datetime:
        return self._clock()

    def put(self, chat_id: int, capture: PendingCapture) -> bool:
        """
        Store a capture, silently replacing any previous one.

        Returns True if a live capture was replaced.
        """
        with self._lock:
            previous = self._entries.get(chat_id)
            self._entries[chat_id] = capture
        replaced = previous is not None and not previous.is_expired(self.now())
        logger.debug("capture_stored", chat_id=chat_id, replaced=replaced)
        return replaced

    def get(self, chat_id: int) -> Optional[PendingCapture]:
        """The live capture for a chat, or None (expired entries are evicted)."""
        with self._lock:
            capture = self._entries.get(chat_id)
            if capture is None:
                return None
            if capture.is_expired(self.now()):
                # Only evict the entry we looked at, not a newer one
                if self._entries.get(chat_id) is capture:
                    del self._entries[chat_id]
                logger.debug("capture_expired", chat_id=chat_id)
                return None
            return capture

    def pop(self, chat_id: int) -> Optional[PendingCapture]:
        """
        Atomically take a chat's live capture out of the store.

        Two taps on the same button cannot both get the capture.
        """
        with self._lock:
            capture = self._entries.pop(chat_id, None)
        if capture is None or capture.is_expired(self.now()):
            return None
        return capture

    def restore(self, chat_id: int, capture: PendingCapture) -> bool:
        """Put a popped capture back unless a newer one arrived meanwhile."""
        with self._lock:
            if chat_id in self._entries:
                return False
            self._entries[chat_id] = capture
            return True

    def remove(self, chat_id: int) -> bool:
        """Delete a chat's capture. Returns True if one (live or not) existed."""
        with self._lock:
            return self._entries.pop(chat_id, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
