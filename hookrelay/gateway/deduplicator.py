"""
Webhook Deduplicator

WaSender retries a webhook when it does not get a fast 2xx, so the same
WhatsApp message id can arrive more than once.

File: hookrelay/gateway/deduplicator.py
"""

import logging
import threading
import time
from collections import OrderedDict
from typing import Optional

logger = logging.getLogger("relay.deduplicator")


class MessageDeduplicator:
    """Remembers recently seen message ids (thread-safe)"""

    def __init__(self, ttl_seconds: float = 60, max_size: int = 1000):
        """
        Initialize deduplicator

        Args:
            ttl_seconds: How long a message id is remembered
            max_size: Maximum remembered ids; oldest are evicted first
        """
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._seen: "OrderedDict[str, float]" = OrderedDict()
        self._lock = threading.Lock()

    def is_duplicate(self, message_id: Optional[str], sender: str = "") -> bool:
        """
        Check a message id and remember it

        Messages without an id are never treated as duplicates.
        """
        return not self.remember(message_id, sender)

    def seen(self, message_id: Optional[str], sender: str = "") -> bool:
        """Check a message id without remembering it"""
        if not message_id:
            return False

        with self._lock:
            self._expire(time.monotonic())
            return f"{sender}:{message_id}" in self._seen

    def remember(self, message_id: Optional[str], sender: str = "") -> bool:
        """
        Record a message id as accepted

        Returns:
            False if the id was already remembered, True otherwise
        """
        if not message_id:
            return True

        key = f"{sender}:{message_id}"
        now = time.monotonic()

        with self._lock:
            self._expire(now)
            if key in self._seen:
                logger.debug(f"Duplicate webhook message: {key}")
                return False

            while len(self._seen) >= self.max_size:
                self._seen.popitem(last=False)
            self._seen[key] = now
            return True

    def _expire(self, now: float):
        cutoff = now - self.ttl_seconds
        while self._seen:
            oldest = next(iter(self._seen.values()))
            if oldest >= cutoff:
                break
            self._seen.popitem(last=False)

    def clear(self):
        with self._lock:
            self._seen.clear()

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._seen)
