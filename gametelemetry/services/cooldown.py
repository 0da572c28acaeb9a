"""Per-key alert cooldown tracking."""
import asyncio
from datetime import datetime, timedelta


class CooldownTracker:
    """
    Remembers when an alert was last sent per key and suppresses repeats
    inside the cooldown window.

    Each key has its own lock; callers hold it across check, delivery and
    ``mark_sent`` so concurrent evaluations for one key cannot both deliver.
    State is process-local and starts empty after a restart.
    """

    def __init__(self, cooldown: timedelta = timedelta(minutes=5)):
        self.cooldown = cooldown
        self._last_sent: dict[str, datetime] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def lock(self, key: str) -> asyncio.Lock:
        """Lock guarding check-then-act for ``key``."""
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def last_sent(self, key: str) -> datetime | None:
        return self._last_sent.get(key)

    def is_cooling(self, key: str, now: datetime) -> bool:
        last = self._last_sent.get(key)
        return last is not None and now - last < self.cooldown

    def mark_sent(self, key: str, now: datetime):
        self._last_sent[key] = now

    def reset(self):
        self._last_sent.clear()
        self._locks.clear()
