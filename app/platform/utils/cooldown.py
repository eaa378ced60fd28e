"""
Short per-key cooldown windows used to suppress duplicate OTP sends.

The store only remembers when a key was last touched. Callers decide the
window they care about; entries disappear after their TTL.
"""

import math
import time
from abc import ABC, abstractmethod
from threading import Lock
from typing import Callable, Dict, Optional, Tuple

from app.platform.config import settings
from app.platform.logger import get_logger

logger = get_logger(__name__)


class CooldownStore(ABC):
    @abstractmethod
    async def last_touched(self, key: str) -> Optional[float]:
        ...

    @abstractmethod
    async def touch(self, key: str, ttl_seconds: int) -> None:
        ...

    @abstractmethod
    async def clear(self, key: str) -> None:
        ...

    def now(self) -> float:
        return time.time()

    async def remaining(self, key: str, window_seconds: int) -> int:
        """Whole seconds left in the window for key, 0 when a new send is allowed."""
        last = await self.last_touched(key)
        if last is None:
            return 0
        elapsed = self.now() - last
        if elapsed >= window_seconds:
            return 0
        return max(1, math.ceil(window_seconds - elapsed))


class InMemoryCooldownStore(CooldownStore):
    """Process-local store. Entries expire lazily on read."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._entries: Dict[str, Tuple[float, float]] = {}
        self._lock = Lock()

    def now(self) -> float:
        return self._clock()

    async def last_touched(self, key: str) -> Optional[float]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            touched_at, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return touched_at

    async def touch(self, key: str, ttl_seconds: int) -> None:
        now = self._clock()
        with self._lock:
            self._entries[key] = (now, now + ttl_seconds)

    async def clear(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)


class RedisCooldownStore(CooldownStore):
    """Store shared between processes, backed by Redis key expiry."""

    def __init__(self, redis, prefix: str = "cooldown:"):
        self.redis = redis
        self.prefix = prefix

    async def last_touched(self, key: str) -> Optional[float]:
        value = await self.redis.get(f"{self.prefix}{key}")
        return float(value) if value is not None else None

    async def touch(self, key: str, ttl_seconds: int) -> None:
        await self.redis.set(f"{self.prefix}{key}", str(self.now()), ex=ttl_seconds)

    async def clear(self, key: str) -> None:
        await self.redis.delete(f"{self.prefix}{key}")


_store: Optional[CooldownStore] = None


def get_cooldown_store() -> CooldownStore:
    global _store
    if _store is None:
        if settings.COOLDOWN_BACKEND == "redis":
            from app.platform.cache.redis import get_redis

            logger.info("Using Redis cooldown store")
            _store = RedisCooldownStore(get_redis())
        else:
            _store = InMemoryCooldownStore()
    return _store
