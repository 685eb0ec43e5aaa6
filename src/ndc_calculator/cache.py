"""Time-to-live cache for identity resolution results."""

import logging
import threading
import time
from collections.abc import Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

V = TypeVar("V")

DEFAULT_TTL_SECONDS = 60 * 60


class TTLCache(Generic[V]):
    """In-memory cache whose entries expire lazily on read.

    Entries are whole-value replacements, so concurrent writers can only
    overwrite each other, never corrupt an entry.

    Args:
        ttl_seconds: Lifetime of an entry.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, V]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> V | None:
        with self._lock:
            hit = self._entries.get(key)
            if hit is None:
                return None
            expires_at, value = hit
            if expires_at <= self._clock():
                self._entries.pop(key, None)
                logger.debug(f"Cache entry expired: {key}")
                return None
            return value

    def set(self, key: str, value: V) -> None:
        with self._lock:
            self._entries[key] = (self._clock() + self.ttl_seconds, value)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        """Number of entries that have not yet expired."""
        with self._lock:
            now = self._clock()
            return sum(
                1 for expires_at, _ in self._entries.values() if expires_at > now
            )
