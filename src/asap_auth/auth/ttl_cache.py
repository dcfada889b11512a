import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class CachedEntry:
    """Value stored in the cache together with its insertion time"""

    key: str
    value: Any
    inserted_at: float
    ttl: float = field(default=0.0)

    def is_expired(self, now: float) -> bool:
        """Check if the entry outlived its TTL"""
        return now - self.inserted_at >= self.ttl


class TTLCache:
    """
    Key/value cache with lazy per-entry expiry

    Expiry is evaluated on read against the injected clock; nothing runs in
    the background. Writes replace the whole entry, so concurrent writers
    simply race with last-write-wins.
    """

    def __init__(self, default_ttl: float, clock: Callable[[], float] = time.monotonic):
        if default_ttl <= 0:
            raise ValueError("TTL must be positive")
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, CachedEntry] = {}

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None

        if entry.is_expired(self._clock()):
            # Another writer may have replaced the entry meanwhile
            if self._entries.get(key) is entry:
                del self._entries[key]
            return None

        return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        self._entries[key] = CachedEntry(
            key=key,
            value=value,
            inserted_at=self._clock(),
            ttl=ttl if ttl is not None else self.default_ttl,
        )

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
