"""In-memory response cache with per-endpoint freshness windows."""

import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

MAX_ENTRIES = 100

# Freshness windows in seconds
REPOS_TTL = 5 * 60
USER_TTL = 10 * 60
DEFAULT_TTL = 2 * 60


def freshness_window(endpoint: str) -> float:
    """How long a cached response for this endpoint stays valid."""
    if "/repos" in endpoint:
        return REPOS_TTL
    if "/user" in endpoint:
        return USER_TTL
    return DEFAULT_TTL


def cache_key(method: str, url: str) -> str:
    return f"{method.upper()}:{url}"


@dataclass(frozen=True)
class CachedEntry:
    key: str
    endpoint: str
    payload: Any
    stored_at: float


class ResponseCache:
    """Bounded cache of successful GET responses, evicting oldest-inserted first."""

    def __init__(self, max_entries: int = MAX_ENTRIES, clock: Callable[[], float] = time.time):
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, CachedEntry] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0

    def __len__(self) -> int:
        return len(self._entries)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def get(self, key: str) -> Any | None:
        """Return the cached payload if still fresh, else None."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() - entry.stored_at >= freshness_window(entry.endpoint):
                del self._entries[key]
                return None
            self.hits += 1
            return entry.payload

    def set(self, key: str, endpoint: str, payload: Any) -> None:
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Evicted cache entry %s", evicted)
            self._entries[key] = CachedEntry(key, endpoint, payload, self._clock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.info("GitHub API cache cleared")
