"""Tracks the server-reported GitHub rate limit quota."""

import logging
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

DEFAULT_REMAINING = 60
DEFAULT_RESET_WINDOW = 3600.0  # seconds

REMAINING_HEADER = "x-ratelimit-remaining"
RESET_HEADER = "x-ratelimit-reset"


@dataclass(frozen=True)
class RateLimitSnapshot:
    remaining: int
    reset_at: float  # unix timestamp
    is_limited: bool
    seconds_until_reset: float

    @property
    def reset_at_iso(self) -> str:
        return datetime.fromtimestamp(self.reset_at, tz=timezone.utc).isoformat()


def _parse_int(headers: Mapping[str, str], name: str) -> int | None:
    val = headers.get(name)
    if val is None:
        return None
    try:
        return int(val)
    except ValueError:
        return None


class RateLimitTracker:
    """Last-known rate limit state, updated from every HTTP response.

    The remaining count is never decremented locally; it only mirrors what the
    server last reported.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._lock = threading.Lock()
        self._remaining = DEFAULT_REMAINING
        self._reset_at = clock() + DEFAULT_RESET_WINDOW

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def reset_at(self) -> float:
        return self._reset_at

    def record_response_headers(self, headers: Mapping[str, str]) -> None:
        remaining = _parse_int(headers, REMAINING_HEADER)
        reset = _parse_int(headers, RESET_HEADER)
        with self._lock:
            self._remaining = max(0, remaining) if remaining is not None else DEFAULT_REMAINING
            if reset is not None:
                self._reset_at = float(reset)
            else:
                self._reset_at = self._clock() + DEFAULT_RESET_WINDOW
            logger.debug("Rate limit: %d remaining, resets at %s", self._remaining, self._reset_at)

    def is_limited(self) -> bool:
        with self._lock:
            return self._remaining <= 0 and self._clock() < self._reset_at

    def time_until_reset(self) -> float:
        """Seconds until the quota resets, 0 if already past."""
        with self._lock:
            return max(0.0, self._reset_at - self._clock())

    def snapshot(self) -> RateLimitSnapshot:
        with self._lock:
            now = self._clock()
            return RateLimitSnapshot(
                remaining=self._remaining,
                reset_at=self._reset_at,
                is_limited=self._remaining <= 0 and now < self._reset_at,
                seconds_until_reset=max(0.0, self._reset_at - now),
            )
