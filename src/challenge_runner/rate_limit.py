from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable


@dataclass(slots=True)
class RateLimitBucket:
    """Request count for one key and client inside the current window.

    Example:
        ```python
        bucket = RateLimitBucket(count=1, reset_at=time.time() + 60)
        ```
    """

    count: int
    reset_at: float


@dataclass(frozen=True, slots=True)
class RateLimitDecision:
    """Outcome of one rate limit check.

    Example:
        ```python
        decision = RateLimitDecision(ok=False, remaining=0, retry_after_ms=1200)
        ```
    """

    ok: bool
    remaining: int
    retry_after_ms: int = 0


def client_ip(ip_like: str | None) -> str:
    """Return the first address of a forwarded-for style header.

    Example:
        ```python
        assert client_ip("203.0.113.9, 10.0.0.1") == "203.0.113.9"
        ```
    """
    if not ip_like:
        return "unknown"
    return ip_like.split(",")[0].strip() or "unknown"


class RateLimiter:
    """Fixed-window limiter keyed by action and client address.

    Expired buckets are replaced lazily on the next check for the same key.

    Example:
        ```python
        limiter = RateLimiter()
        decision = limiter.check(key="run", ip_like="203.0.113.9", limit=10, window_seconds=60)
        ```
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        """Initialize an empty limiter.

        Example:
            ```python
            limiter = RateLimiter(clock=time.monotonic)
            ```
        """
        self._clock = clock
        self._lock = threading.Lock()
        self._buckets: dict[str, RateLimitBucket] = {}

    def check(
        self,
        *,
        key: str,
        ip_like: str | None,
        limit: int,
        window_seconds: float,
    ) -> RateLimitDecision:
        """Count one request and decide whether it may proceed.

        Example:
            ```python
            decision = limiter.check(key="admin-questions", ip_like=None, limit=5, window_seconds=60)
            ```
        """
        if limit <= 0:
            raise ValueError("'limit' must be greater than zero")
        if window_seconds <= 0:
            raise ValueError("'window_seconds' must be greater than zero")

        bucket_key = f"{key}:{client_ip(ip_like)}"
        with self._lock:
            now = self._clock()
            current = self._buckets.get(bucket_key)

            if current is None or current.reset_at <= now:
                self._buckets[bucket_key] = RateLimitBucket(count=1, reset_at=now + window_seconds)
                return RateLimitDecision(ok=True, remaining=limit - 1)

            if current.count >= limit:
                retry_after_ms = max(1, int((current.reset_at - now) * 1000))
                return RateLimitDecision(ok=False, remaining=0, retry_after_ms=retry_after_ms)

            current.count += 1
            return RateLimitDecision(ok=True, remaining=limit - current.count)
