"""Fixed-window rate limiting for comment writes.

Counters are keyed by ``kind:actor_key`` and reset once the window has
elapsed. ``InMemoryRateLimiter`` is process-local: counts are lost on
restart and only approximate across workers. ``RedisRateLimiter`` shares
counters through Redis and lets requests through if Redis is unreachable.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

import structlog
from redis.exceptions import RedisError


if TYPE_CHECKING:
    from redis.asyncio import Redis


logger = structlog.get_logger(__name__)

DEFAULT_WINDOW_SECONDS = 60


@dataclass(frozen=True)
class RateLimitResult:
    ok: bool
    remaining: int


class RateLimiter(Protocol):
    async def allow(self, kind: str, actor_key: str, limit: int) -> RateLimitResult: ...


@dataclass
class _Window:
    count: int
    reset_at: float


class InMemoryRateLimiter:
    """Process-local fixed-window counters."""

    def __init__(
        self,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._next_sweep = clock() + window_seconds

    async def allow(self, kind: str, actor_key: str, limit: int) -> RateLimitResult:
        key = f"{kind}:{actor_key}"
        now = self._clock()
        if now >= self._next_sweep:
            self._sweep(now)

        window = self._windows.get(key)
        if window is None or now >= window.reset_at:
            self._windows[key] = _Window(count=1, reset_at=now + self.window_seconds)
            return RateLimitResult(ok=True, remaining=limit - 1)

        if window.count >= limit:
            return RateLimitResult(ok=False, remaining=0)

        window.count += 1
        return RateLimitResult(ok=True, remaining=limit - window.count)

    def _sweep(self, now: float) -> None:
        """Drop expired windows, at most once per window length."""
        expired = [k for k, w in self._windows.items() if w.reset_at <= now]
        for k in expired:
            del self._windows[k]
        self._next_sweep = now + self.window_seconds

    def reset(self) -> None:
        self._windows.clear()


class RedisRateLimiter:
    """Shared fixed-window counters using INCR + EXPIRE."""

    def __init__(self, redis: "Redis", window_seconds: int = DEFAULT_WINDOW_SECONDS):
        self.redis = redis
        self.window_seconds = window_seconds

    async def allow(self, kind: str, actor_key: str, limit: int) -> RateLimitResult:
        key = f"ratelimit:{kind}:{actor_key}"
        try:
            pipe = self.redis.pipeline()
            pipe.incr(key)
            # Only the first hit of a window sets the expiry
            pipe.expire(key, self.window_seconds, nx=True)
            count, _ = await pipe.execute()
        except RedisError as e:
            logger.warning("rate_limit_backend_failed", kind=kind, error=str(e))
            return RateLimitResult(ok=True, remaining=limit)

        count = int(count)
        if count > limit:
            return RateLimitResult(ok=False, remaining=0)
        return RateLimitResult(ok=True, remaining=limit - count)
