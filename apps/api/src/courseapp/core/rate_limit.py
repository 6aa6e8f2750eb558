"""
Rate Limiting Module

Per-client fixed-window rate limiting with one policy per route class:

| policy     | window | limit | applies to                         |
|------------|--------|-------|------------------------------------|
| api        | 15 min | 100   | every /api route                   |
| auth       | 15 min | 5     | authentication endpoints           |
| submission | 60 min | 10    | public submission create           |
| admin      | 15 min | 50    | admin-authenticated mutations      |

Counters live behind the ``CounterStore`` interface. ``MemoryCounterStore``
keeps them in process memory (single instance deployments; running several
instances multiplies the effective limits by the instance count).
``RedisCounterStore`` shares them across instances.

The health check route is never rate limited.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from fastapi import Request, Response

from courseapp.core.config import settings
from courseapp.core.errors import RateLimitedError

logger = logging.getLogger(__name__)

EXEMPT_PATHS = frozenset({"/health"})


@dataclass(frozen=True)
class RateLimitPolicy:
    """A named request budget over a time window."""

    name: str
    limit: int
    window_seconds: int
    message: str = "Too many requests, please try again later."


API_POLICY = RateLimitPolicy("api", limit=100, window_seconds=15 * 60)
AUTH_POLICY = RateLimitPolicy(
    "auth",
    limit=5,
    window_seconds=15 * 60,
    message="Too many authentication attempts, please try again later.",
)
SUBMISSION_POLICY = RateLimitPolicy(
    "submission",
    limit=10,
    window_seconds=60 * 60,
    message="Too many submissions, please try again later.",
)
ADMIN_POLICY = RateLimitPolicy(
    "admin",
    limit=50,
    window_seconds=15 * 60,
    message="Too many admin requests, please try again later.",
)

POLICIES: dict[str, RateLimitPolicy] = {
    policy.name: policy for policy in (API_POLICY, AUTH_POLICY, SUBMISSION_POLICY, ADMIN_POLICY)
}


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a rate limit check."""

    allowed: bool
    limit: int
    remaining: int
    retry_after_seconds: int


class CounterStore(Protocol):
    """Storage for fixed-window request counters."""

    async def hit(self, key: str, window_seconds: int) -> tuple[int, int]:
        """
        Count one request against ``key``.

        Returns:
            Tuple of (count in the current window including this hit,
            seconds until the window resets)
        """
        ...

    async def reset(self) -> None:
        """Drop every counter."""
        ...


class MemoryCounterStore:
    """
    In-process counter store.

    Format: {key: (reset_at, count)}. There is no await between the
    read and the write, so each hit is atomic on the event loop.

    Expired counters are swept once the earliest window has ended, so the
    map only holds clients seen within the current windows.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._counters: dict[str, tuple[float, int]] = {}
        self._next_sweep = float("inf")

    @property
    def size(self) -> int:
        return len(self._counters)

    def _sweep(self, now: float) -> None:
        self._counters = {key: entry for key, entry in self._counters.items() if entry[0] > now}
        self._next_sweep = min((reset_at for reset_at, _ in self._counters.values()), default=float("inf"))

    async def hit(self, key: str, window_seconds: int) -> tuple[int, int]:
        now = self._clock()
        if now >= self._next_sweep:
            self._sweep(now)

        reset_at, count = self._counters.get(key, (now + window_seconds, 0))

        # Window elapsed: start a new one
        if now >= reset_at:
            reset_at, count = now + window_seconds, 0

        count += 1
        self._counters[key] = (reset_at, count)
        self._next_sweep = min(self._next_sweep, reset_at)

        retry_after = max(1, int(reset_at - now))
        return count, retry_after

    async def reset(self) -> None:
        self._counters.clear()
        self._next_sweep = float("inf")


class RedisCounterStore:
    """
    Redis-backed counter store shared by every API instance.

    Uses INCR + EXPIRE NX in one pipeline so the key expires exactly one
    window after its first hit.
    """

    def __init__(self, client, prefix: str = "rate_limit"):
        self._client = client
        self._prefix = prefix

    async def hit(self, key: str, window_seconds: int) -> tuple[int, int]:
        redis_key = f"{self._prefix}:{key}"

        pipe = self._client.pipeline()
        pipe.incr(redis_key)
        pipe.expire(redis_key, window_seconds, nx=True)
        pipe.ttl(redis_key)
        results = await pipe.execute()

        count = int(results[0])
        ttl = int(results[2])
        retry_after = ttl if ttl > 0 else window_seconds
        return count, retry_after

    async def reset(self) -> None:
        async for redis_key in self._client.scan_iter(match=f"{self._prefix}:*"):
            await self._client.delete(redis_key)


class RateLimiter:
    """Applies rate limit policies on top of a counter store."""

    def __init__(self, store: CounterStore):
        self.store = store

    async def check(self, key: str, policy: RateLimitPolicy) -> RateLimitDecision:
        """
        Count a request and decide whether it is allowed.

        Args:
            key: Client identity (usually the client address)
            policy: The policy to apply

        Returns:
            RateLimitDecision; never blocks or queues
        """
        count, retry_after = await self.store.hit(f"{policy.name}:{key}", policy.window_seconds)
        allowed = count <= policy.limit
        return RateLimitDecision(
            allowed=allowed,
            limit=policy.limit,
            remaining=max(0, policy.limit - count),
            retry_after_seconds=retry_after,
        )


# Global limiter, replaced at startup when the Redis backend is configured
_limiter = RateLimiter(MemoryCounterStore())


def get_rate_limiter() -> RateLimiter:
    """Get the process-wide rate limiter."""
    return _limiter


def configure_rate_limiter(store: CounterStore) -> RateLimiter:
    """Swap the counter store backing the process-wide limiter."""
    global _limiter
    _limiter = RateLimiter(store)
    logger.info(f"Rate limiter using {type(store).__name__}")
    return _limiter


def client_address(request: Request) -> str:
    """Best-effort client address for rate limit keys."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded and settings.trust_proxy_headers:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def enforce(request: Request, policy: RateLimitPolicy) -> RateLimitDecision | None:
    """
    Check ``policy`` for the calling client.

    Raises:
        RateLimitedError: When the policy's budget is exhausted (HTTP 429)
    """
    if request.url.path in EXEMPT_PATHS:
        return None

    client = client_address(request)
    decision = await get_rate_limiter().check(client, policy)

    if not decision.allowed:
        logger.warning(
            f"Rate limit '{policy.name}' exceeded for {client}: "
            f"{policy.limit}/{policy.window_seconds}s"
        )
        raise RateLimitedError(decision.retry_after_seconds, message=policy.message, limit=policy.limit)

    return decision


def rate_limit_headers(decision: RateLimitDecision) -> dict[str, str]:
    """Quota headers advertised on every limited response."""
    return {
        "RateLimit-Limit": str(decision.limit),
        "RateLimit-Remaining": str(decision.remaining),
        "RateLimit-Reset": str(decision.retry_after_seconds),
    }


def rate_limit(policy: RateLimitPolicy | str):
    """
    Build a FastAPI dependency enforcing a policy.

    Usage:
        @router.post("", dependencies=[Depends(rate_limit("submission"))])
        async def create(...):
            ...
    """
    resolved = POLICIES[policy] if isinstance(policy, str) else policy

    async def dependency(request: Request, response: Response) -> None:
        decision = await enforce(request, resolved)
        if decision is not None:
            # Later dependencies overwrite earlier ones, so the route policy wins
            response.headers.update(rate_limit_headers(decision))

    dependency.__name__ = f"rate_limit_{resolved.name}"
    return dependency


__all__ = [
    "RateLimitPolicy",
    "RateLimitDecision",
    "POLICIES",
    "API_POLICY",
    "AUTH_POLICY",
    "SUBMISSION_POLICY",
    "ADMIN_POLICY",
    "CounterStore",
    "MemoryCounterStore",
    "RedisCounterStore",
    "RateLimiter",
    "get_rate_limiter",
    "configure_rate_limiter",
    "client_address",
    "enforce",
    "rate_limit_headers",
    "rate_limit",
]
