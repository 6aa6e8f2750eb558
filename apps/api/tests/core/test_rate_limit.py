"""
Unit tests for rate limiting.

These tests cover:
- Fixed-window counting in the in-memory store
- Redis-backed counting (pipeline INCR/EXPIRE/TTL)
- Policy decisions and the 429 error
- Client address resolution
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from courseapp.core.errors import RateLimitedError
from courseapp.core.rate_limit import (
    ADMIN_POLICY,
    API_POLICY,
    AUTH_POLICY,
    POLICIES,
    SUBMISSION_POLICY,
    MemoryCounterStore,
    RateLimiter,
    RateLimitPolicy,
    RedisCounterStore,
    client_address,
    configure_rate_limiter,
    enforce,
    rate_limit_headers,
)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def make_request(path: str = "/api/events", host: str = "10.0.0.1", headers: dict | None = None):
    return SimpleNamespace(
        url=SimpleNamespace(path=path),
        client=SimpleNamespace(host=host),
        headers=headers or {},
    )


class TestPolicies:
    """The four policies and their budgets."""

    def test_policy_budgets(self):
        assert (API_POLICY.limit, API_POLICY.window_seconds) == (100, 900)
        assert (AUTH_POLICY.limit, AUTH_POLICY.window_seconds) == (5, 900)
        assert (SUBMISSION_POLICY.limit, SUBMISSION_POLICY.window_seconds) == (10, 3600)
        assert (ADMIN_POLICY.limit, ADMIN_POLICY.window_seconds) == (50, 900)

    def test_policies_registered_by_name(self):
        assert set(POLICIES) == {"api", "auth", "submission", "admin"}


class TestMemoryCounterStore:
    """Tests for the in-process fixed window store."""

    @pytest.mark.asyncio
    async def test_counts_within_window(self):
        store = MemoryCounterStore(clock=FakeClock())

        counts = [(await store.hit("k", 60))[0] for _ in range(3)]

        assert counts == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_window_reset(self):
        """A new window starts once the old one has elapsed."""
        clock = FakeClock()
        store = MemoryCounterStore(clock=clock)

        await store.hit("k", 60)
        await store.hit("k", 60)
        clock.now += 60
        count, retry_after = await store.hit("k", 60)

        assert count == 1
        assert retry_after == 60

    @pytest.mark.asyncio
    async def test_retry_after_counts_down(self):
        clock = FakeClock()
        store = MemoryCounterStore(clock=clock)

        await store.hit("k", 60)
        clock.now += 45
        _, retry_after = await store.hit("k", 60)

        assert retry_after == 15

    @pytest.mark.asyncio
    async def test_keys_are_independent(self):
        store = MemoryCounterStore(clock=FakeClock())

        await store.hit("a", 60)
        count, _ = await store.hit("b", 60)

        assert count == 1

    @pytest.mark.asyncio
    async def test_reset_clears_counters(self):
        store = MemoryCounterStore(clock=FakeClock())
        await store.hit("k", 60)

        await store.reset()

        assert (await store.hit("k", 60))[0] == 1

    @pytest.mark.asyncio
    async def test_expired_counters_are_swept(self):
        """Clients that stopped calling do not stay in memory."""
        clock = FakeClock()
        store = MemoryCounterStore(clock=clock)
        for i in range(1000):
            await store.hit(f"10.0.{i // 256}.{i % 256}", 60)
        assert store.size == 1000

        clock.now += 61
        count, _ = await store.hit("10.9.9.9", 60)

        assert count == 1
        assert store.size == 1

    @pytest.mark.asyncio
    async def test_live_counters_survive_a_sweep(self):
        clock = FakeClock()
        store = MemoryCounterStore(clock=clock)
        await store.hit("short", 10)
        await store.hit("long", 3600)

        clock.now += 11
        await store.hit("other", 10)

        assert store.size == 2
        assert (await store.hit("long", 3600))[0] == 2


class TestRedisCounterStore:
    """Tests for the Redis-backed store."""

    @pytest.mark.asyncio
    async def test_hit_uses_pipeline(self, mock_redis):
        mock_redis.pipeline.return_value.execute.return_value = [3, True, 850]
        store = RedisCounterStore(mock_redis)

        count, retry_after = await store.hit("submission:1.2.3.4", 3600)

        assert (count, retry_after) == (3, 850)
        pipe = mock_redis.pipeline.return_value
        pipe.incr.assert_called_once_with("rate_limit:submission:1.2.3.4")
        pipe.expire.assert_called_once_with("rate_limit:submission:1.2.3.4", 3600, nx=True)
        pipe.ttl.assert_called_once_with("rate_limit:submission:1.2.3.4")

    @pytest.mark.asyncio
    async def test_missing_ttl_falls_back_to_window(self, mock_redis):
        mock_redis.pipeline.return_value.execute.return_value = [1, True, -1]
        store = RedisCounterStore(mock_redis)

        _, retry_after = await store.hit("k", 900)

        assert retry_after == 900


class TestRateLimiter:
    """Policy decisions."""

    @pytest.mark.asyncio
    async def test_eleventh_submission_is_denied(self):
        """Ten submissions in an hour pass, the eleventh does not."""
        limiter = RateLimiter(MemoryCounterStore(clock=FakeClock()))

        decisions = [await limiter.check("1.2.3.4", SUBMISSION_POLICY) for _ in range(11)]

        assert all(d.allowed for d in decisions[:10])
        assert not decisions[10].allowed
        assert decisions[9].remaining == 0

    @pytest.mark.asyncio
    async def test_policies_count_separately(self):
        limiter = RateLimiter(MemoryCounterStore(clock=FakeClock()))
        tiny = RateLimitPolicy("tiny", limit=1, window_seconds=60)

        await limiter.check("1.2.3.4", tiny)
        decision = await limiter.check("1.2.3.4", API_POLICY)

        assert decision.allowed


class TestEnforce:
    """Tests for the request-level check."""

    @pytest.mark.asyncio
    async def test_raises_rate_limited_with_retry_after(self):
        configure_rate_limiter(MemoryCounterStore(clock=FakeClock()))
        policy = RateLimitPolicy("tiny", limit=1, window_seconds=60, message="Slow down")
        request = make_request()

        await enforce(request, policy)
        with pytest.raises(RateLimitedError) as exc_info:
            await enforce(request, policy)

        assert exc_info.value.status_code == 429
        assert exc_info.value.retry_after_seconds == 60
        assert exc_info.value.message == "Slow down"
        assert exc_info.value.limit == 1

    @pytest.mark.asyncio
    async def test_health_is_exempt(self):
        policy = RateLimitPolicy("tiny", limit=1, window_seconds=60)
        request = make_request(path="/health")

        for _ in range(5):
            assert await enforce(request, policy) is None


    @pytest.mark.asyncio
    async def test_decision_headers(self):
        configure_rate_limiter(MemoryCounterStore(clock=FakeClock()))

        decision = await enforce(make_request(), SUBMISSION_POLICY)

        assert rate_limit_headers(decision) == {
            "RateLimit-Limit": "10",
            "RateLimit-Remaining": "9",
            "RateLimit-Reset": "3600",
        }


class TestClientAddress:
    """Tests for client address resolution."""

    def test_uses_peer_address(self):
        assert client_address(make_request(host="10.1.2.3")) == "10.1.2.3"

    def test_ignores_forwarded_header_by_default(self):
        request = make_request(host="10.1.2.3", headers={"x-forwarded-for": "203.0.113.9"})

        assert client_address(request) == "10.1.2.3"

    def test_uses_forwarded_header_behind_trusted_proxy(self):
        request = make_request(host="10.1.2.3", headers={"x-forwarded-for": "203.0.113.9, 10.0.0.1"})

        with patch("courseapp.core.rate_limit.settings") as mock_settings:
            mock_settings.trust_proxy_headers = True
            assert client_address(request) == "203.0.113.9"

    def test_unknown_without_peer(self):
        request = make_request()
        request.client = None

        assert client_address(request) == "unknown"


@pytest.fixture
def mock_redis():
    """Create a mock Redis client with a pipeline."""
    redis = AsyncMock()
    redis.pipeline = MagicMock()
    pipe = MagicMock()
    pipe.execute = AsyncMock()
    redis.pipeline.return_value = pipe
    return redis
