# =============================================================================
# Unit Tests — Rate Limiter
# =============================================================================

from __future__ import annotations

import threading
from unittest.mock import AsyncMock, MagicMock, patch

from conftest import _run

from bizplan.config import RateLimitRule
from bizplan.services.rate_limiter import (
    RedisRateLimiter,
    SlidingWindowRateLimiter,
    create_rate_limiter,
)

RULES = {
    "default": RateLimitRule(max_requests=3, window_seconds=60),
    "chat": RateLimitRule(max_requests=2, window_seconds=10),
}


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestSlidingWindow:
    def test_rejects_request_over_limit(self):
        limiter = SlidingWindowRateLimiter(RULES, clock=FakeClock())
        decisions = [limiter.check("s1", "chat") for _ in range(3)]
        assert [d.allowed for d in decisions] == [True, True, False]
        assert decisions[1].remaining == 0
        assert decisions[2].retry_after == 10

    def test_accepts_again_after_window(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(RULES, clock=clock)
        limiter.check("s1", "chat")
        clock.now += 4
        limiter.check("s1", "chat")
        assert not limiter.check("s1", "chat").allowed

        clock.now += 6.5  # first hit leaves the window
        decision = limiter.check("s1", "chat")
        assert decision.allowed
        assert decision.remaining == 0

    def test_rejections_are_not_counted(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(RULES, clock=clock)
        for _ in range(10):
            limiter.check("s1", "chat")
        clock.now += 10.5
        assert limiter.check("s1", "chat").allowed

    def test_identifiers_and_categories_are_independent(self):
        limiter = SlidingWindowRateLimiter(RULES, clock=FakeClock())
        limiter.check("s1", "chat")
        limiter.check("s1", "chat")
        assert limiter.check("s2", "chat").allowed
        assert limiter.check("s1", "default").allowed

    def test_unknown_category_uses_default_rule(self):
        limiter = SlidingWindowRateLimiter(RULES, clock=FakeClock())
        decision = limiter.check("s1", "market_analysis")
        assert decision.limit == 3
        assert limiter.usage("s1", "default") == 1

    def test_reset_and_cleanup(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(RULES, clock=clock)
        limiter.check("s1", "chat")
        limiter.check("s1", "chat")
        limiter.reset("s1", "chat")
        assert limiter.check("s1", "chat").allowed
        clock.now += 100
        assert limiter.cleanup() == 1

    def test_check_forgets_idle_identifiers(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(
            {"default": RateLimitRule(max_requests=5, window_seconds=1)}, clock=clock,
        )
        for i in range(1000):
            assert limiter.check(f"session-{i}").allowed
            clock.now += 5
        assert limiter.usage("session-999") == 0
        assert len(limiter._hits) <= 2

    def test_sweep_waits_for_interval(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(RULES, clock=clock, sweep_interval=120)
        limiter.check("s1", "chat")
        clock.now += 30
        limiter.check("s2", "chat")
        assert limiter.usage("s1", "chat") == 0
        assert len(limiter._hits) == 2

        clock.now += 100
        limiter.check("s3", "chat")
        assert list(limiter._hits) == [("chat", "s3")]

    def test_thread_safety(self):
        limiter = SlidingWindowRateLimiter(
            {"default": RateLimitRule(max_requests=50, window_seconds=60)}, clock=FakeClock(),
        )
        allowed = []

        def worker():
            for _ in range(20):
                allowed.append(limiter.check("shared").allowed)

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert allowed.count(True) == 50

    def test_retry_after_header_rounds_up(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(RULES, clock=clock)
        limiter.check("s1", "chat")
        limiter.check("s1", "chat")
        clock.now += 2.5
        assert limiter.check("s1", "chat").retry_after_header() == "8"


class TestRedisRateLimiter:
    def _limiter_with_pipeline(self, results):
        pipe = MagicMock()
        pipe.execute = AsyncMock(side_effect=results)
        client = MagicMock()
        client.pipeline.return_value = pipe
        limiter = RedisRateLimiter("redis://localhost:6379/0", RULES)
        limiter._client = client
        return limiter, pipe

    def test_allows_under_limit(self):
        limiter, pipe = self._limiter_with_pipeline([[0, 1, [("m", 1.0)]], [1, True]])
        decision = _run(limiter.acheck("s1", "chat"))
        assert decision.allowed
        assert decision.remaining == 0
        pipe.zadd.assert_called_once()

    def test_rejects_at_limit(self):
        limiter, pipe = self._limiter_with_pipeline([[0, 2, [("m", 1.0)]]])
        with patch("bizplan.services.rate_limiter.time.time", return_value=5.0):
            decision = _run(limiter.acheck("s1", "chat"))
        assert not decision.allowed
        assert decision.retry_after == 6.0
        pipe.zadd.assert_not_called()

    def test_redis_failure_allows_request(self):
        limiter, _ = self._limiter_with_pipeline(ConnectionError("refused"))
        assert _run(limiter.acheck("s1", "chat")).allowed


class TestFactory:
    def test_in_memory_without_url(self):
        assert isinstance(create_rate_limiter(RULES), SlidingWindowRateLimiter)

    def test_redis_with_url(self):
        assert isinstance(create_rate_limiter(RULES, "redis://r:6379/0"), RedisRateLimiter)
