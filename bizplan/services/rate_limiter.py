# =============================================================================
# Rate Limiter — Per-Identifier Sliding Window, by Category
# =============================================================================
#
# Each (category, identifier) pair keeps the timestamps of its accepted
# requests inside the category's window. A request is accepted while fewer
# than `max_requests` timestamps remain in the window; rejected requests
# are not recorded, so a client that backs off recovers on schedule.
#
# Categories (from settings.rate_limits): default, chat, business_plan,
# market_analysis. An unknown category uses "default".
#
# Two backends:
#   - SlidingWindowRateLimiter: in-process, guarded by a threading.Lock
#   - RedisRateLimiter: Redis sorted sets (ZSET), shared across workers.
#     If Redis is unavailable the request is allowed and a warning is
#     logged, so a Redis outage never blocks the API.
# =============================================================================

from __future__ import annotations

import logging
import math
import threading
import time
import uuid
from collections import deque
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from bizplan.config import RateLimitRule

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "default"


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after: float   # Seconds until a request would be accepted; 0 if allowed
    remaining: int       # Requests left in the current window
    limit: int

    def retry_after_header(self) -> str:
        return str(max(1, math.ceil(self.retry_after)))


def _rule_for(rules: Mapping[str, RateLimitRule], category: str) -> tuple[str, RateLimitRule]:
    if category in rules:
        return category, rules[category]
    return DEFAULT_CATEGORY, rules.get(
        DEFAULT_CATEGORY, RateLimitRule(max_requests=10, window_seconds=60),
    )


class SlidingWindowRateLimiter:
    """
    In-process limiter; safe to share between threads and coroutines.

    Identifiers with no hits left in their window are swept from memory
    at most once per `sweep_interval` seconds (default: the longest rule
    window), from inside check().
    """

    def __init__(
        self,
        rules: Mapping[str, RateLimitRule],
        clock: Callable[[], float] = time.monotonic,
        sweep_interval: float | None = None,
    ) -> None:
        self._rules = dict(rules)
        self._clock = clock
        self._lock = threading.Lock()
        self._hits: dict[tuple[str, str], deque[float]] = {}
        self._sweep_interval = (
            sweep_interval if sweep_interval is not None
            else max((r.window_seconds for r in self._rules.values()), default=60.0)
        )
        self._last_sweep = clock()

    def check(self, identifier: str, category: str = DEFAULT_CATEGORY) -> RateLimitDecision:
        """Record and accept the request if within limits; otherwise reject."""
        category, rule = _rule_for(self._rules, category)
        key = (category, identifier)
        with self._lock:
            now = self._clock()
            if now - self._last_sweep >= self._sweep_interval:
                self._sweep(now)
            hits = self._hits.setdefault(key, deque())
            cutoff = now - rule.window_seconds
            while hits and hits[0] <= cutoff:
                hits.popleft()

            if len(hits) >= rule.max_requests:
                retry_after = hits[0] + rule.window_seconds - now
                logger.warning(
                    "Rate limit exceeded: category=%s identifier=%s retry_after=%.1fs",
                    category, identifier, retry_after,
                )
                return RateLimitDecision(
                    allowed=False, retry_after=retry_after, remaining=0, limit=rule.max_requests,
                )

            hits.append(now)
            return RateLimitDecision(
                allowed=True,
                retry_after=0.0,
                remaining=rule.max_requests - len(hits),
                limit=rule.max_requests,
            )

    async def acheck(self, identifier: str, category: str = DEFAULT_CATEGORY) -> RateLimitDecision:
        return self.check(identifier, category)

    def usage(self, identifier: str, category: str = DEFAULT_CATEGORY) -> int:
        """Accepted requests currently inside the window."""
        category, rule = _rule_for(self._rules, category)
        with self._lock:
            hits = self._hits.get((category, identifier))
            if not hits:
                return 0
            cutoff = self._clock() - rule.window_seconds
            return sum(1 for t in hits if t > cutoff)

    def reset(self, identifier: str, category: str | None = None) -> None:
        """Forget an identifier's history, in one category or all."""
        with self._lock:
            for key in [k for k in self._hits if k[1] == identifier]:
                if category is None or key[0] == category:
                    del self._hits[key]
        logger.info("Rate limit reset: identifier=%s category=%s", identifier, category or "*")

    def cleanup(self) -> int:
        """Drop identifiers with no hits left in their window. Returns count removed."""
        with self._lock:
            return self._sweep(self._clock())

    def _sweep(self, now: float) -> int:
        # Caller holds self._lock
        removed = 0
        for key in list(self._hits):
            _, rule = _rule_for(self._rules, key[0])
            hits = self._hits[key]
            while hits and hits[0] <= now - rule.window_seconds:
                hits.popleft()
            if not hits:
                del self._hits[key]
                removed += 1
        self._last_sweep = now
        if removed:
            logger.debug("Rate limiter cleanup removed %d idle identifiers", removed)
        return removed


class RedisRateLimiter:
    """
    Redis-backed limiter for multi-process deployments.

    Check-then-add is two round trips, so concurrent requests from the same
    identifier may overshoot the limit by a small amount.
    """

    def __init__(self, url: str, rules: Mapping[str, RateLimitRule]) -> None:
        self._url = url
        self._rules = dict(rules)
        self._client = None

    def _get_client(self):
        """Lazily create and cache the async Redis client."""
        if self._client is None:
            import redis.asyncio as aioredis

            self._client = aioredis.from_url(self._url, decode_responses=True)
        return self._client

    async def acheck(self, identifier: str, category: str = DEFAULT_CATEGORY) -> RateLimitDecision:
        category, rule = _rule_for(self._rules, category)
        redis_key = f"ratelimit:{category}:{identifier}"
        try:
            r = self._get_client()
            now = time.time()
            pipe = r.pipeline()
            # Remove entries outside the window, then count and peek oldest
            pipe.zremrangebyscore(redis_key, 0, now - rule.window_seconds)
            pipe.zcard(redis_key)
            pipe.zrange(redis_key, 0, 0, withscores=True)
            _, count, oldest = await pipe.execute()

            if count >= rule.max_requests:
                oldest_ts = oldest[0][1] if oldest else now
                retry_after = max(0.0, oldest_ts + rule.window_seconds - now)
                logger.warning(
                    "Rate limit exceeded: category=%s identifier=%s retry_after=%.1fs",
                    category, identifier, retry_after,
                )
                return RateLimitDecision(
                    allowed=False, retry_after=retry_after, remaining=0, limit=rule.max_requests,
                )

            pipe = r.pipeline()
            pipe.zadd(redis_key, {f"{now}:{uuid.uuid4().hex}": now})
            # Set TTL to auto-cleanup
            pipe.expire(redis_key, int(rule.window_seconds) + 10)
            await pipe.execute()
            return RateLimitDecision(
                allowed=True,
                retry_after=0.0,
                remaining=rule.max_requests - count - 1,
                limit=rule.max_requests,
            )
        except Exception as e:
            # Redis unavailable: allow the request
            logger.warning(
                "Rate limiter unavailable (Redis error): %s. Allowing request through.", e,
            )
            return RateLimitDecision(
                allowed=True, retry_after=0.0, remaining=rule.max_requests, limit=rule.max_requests,
            )


RateLimiter = SlidingWindowRateLimiter | RedisRateLimiter


def create_rate_limiter(
    rules: Mapping[str, RateLimitRule], redis_url: str | None = None,
) -> RateLimiter:
    """Redis-backed when a URL is configured, in-process otherwise."""
    if redis_url:
        logger.info("Using Redis rate limiter at %s", redis_url)
        return RedisRateLimiter(redis_url, rules)
    return SlidingWindowRateLimiter(rules)
