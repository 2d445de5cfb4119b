"""
Rate limiting for provider requests.

Each provider has a call budget (per day, per minute, per second). The
counters live in the shared expiring store so every worker that points at
the same store sees the same budget.

The policy is fail-soft: once any budget is spent, calls are skipped
rather than queued. Calls that do go out first sleep a throttle delay
derived from the tightest per-second or per-minute cap. That delay is
awaited in whatever context is refreshing (a request handler or a
background job) and adds directly to its latency.
"""

import asyncio
from collections import defaultdict
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import structlog

from news_aggregator.core.cache import ExpiringStore
from news_aggregator.core.dates import seconds_until_end_of_day
from news_aggregator.core.exceptions import RateLimitExceeded

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RateLimitPolicy:
    """Call budget for one provider. None means no cap for that window."""
    daily: Optional[int] = None
    per_minute: Optional[int] = None
    per_second: Optional[int] = None

    @property
    def throttle_seconds(self) -> float:
        """Delay that spreads calls evenly across the tightest short window."""
        delays = [0.0]
        if self.per_second:
            delays.append(1.0 / self.per_second)
        if self.per_minute:
            delays.append(60.0 / self.per_minute)
        return max(delays)


class RateLimiter:
    """
    Per-provider budget enforcement over an ExpiringStore.

    Features:
    - Daily, per-minute and per-second caps, any subset per provider
    - Atomic check-and-increment per provider
    - Mandatory throttle delay before each permitted call
    """

    # Published free-tier limits
    DEFAULT_POLICIES = {
        "newsapi": RateLimitPolicy(daily=100),
        "guardian": RateLimitPolicy(daily=500, per_second=1),
        "nyt": RateLimitPolicy(daily=500, per_minute=5),
    }

    WINDOWS = ("daily", "minute", "second")

    def __init__(
        self,
        store: ExpiringStore,
        policies: Optional[dict[str, RateLimitPolicy]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.store = store
        self._policies: dict[str, RateLimitPolicy] = dict(self.DEFAULT_POLICIES)
        if policies:
            self._policies.update(policies)
        self._sleep = sleep
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def set_policy(self, provider: str, policy: RateLimitPolicy):
        """Set a custom policy for a provider."""
        self._policies[provider] = policy

    def get_policy(self, provider: str) -> RateLimitPolicy:
        """Get the policy for a provider (no caps if unknown)."""
        return self._policies.get(provider, RateLimitPolicy())

    @staticmethod
    def counter_key(window: str, provider: str) -> str:
        return f"rate_limit_{window}_{provider}"

    def _caps(self, provider: str) -> list[tuple[str, int, float]]:
        """(window, cap, ttl) for every capped window of a provider."""
        policy = self.get_policy(provider)
        caps = []
        if policy.daily is not None:
            caps.append(("daily", policy.daily, seconds_until_end_of_day()))
        if policy.per_minute is not None:
            caps.append(("minute", policy.per_minute, 60))
        if policy.per_second is not None:
            caps.append(("second", policy.per_second, 1))
        return caps

    async def check(self, provider: str) -> None:
        """Raise RateLimitExceeded if any window's budget is spent."""
        for window, cap, _ in self._caps(provider):
            count = int(await self.store.get(self.counter_key(window, provider), 0))
            if count >= cap:
                raise RateLimitExceeded(provider, window, cap, count)

    async def acquire(self, provider: str) -> bool:
        """
        Reserve one call for a provider.

        Returns False (and logs a warning) when the provider is limited;
        the caller must then skip the call entirely. Returns True after
        the counters are incremented and the throttle delay has elapsed.
        """
        async with self._locks[provider]:
            try:
                await self.check(provider)
            except RateLimitExceeded as e:
                logger.warning(
                    "Request blocked due to rate limiting",
                    provider=provider,
                    window=e.window,
                    limit=e.details["limit"],
                    count=e.details["count"],
                )
                return False

            for window, _, ttl in self._caps(provider):
                await self.store.incr(self.counter_key(window, provider), ttl)

            # Held under the lock so concurrent callers are spaced one after another
            delay = self.get_policy(provider).throttle_seconds
            if delay > 0:
                logger.debug("Throttling request", provider=provider, delay_seconds=delay)
                await self._sleep(delay)
        return True

    async def get_status(self, provider: str) -> dict:
        """Get current counter values for a provider."""
        policy = self.get_policy(provider)
        status = {"provider": provider}
        for window, cap in zip(self.WINDOWS, (policy.daily, policy.per_minute, policy.per_second)):
            count = int(await self.store.get(self.counter_key(window, provider), 0))
            status[window] = {
                "limit": cap,
                "used": count,
                "available": None if cap is None else max(0, cap - count),
            }
        return status

    async def get_all_status(self) -> list[dict]:
        """Get status for every provider with a policy."""
        return [await self.get_status(p) for p in sorted(self._policies)]
