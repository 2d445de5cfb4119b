"""
Freshness Orchestrator - decides whether a query is served from storage,
refreshed inline, or refreshed in the background.

    stored page + fetch clock
            │
     fresh ─┼─► serve stored page (no provider calls)
            │
     stale, nothing stored ─► refresh now, then serve
            │
     stale, something stored ─► serve stored page, queue one refresh job
"""

import hashlib
import json
from datetime import datetime, timedelta
from typing import Optional, Protocol

import structlog

from news_aggregator.config import Settings, get_settings
from news_aggregator.core.cache import ExpiringStore
from news_aggregator.core.dates import utcnow
from news_aggregator.models.domain import Article, FetchMode, NewsFilters, Page, ProviderQuery
from news_aggregator.services.article_store import ArticleStore, UpsertResult
from news_aggregator.services.providers.aggregator import ProviderAggregator

logger = structlog.get_logger(__name__)

CLOCK_PREFIX = "news_fetch:"


def clock_key(mode: FetchMode, filters: NewsFilters) -> str:
    """Fetch clock key for a query. Pagination does not take part."""
    payload = json.dumps({"mode": mode.value, **filters.clock_fields()}, sort_keys=True)
    return CLOCK_PREFIX + hashlib.md5(payload.encode("utf-8")).hexdigest()


class FetchClock:
    """Last successful fetch time per clock key, held in the expiring store."""

    def __init__(self, store: ExpiringStore):
        self.store = store

    async def last_fetch(self, key: str) -> Optional[datetime]:
        value = await self.store.get(key)
        if not value:
            return None
        try:
            return datetime.fromisoformat(value)
        except (TypeError, ValueError):
            logger.warning("Unreadable fetch clock entry", clock_key=key, value=value)
            return None

    async def touch(self, key: str, window_minutes: int, now: Optional[datetime] = None) -> datetime:
        now = now or utcnow()
        await self.store.set(key, now.isoformat(), ttl=window_minutes * 60)
        return now

    async def is_stale(self, key: str, window_minutes: int, now: Optional[datetime] = None) -> bool:
        last = await self.last_fetch(key)
        if last is None:
            return True
        now = now or utcnow()
        return last < now - timedelta(minutes=window_minutes)


class RefreshScheduler(Protocol):
    """Anything that can queue a deferred refresh for a clock key."""

    def schedule(
        self,
        filters: NewsFilters,
        mode: FetchMode,
        clock_key: str,
        freshness_minutes: int,
    ) -> None:
        ...


async def refresh_articles(
    aggregator: ProviderAggregator,
    article_store: ArticleStore,
    mode: FetchMode,
    query: ProviderQuery,
) -> UpsertResult:
    """One provider pass stored into the article store. StorageError propagates."""
    aggregate = await aggregator.fetch(mode, query)
    return await article_store.upsert(aggregate.articles)


class FreshnessOrchestrator:
    """Serve, block or defer, per query."""

    def __init__(
        self,
        store: ExpiringStore,
        aggregator: ProviderAggregator,
        article_store: ArticleStore,
        refresh_queue: Optional[RefreshScheduler] = None,
        settings: Optional[Settings] = None,
    ):
        self.clock = FetchClock(store)
        self.aggregator = aggregator
        self.article_store = article_store
        self.refresh_queue = refresh_queue
        self.settings = settings or get_settings()

    def freshness_minutes(self, mode: FetchMode) -> int:
        if mode == FetchMode.SEARCH:
            return self.settings.freshness_search_minutes
        return self.settings.freshness_headlines_minutes

    async def get_page(
        self,
        mode: FetchMode,
        filters: NewsFilters,
        page: int = 1,
        page_size: int = 20,
    ) -> Page[Article]:
        key = clock_key(mode, filters)
        window = self.freshness_minutes(mode)

        stored = await self.article_store.search(filters, page, page_size)

        if not await self.clock.is_stale(key, window):
            logger.debug("Serving fresh results", clock_key=key, mode=mode.value, total=stored.total)
            return stored

        if stored.total == 0:
            logger.info("No stored results, refreshing from providers", clock_key=key, mode=mode.value)
            result = await refresh_articles(
                self.aggregator,
                self.article_store,
                mode,
                ProviderQuery(filters=filters, page=page, page_size=page_size),
            )
            # Written even when nothing came back so failing providers are not hammered
            await self.clock.touch(key, window)
            logger.info("Inline refresh finished", clock_key=key, stored=result.articles)
            return await self.article_store.search(filters, page, page_size)

        if self.refresh_queue is not None:
            self.refresh_queue.schedule(filters, mode, key, window)
            logger.info("Queued background refresh", clock_key=key, mode=mode.value, total=stored.total)
        else:
            logger.warning("Results are stale but no refresh queue is configured", clock_key=key)
        return stored
