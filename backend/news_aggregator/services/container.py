"""
Wiring of the services shared by the API and the management CLI.
"""
import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import httpx
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from news_aggregator.config import Settings, get_settings
from news_aggregator.core.cache import ExpiringStore, MemoryStore
from news_aggregator.jobs.refresh import RefreshQueue
from news_aggregator.models.database import Database
from news_aggregator.services.article_store import ArticleStore
from news_aggregator.services.freshness import FreshnessOrchestrator
from news_aggregator.services.news_service import NewsService
from news_aggregator.services.preferences import PreferenceStore
from news_aggregator.services.providers import ProviderAggregator, RateLimiter
from news_aggregator.services.sources import SourceRepository


@dataclass
class AppServices:
    settings: Settings
    database: Database
    store: ExpiringStore
    rate_limiter: RateLimiter
    sources: SourceRepository
    preferences: PreferenceStore
    article_store: ArticleStore
    aggregator: ProviderAggregator
    refresh_queue: RefreshQueue
    orchestrator: FreshnessOrchestrator
    news: NewsService


def build_services(
    database: Database,
    settings: Optional[Settings] = None,
    store: Optional[ExpiringStore] = None,
    client: Optional[httpx.AsyncClient] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    scheduler: Optional[AsyncIOScheduler] = None,
) -> AppServices:
    """Build every service over one database and one expiring store."""
    settings = settings or get_settings()
    store = store or MemoryStore()
    session_factory = database.async_session

    rate_limiter = RateLimiter(store, sleep=sleep)
    sources = SourceRepository(session_factory)
    preferences = PreferenceStore(session_factory)
    article_store = ArticleStore(session_factory, sources)
    aggregator = ProviderAggregator(
        rate_limiter,
        settings=settings,
        client=client,
        source_lookup=sources.get_source_id_by_name,
    )
    refresh_queue = RefreshQueue(aggregator, article_store, store, settings=settings, scheduler=scheduler)
    orchestrator = FreshnessOrchestrator(store, aggregator, article_store, refresh_queue, settings=settings)

    return AppServices(
        settings=settings,
        database=database,
        store=store,
        rate_limiter=rate_limiter,
        sources=sources,
        preferences=preferences,
        article_store=article_store,
        aggregator=aggregator,
        refresh_queue=refresh_queue,
        orchestrator=orchestrator,
        news=NewsService(orchestrator, article_store, preferences, settings=settings),
    )
