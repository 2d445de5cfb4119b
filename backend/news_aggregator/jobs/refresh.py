"""
Background refresh of stale query results.

A request that finds stored but stale results is answered immediately; the
catch-up happens here. Each job refreshes one clock key, with a bounded
number of attempts and a bounded run time. Whatever happens, the job never
raises: the caller already got a valid answer.
"""
import asyncio
from typing import Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy.exc import SQLAlchemyError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from news_aggregator.config import Settings, get_settings
from news_aggregator.core.cache import ExpiringStore
from news_aggregator.core.dates import utcnow
from news_aggregator.core.exceptions import StorageError
from news_aggregator.models.domain import FetchMode, NewsFilters, ProviderQuery
from news_aggregator.services.article_store import ArticleStore
from news_aggregator.services.freshness import FetchClock, refresh_articles
from news_aggregator.services.providers.aggregator import ProviderAggregator

logger = structlog.get_logger(__name__)

# Infrastructure failures worth another attempt; providers never raise
RETRYABLE_ERRORS = (StorageError, SQLAlchemyError, asyncio.TimeoutError)


class BackgroundRefreshJob:
    """Refresh one (filters, mode) combination and advance its fetch clock."""

    def __init__(
        self,
        filters: NewsFilters,
        mode: FetchMode,
        clock_key: str,
        freshness_minutes: int,
        aggregator: ProviderAggregator,
        article_store: ArticleStore,
        clock: FetchClock,
        tries: int = 3,
        timeout_seconds: float = 300.0,
        page_size: int = 20,
        wait: Optional[wait_base] = None,
    ):
        self.filters = filters
        self.mode = mode
        self.clock_key = clock_key
        self.freshness_minutes = freshness_minutes
        self.aggregator = aggregator
        self.article_store = article_store
        self.clock = clock
        self.tries = tries
        self.timeout_seconds = timeout_seconds
        self.page_size = page_size
        self.wait = wait or wait_exponential(multiplier=1, min=2, max=30)

    @property
    def job_id(self) -> str:
        return f"refresh:{self.clock_key}"

    async def _refresh_once(self) -> int:
        query = ProviderQuery(filters=self.filters, page=1, page_size=self.page_size)
        result = await refresh_articles(self.aggregator, self.article_store, self.mode, query)
        return result.articles

    async def run(self) -> dict:
        """Execute the refresh. Returns run statistics; never raises."""
        start_time = utcnow()
        stats = {
            "clock_key": self.clock_key,
            "mode": self.mode.value,
            "attempts": 0,
            "articles": 0,
            "success": False,
            "error": None,
        }
        logger.info("Starting background refresh", clock_key=self.clock_key, mode=self.mode.value)

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.tries),
                wait=self.wait,
                retry=retry_if_exception_type(RETRYABLE_ERRORS),
                reraise=True,
            ):
                with attempt:
                    stats["attempts"] = attempt.retry_state.attempt_number
                    if stats["attempts"] > 1:
                        logger.warning(
                            "Retrying background refresh",
                            clock_key=self.clock_key,
                            attempt=stats["attempts"],
                        )
                    stats["articles"] = await asyncio.wait_for(
                        self._refresh_once(), timeout=self.timeout_seconds
                    )

            await self.clock.touch(self.clock_key, self.freshness_minutes)
            stats["success"] = True

        except Exception as e:
            stats["error"] = str(e) or type(e).__name__
            logger.error(
                "Background refresh failed",
                clock_key=self.clock_key,
                attempts=stats["attempts"],
                error=stats["error"],
                error_type=type(e).__name__,
            )

        stats["duration_seconds"] = (utcnow() - start_time).total_seconds()
        if stats["success"]:
            logger.info("Background refresh completed", **stats)
        return stats


class RefreshQueue:
    """
    One-shot refresh jobs on an APScheduler AsyncIOScheduler.

    Jobs are keyed by clock key, so queueing a refresh for a key that already
    has one pending replaces it instead of adding a second.
    """

    def __init__(
        self,
        aggregator: ProviderAggregator,
        article_store: ArticleStore,
        store: ExpiringStore,
        settings: Optional[Settings] = None,
        scheduler: Optional[AsyncIOScheduler] = None,
    ):
        self.aggregator = aggregator
        self.article_store = article_store
        self.clock = FetchClock(store)
        self.settings = settings or get_settings()
        self.scheduler = scheduler or AsyncIOScheduler(timezone="UTC")

    def start(self, paused: bool = False):
        if not self.scheduler.running:
            self.scheduler.start(paused=paused)
            logger.info("Refresh queue started", paused=paused)

    def shutdown(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Refresh queue stopped")

    def build_job(
        self,
        filters: NewsFilters,
        mode: FetchMode,
        clock_key: str,
        freshness_minutes: int,
    ) -> BackgroundRefreshJob:
        return BackgroundRefreshJob(
            filters=filters,
            mode=mode,
            clock_key=clock_key,
            freshness_minutes=freshness_minutes,
            aggregator=self.aggregator,
            article_store=self.article_store,
            clock=self.clock,
            tries=self.settings.refresh_job_tries,
            timeout_seconds=self.settings.refresh_job_timeout_seconds,
            page_size=self.settings.default_page_size,
        )

    def enqueue(self, job: BackgroundRefreshJob):
        """Queue a job to run as soon as possible, replacing any pending job for its key."""
        self.scheduler.add_job(
            job.run,
            trigger="date",
            id=job.job_id,
            name=f"Refresh {job.mode.value}",
            replace_existing=True,
            misfire_grace_time=None,
        )
        logger.debug("Enqueued refresh job", job_id=job.job_id)

    def schedule(
        self,
        filters: NewsFilters,
        mode: FetchMode,
        clock_key: str,
        freshness_minutes: int,
    ) -> None:
        self.enqueue(self.build_job(filters, mode, clock_key, freshness_minutes))

    def pending(self) -> list[str]:
        return [job.id for job in self.scheduler.get_jobs()]
