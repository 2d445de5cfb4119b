"""
News Service - the contract the HTTP layer and CLI build on.
"""
from typing import Optional

import structlog

from news_aggregator.config import Settings, get_settings
from news_aggregator.core.exceptions import NotFoundError, ValidationError
from news_aggregator.models.domain import Article, FetchMode, NewsFilters, Page
from news_aggregator.services.article_store import ArticleStore
from news_aggregator.services.freshness import FreshnessOrchestrator
from news_aggregator.services.preferences import PreferenceStore

logger = structlog.get_logger(__name__)


class NewsService:
    """Headlines, search and article lookups, with the global preference applied."""

    def __init__(
        self,
        orchestrator: FreshnessOrchestrator,
        article_store: ArticleStore,
        preferences: Optional[PreferenceStore] = None,
        settings: Optional[Settings] = None,
    ):
        self.orchestrator = orchestrator
        self.article_store = article_store
        self.preferences = preferences
        self.settings = settings or get_settings()

    def _page_size(self, page_size: Optional[int]) -> int:
        if page_size is None:
            return self.settings.default_page_size
        return max(1, min(page_size, self.settings.max_page_size))

    async def apply_preferences(self, filters: NewsFilters) -> NewsFilters:
        """
        Fill an unfiltered query from the saved preference.

        Any filter on the request disables the merge entirely. A failure to
        read the preference is logged and the query runs as given.
        """
        if self.preferences is None or not filters.is_empty():
            return filters

        try:
            preference = await self.preferences.load()
        except Exception as e:
            logger.warning("Could not load preferences", error=str(e))
            return filters

        if preference is None or not preference.has_preference():
            return filters

        logger.debug(
            "Applying preferences",
            source=preference.source,
            category=preference.category,
            author=preference.author,
        )
        return filters.model_copy(
            update={
                "source": preference.source,
                "category": preference.category,
                "author": preference.author,
            }
        )

    async def get_headlines(
        self,
        filters: Optional[NewsFilters] = None,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> Page[Article]:
        filters = await self.apply_preferences(filters or NewsFilters())
        return await self.orchestrator.get_page(
            FetchMode.HEADLINES, filters, max(1, page), self._page_size(page_size)
        )

    async def search_articles(
        self,
        filters: NewsFilters,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> Page[Article]:
        if not filters.keyword or not filters.keyword.strip():
            raise ValidationError(
                "A keyword is required to search articles",
                details={"field": "keyword"},
            )
        return await self.orchestrator.get_page(
            FetchMode.SEARCH, filters, max(1, page), self._page_size(page_size)
        )

    async def find_by_id(self, article_id: int) -> Article:
        article = await self.article_store.find_by_id(article_id)
        if article is None:
            raise NotFoundError("Article", article_id)
        return article

    async def delete_by_id(self, article_id: int) -> bool:
        """True when the article was deleted, False when there was no such article."""
        deleted = await self.article_store.delete_by_id(article_id)
        if deleted:
            logger.info("Deleted article", article_id=article_id)
        else:
            logger.info("Article to delete not found", article_id=article_id)
        return deleted
