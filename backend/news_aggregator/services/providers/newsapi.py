"""
NewsAPI.org provider.
API docs: https://newsapi.org/docs
"""
from typing import Any, Optional

import structlog

from news_aggregator.core.dates import parse_published_at
from news_aggregator.core.exceptions import ProviderError
from news_aggregator.models.domain import ProviderQuery
from news_aggregator.services.providers.base import (
    BaseProvider,
    NormalizedArticle,
    ProviderRequest,
    register_provider,
)

logger = structlog.get_logger(__name__)

REMOVED = "[Removed]"


@register_provider
class NewsApiProvider(BaseProvider):
    """Provider for NewsAPI's top-headlines and everything endpoints."""

    key = "newsapi"
    display_name = "NewsAPI"

    def _auth_headers(self) -> dict[str, str]:
        return {"X-Api-Key": self.api_key or ""}

    async def build_headlines_request(self, query: ProviderQuery) -> ProviderRequest:
        filters = query.filters
        source_id = await self.resolve_source_id(filters.source)
        category = self.provider_category(filters.category)

        return ProviderRequest(
            endpoint="top-headlines",
            params={
                # NewsAPI rejects country or category together with sources
                "category": None if source_id else category,
                "sources": source_id,
                "country": None if source_id else "us",
                "q": filters.keyword,
                "page": query.page,
                "pageSize": query.page_size,
                "sortBy": "popularity",
            },
            headers=self._auth_headers(),
            category=filters.category,
        )

    async def build_search_request(self, query: ProviderQuery) -> ProviderRequest:
        filters = query.filters
        source_id = await self.resolve_source_id(filters.source)

        return ProviderRequest(
            endpoint="everything",
            params={
                "q": filters.keyword,
                "sources": source_id,
                "from": filters.from_date.isoformat() if filters.from_date else None,
                "to": filters.to_date.isoformat() if filters.to_date else None,
                "page": query.page,
                "pageSize": query.page_size,
                "sortBy": "publishedAt",
                "language": "en",
            },
            headers=self._auth_headers(),
            category=filters.category,
        )

    def extract_items(self, payload: Any, request: ProviderRequest) -> list[dict]:
        if not isinstance(payload, dict):
            raise ProviderError(self.key, "Unexpected response shape")
        if payload.get("status") != "ok":
            raise ProviderError(
                self.key,
                f"NewsAPI error: {payload.get('message')}",
                {"code": payload.get("code")},
            )
        return self._require_list(payload.get("articles"), "articles")

    def normalize(self, item: dict, request: ProviderRequest) -> Optional[NormalizedArticle]:
        """Parse a NewsAPI article into a NormalizedArticle."""
        url = item.get("url")
        if not url or url == "https://removed.com":
            return None

        title = item.get("title") or "(no title)"
        if title == REMOVED:
            return None

        description = item.get("description")
        if description == REMOVED:
            description = None

        source = item.get("source") or {}
        source_name = source.get("name") if isinstance(source, dict) else None

        return NormalizedArticle(
            title=title,
            description=description,
            url=url,
            image_url=item.get("urlToImage"),
            author=item.get("author"),
            source_name=source_name or self.display_name,
            published_at=parse_published_at(item.get("publishedAt")),
            provider=self.key,
            # Items carry no category; use the one the request asked for
            category=self.canonical_category(request.category),
            external_id=url,
            metadata=item,
        )

    async def fetch_sources(self) -> list[dict]:
        """
        Fetch NewsAPI's source catalogue.

        Used for seeding the sources table. Returns [] on any failure.
        """
        if not self.is_configured():
            logger.warning("Cannot fetch sources, API key not configured", provider=self.key)
            return []

        request = ProviderRequest(endpoint="top-headlines/sources", headers=self._auth_headers())
        try:
            if not await self.rate_limiter.acquire(self.key):
                return []
            payload = await self._get(request)
            if not isinstance(payload, dict) or payload.get("status") != "ok":
                raise ProviderError(self.key, "Source listing failed")
            sources = self._require_list(payload.get("sources"), "sources")
            logger.info("Fetched sources", provider=self.key, count=len(sources))
            return sources
        except Exception as e:
            logger.error("Failed to fetch sources", provider=self.key, error=str(e))
            return []
