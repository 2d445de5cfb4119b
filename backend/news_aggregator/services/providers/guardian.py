"""
The Guardian Open Platform provider.
API docs: https://open-platform.theguardian.com/documentation/
"""
from typing import Any, Optional

from news_aggregator.core.dates import parse_published_at
from news_aggregator.core.exceptions import ProviderError
from news_aggregator.models.domain import ProviderQuery
from news_aggregator.services.providers.base import (
    BaseProvider,
    NormalizedArticle,
    ProviderRequest,
    register_provider,
)

SHOW_FIELDS = "thumbnail,trailText,byline"


@register_provider
class GuardianProvider(BaseProvider):
    """Provider for the Guardian content search endpoint."""

    key = "guardian"
    display_name = "The Guardian"

    def _params(self, query: ProviderQuery, order_by: str) -> dict:
        filters = query.filters
        return {
            "q": filters.keyword,
            "section": self.provider_category(filters.category),
            "from-date": filters.from_date.isoformat() if filters.from_date else None,
            "to-date": filters.to_date.isoformat() if filters.to_date else None,
            "page": query.page,
            "page-size": query.page_size,
            "show-fields": SHOW_FIELDS,
            "order-by": order_by,
            "api-key": self.api_key,
        }

    async def build_headlines_request(self, query: ProviderQuery) -> ProviderRequest:
        return ProviderRequest(
            endpoint="search",
            params=self._params(query, "newest"),
            category=query.filters.category,
        )

    async def build_search_request(self, query: ProviderQuery) -> ProviderRequest:
        return ProviderRequest(
            endpoint="search",
            params=self._params(query, "relevance"),
            category=query.filters.category,
        )

    def extract_items(self, payload: Any, request: ProviderRequest) -> list[dict]:
        response = payload.get("response") if isinstance(payload, dict) else None
        if not isinstance(response, dict):
            raise ProviderError(self.key, "Missing 'response' object")
        status = response.get("status")
        if status is not None and status != "ok":
            raise ProviderError(self.key, f"Guardian error: {response.get('message')}")
        return self._require_list(response.get("results"), "response.results")

    def normalize(self, item: dict, request: ProviderRequest) -> Optional[NormalizedArticle]:
        url = item.get("webUrl")
        if not url:
            return None

        fields = item.get("fields") or {}

        return NormalizedArticle(
            title=item.get("webTitle") or "(no title)",
            description=fields.get("trailText"),
            url=url,
            image_url=fields.get("thumbnail"),
            author=fields.get("byline"),
            source_name=self.display_name,
            published_at=parse_published_at(item.get("webPublicationDate")),
            provider=self.key,
            category=self.canonical_category(item.get("sectionId")),
            external_id=item.get("id") or url,
            metadata=item,
        )
