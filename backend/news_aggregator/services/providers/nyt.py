"""
New York Times provider (Top Stories and Article Search APIs).
API docs: https://developer.nytimes.com/apis
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

NYT_WEB_ROOT = "https://www.nytimes.com/"
PREFERRED_IMAGE_FORMAT = "Super Jumbo"
DEFAULT_SECTION = "home"


def _nyt_date(value) -> Optional[str]:
    return value.strftime("%Y%m%d") if value else None


@register_provider
class NytProvider(BaseProvider):
    """Provider for NYT top stories (headlines) and article search."""

    key = "nyt"
    display_name = "The New York Times"

    async def build_headlines_request(self, query: ProviderQuery) -> ProviderRequest:
        section = self.provider_category(query.filters.category) or DEFAULT_SECTION
        section = section.strip().lower().replace(" ", "")

        # Top stories has no paging; the whole section comes back at once
        return ProviderRequest(
            endpoint=f"topstories/v2/{section}.json",
            params={"api-key": self.api_key},
            category=query.filters.category,
        )

    async def build_search_request(self, query: ProviderQuery) -> ProviderRequest:
        filters = query.filters
        section = self.provider_category(filters.category)

        return ProviderRequest(
            endpoint="search/v2/articlesearch.json",
            params={
                "q": filters.keyword,
                "fq": f'section_name:("{section}")' if section else None,
                "begin_date": _nyt_date(filters.from_date),
                "end_date": _nyt_date(filters.to_date),
                # Article search pages are 0-indexed
                "page": max(0, query.page - 1),
                "sort": "newest",
                "api-key": self.api_key,
            },
            category=filters.category,
        )

    def extract_items(self, payload: Any, request: ProviderRequest) -> list[dict]:
        if not isinstance(payload, dict):
            raise ProviderError(self.key, "Unexpected response shape")
        if payload.get("status") not in (None, "OK"):
            raise ProviderError(self.key, f"NYT error: {payload.get('fault') or payload.get('errors')}")

        if "results" in payload:
            return self._require_list(payload.get("results"), "results")

        response = payload.get("response")
        if not isinstance(response, dict):
            raise ProviderError(self.key, "Missing 'response' object")
        return self._require_list(response.get("docs"), "response.docs")

    def normalize(self, item: dict, request: ProviderRequest) -> Optional[NormalizedArticle]:
        url = item.get("url") or item.get("web_url")
        if not url:
            return None

        headline = item.get("headline")
        title = item.get("title") or (headline.get("main") if isinstance(headline, dict) else None)

        return NormalizedArticle(
            title=title or "(no title)",
            description=item.get("abstract") or item.get("snippet"),
            url=url,
            image_url=self.extract_image_url(item.get("multimedia")),
            author=self._byline(item.get("byline")),
            source_name=self.display_name,
            published_at=parse_published_at(item.get("pub_date") or item.get("published_date")),
            provider=self.key,
            category=self.canonical_category(item.get("section_name") or item.get("section")),
            external_id=item.get("_id") or item.get("uri") or url,
            metadata=item,
        )

    @staticmethod
    def _byline(byline) -> Optional[str]:
        if isinstance(byline, dict):
            return byline.get("original") or None
        return byline or None

    @staticmethod
    def extract_image_url(multimedia) -> Optional[str]:
        """
        Pick an image from the multimedia field.

        Article search returns {"default": {"url": ...}, ...}; top stories
        and older search results return a list of renditions, where the
        "Super Jumbo" format is preferred. Relative paths are made absolute.
        """
        url = None
        if isinstance(multimedia, dict):
            default = multimedia.get("default")
            if isinstance(default, dict):
                url = default.get("url")
        elif isinstance(multimedia, list):
            renditions = [m for m in multimedia if isinstance(m, dict) and m.get("url")]
            preferred = next(
                (m for m in renditions if m.get("format") == PREFERRED_IMAGE_FORMAT),
                None,
            )
            chosen = preferred or (renditions[0] if renditions else None)
            url = chosen.get("url") if chosen else None

        if not isinstance(url, str) or not url:
            return None
        if not url.startswith(("http://", "https://")):
            url = NYT_WEB_ROOT + url.lstrip("/")
        return url
