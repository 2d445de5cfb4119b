"""
Base classes and data models for news providers.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, ClassVar, Optional

import httpx
import structlog

from news_aggregator.config import ProviderSettings
from news_aggregator.core.exceptions import ConfigurationError, ProviderError
from news_aggregator.core.logging import redact_params
from news_aggregator.core.taxonomy import Taxonomy, get_taxonomy
from news_aggregator.models.domain import FetchMode, ProviderQuery
from news_aggregator.services.providers.rate_limiter import RateLimiter

logger = structlog.get_logger(__name__)

# (source name, provider key) -> provider-native source id
SourceLookup = Callable[[str, str], Awaitable[Optional[str]]]


def _text(value: Any) -> Optional[str]:
    """A stripped string, a scalar rendered as one, or None."""
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


@dataclass
class NormalizedArticle:
    """
    Article data from a provider before persistence.

    This is the common shape every provider emits; the article store
    consumes it immediately and it is never stored as-is.
    """
    # Required fields
    title: str
    url: str
    source_name: str
    published_at: datetime
    provider: str

    # Content
    description: Optional[str] = None
    image_url: Optional[str] = None
    author: Optional[str] = None

    # Classification
    category: Optional[str] = None  # Canonical key, or None

    # Provenance
    external_id: Optional[str] = None
    metadata: Optional[dict] = None  # Raw provider payload

    def __post_init__(self):
        for name in ("title", "url"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f"Article {name} must be a non-empty string, got {type(value).__name__}")
            setattr(self, name, value.strip())

        self.source_name = _text(self.source_name) or self.provider
        self.description = _text(self.description)
        self.image_url = _text(self.image_url)
        self.author = _text(self.author)
        self.external_id = _text(self.external_id) or self.url
        if not isinstance(self.metadata, dict):
            self.metadata = None


@dataclass
class ProviderRequest:
    """One outbound GET: path relative to the provider's base URL."""
    endpoint: str
    params: dict[str, Any] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    category: Optional[str] = None  # Requested category, for providers whose items lack one


class BaseProvider(ABC):
    """
    Abstract base class for news providers.

    Each provider implementation handles:
    - Mapping filters onto its own query parameters and endpoint
    - Extracting raw items from its response shape
    - Normalizing items into NormalizedArticle

    The base class owns the shared contract: an unconfigured provider
    makes no calls, every call goes through the rate limiter, and no
    error escapes a fetch (it is logged and becomes an empty list).
    """

    key: ClassVar[str]
    display_name: ClassVar[str]

    def __init__(
        self,
        settings: ProviderSettings,
        rate_limiter: RateLimiter,
        client: Optional[httpx.AsyncClient] = None,
        taxonomy: Optional[Taxonomy] = None,
        source_lookup: Optional[SourceLookup] = None,
    ):
        self.settings = settings
        self.rate_limiter = rate_limiter
        self.taxonomy = taxonomy or get_taxonomy()
        self.source_lookup = source_lookup
        self._client = client

        if not self.is_configured():
            logger.warning(
                "Missing API key configuration, provider will be skipped",
                provider=self.key,
            )

    @property
    def provider_key(self) -> str:
        return self.key

    @property
    def api_key(self) -> Optional[str]:
        return self.settings.api_key

    def is_configured(self) -> bool:
        return self.settings.is_configured

    async def fetch_headlines(self, query: ProviderQuery) -> list[NormalizedArticle]:
        """Fetch top headlines matching the filters."""
        return await self._fetch(FetchMode.HEADLINES, query)

    async def fetch_by_keyword(self, query: ProviderQuery) -> list[NormalizedArticle]:
        """Search all content for the filters' keyword."""
        return await self._fetch(FetchMode.SEARCH, query)

    async def fetch(self, mode: FetchMode, query: ProviderQuery) -> list[NormalizedArticle]:
        if mode == FetchMode.SEARCH:
            return await self.fetch_by_keyword(query)
        return await self.fetch_headlines(query)

    # ------------------------------------------------------------------
    # Provider-specific hooks
    # ------------------------------------------------------------------

    @abstractmethod
    async def build_headlines_request(self, query: ProviderQuery) -> ProviderRequest:
        pass

    @abstractmethod
    async def build_search_request(self, query: ProviderQuery) -> ProviderRequest:
        pass

    @abstractmethod
    def extract_items(self, payload: Any, request: ProviderRequest) -> list[dict]:
        """Pull the list of raw items out of a decoded response body."""
        pass

    @abstractmethod
    def normalize(self, item: dict, request: ProviderRequest) -> Optional[NormalizedArticle]:
        """Convert one raw item; None skips it."""
        pass

    # ------------------------------------------------------------------
    # Shared plumbing
    # ------------------------------------------------------------------

    def canonical_category(self, raw: Optional[str]) -> Optional[str]:
        return self.taxonomy.canonicalize(raw, self.key)

    def provider_category(self, category: Optional[str]) -> Optional[str]:
        return self.taxonomy.to_provider(category, self.key)

    async def resolve_source_id(self, source_name: Optional[str]) -> Optional[str]:
        """Map a source display name to this provider's native source id."""
        if not source_name or self.source_lookup is None:
            return None
        source_id = await self.source_lookup(source_name, self.key)
        if not source_id:
            logger.warning("Source not found for provider", provider=self.key, source=source_name)
        return source_id

    async def _fetch(self, mode: FetchMode, query: ProviderQuery) -> list[NormalizedArticle]:
        if not self.is_configured():
            logger.debug("Provider not configured, skipping", provider=self.key, mode=mode.value)
            return []

        request: Optional[ProviderRequest] = None
        try:
            if mode == FetchMode.SEARCH:
                request = await self.build_search_request(query)
            else:
                request = await self.build_headlines_request(query)

            if not await self.rate_limiter.acquire(self.key):
                return []

            payload = await self._get(request)
            items = self.extract_items(payload, request)

            articles = []
            for item in items:
                try:
                    article = self.normalize(item, request)
                except Exception as e:
                    logger.warning(
                        "Skipping malformed item",
                        provider=self.key,
                        endpoint=request.endpoint,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    continue
                if article is not None:
                    articles.append(article)

            logger.info(
                "Fetched articles",
                provider=self.key,
                endpoint=request.endpoint,
                count=len(articles),
            )
            return articles

        except Exception as e:
            logger.error(
                "Provider request failed",
                provider=self.key,
                mode=mode.value,
                endpoint=request.endpoint if request else None,
                params=redact_params(request.params) if request else None,
                error=str(e),
                error_type=type(e).__name__,
            )
            return []

    async def _get(self, request: ProviderRequest) -> Any:
        url = f"{self.settings.base_url.rstrip('/')}/{request.endpoint.lstrip('/')}"
        params = {k: v for k, v in request.params.items() if v is not None}

        if self._client is not None:
            response = await self._client.get(
                url, params=params, headers=request.headers, timeout=self.settings.timeout_seconds
            )
        else:
            async with httpx.AsyncClient(timeout=self.settings.timeout_seconds) as client:
                response = await client.get(url, params=params, headers=request.headers)

        response.raise_for_status()
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(self.key, "Response body is not JSON") from e

    def _require_list(self, value: Any, path: str) -> list[dict]:
        if value is None:
            return []
        if not isinstance(value, list):
            raise ProviderError(self.key, f"Expected a list at '{path}'", {"type": type(value).__name__})
        return [item for item in value if isinstance(item, dict)]


# =============================================================================
# Provider registry
# =============================================================================

_REGISTRY: dict[str, type[BaseProvider]] = {}


def register_provider(cls: type[BaseProvider]) -> type[BaseProvider]:
    """Class decorator that makes a provider constructible by its key."""
    _REGISTRY[cls.key] = cls
    return cls


def get_provider_class(key: str) -> type[BaseProvider]:
    try:
        return _REGISTRY[key]
    except KeyError:
        raise ConfigurationError(
            f"Unknown provider [{key}]",
            details={"provider": key, "registered": sorted(_REGISTRY)},
        ) from None


def registered_providers() -> list[str]:
    return sorted(_REGISTRY)
