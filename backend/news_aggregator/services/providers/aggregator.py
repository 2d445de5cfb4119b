"""
Provider Aggregator - fans one query out to every enabled provider.

Providers run one after another in their configured order, and their
results are concatenated in that order. A provider that fails contributes
nothing; the pass as a whole never fails.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import httpx
import structlog

from news_aggregator.config import Settings, get_settings
from news_aggregator.core.taxonomy import Taxonomy
from news_aggregator.models.domain import FetchMode, ProviderQuery
from news_aggregator.services.providers.base import (
    BaseProvider,
    NormalizedArticle,
    SourceLookup,
    get_provider_class,
)
from news_aggregator.services.providers.rate_limiter import RateLimiter

logger = structlog.get_logger(__name__)


@dataclass
class ProviderResult:
    """Outcome of one provider's part in an aggregation pass."""
    provider: str
    articles_fetched: int = 0
    skipped: bool = False
    errors: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return len(self.errors) == 0

    def __str__(self) -> str:
        status = "ok" if self.success else "failed"
        return (
            f"{self.provider}: {status}, fetched={self.articles_fetched}, "
            f"skipped={self.skipped}, time={self.duration_seconds:.1f}s"
        )


@dataclass
class AggregateResult:
    articles: list[NormalizedArticle] = field(default_factory=list)
    results: list[ProviderResult] = field(default_factory=list)

    @property
    def errors(self) -> list[str]:
        return [f"{r.provider}: {e}" for r in self.results for e in r.errors]


class ProviderAggregator:
    """
    Builds every enabled provider and runs one query across all of them.

    Unknown provider keys raise ConfigurationError here, at construction,
    not during a fetch.
    """

    def __init__(
        self,
        rate_limiter: RateLimiter,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
        taxonomy: Optional[Taxonomy] = None,
        source_lookup: Optional[SourceLookup] = None,
        providers: Optional[list[BaseProvider]] = None,
    ):
        self.settings = settings or get_settings()

        if providers is not None:
            self.providers = list(providers)
        else:
            self.providers = [
                get_provider_class(key)(
                    settings=self.settings.provider_settings(key),
                    rate_limiter=rate_limiter,
                    client=client,
                    taxonomy=taxonomy,
                    source_lookup=source_lookup,
                )
                for key in self.settings.enabled_providers
            ]

        logger.info(
            "Initialized aggregator",
            providers=[p.provider_key for p in self.providers],
            configured=[p.provider_key for p in self.providers if p.is_configured()],
        )

    @property
    def provider_keys(self) -> list[str]:
        return [p.provider_key for p in self.providers]

    def get_provider(self, key: str) -> Optional[BaseProvider]:
        return next((p for p in self.providers if p.provider_key == key), None)

    async def fetch(self, mode: FetchMode, query: ProviderQuery) -> AggregateResult:
        """Run one query against every provider, in order."""
        aggregate = AggregateResult()

        for provider in self.providers:
            start_time = datetime.now()
            result = ProviderResult(provider=provider.provider_key)

            if not provider.is_configured():
                result.skipped = True
                aggregate.results.append(result)
                continue

            try:
                articles = await provider.fetch(mode, query)
            except Exception as e:
                # Providers should never raise; keep the others running if one does
                logger.error(
                    "Provider fetch failed",
                    provider=provider.provider_key,
                    mode=mode.value,
                    error=str(e),
                )
                articles = []
                result.errors.append(str(e))

            result.articles_fetched = len(articles)
            result.duration_seconds = (datetime.now() - start_time).total_seconds()
            aggregate.articles.extend(articles)
            aggregate.results.append(result)

            logger.info(
                "Provider pass finished",
                provider=provider.provider_key,
                mode=mode.value,
                count=len(articles),
            )

        logger.info(
            "Aggregated articles",
            mode=mode.value,
            total=len(aggregate.articles),
            providers=len(self.providers),
        )
        return aggregate

    async def fetch_headlines(self, query: ProviderQuery) -> AggregateResult:
        return await self.fetch(FetchMode.HEADLINES, query)

    async def fetch_by_keyword(self, query: ProviderQuery) -> AggregateResult:
        return await self.fetch(FetchMode.SEARCH, query)

    def get_provider_stats(self) -> dict:
        """Get statistics about configured providers."""
        return {
            "total_providers": len(self.providers),
            "providers": [
                {
                    "key": p.provider_key,
                    "name": p.display_name,
                    "configured": p.is_configured(),
                    "base_url": p.settings.base_url,
                }
                for p in self.providers
            ],
        }
