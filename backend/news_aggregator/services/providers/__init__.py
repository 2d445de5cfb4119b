"""
News providers for the aggregator.

This module provides connectors to the external news APIs:
- NewsAPI.org, The Guardian and The New York Times
- Per-provider rate limiting over the shared expiring store
- Aggregation across all enabled providers

Importing the package registers every provider by its key.
"""

from news_aggregator.services.providers.base import (
    BaseProvider,
    NormalizedArticle,
    ProviderRequest,
    get_provider_class,
    register_provider,
    registered_providers,
)
from news_aggregator.services.providers.rate_limiter import RateLimiter, RateLimitPolicy
from news_aggregator.services.providers.newsapi import NewsApiProvider
from news_aggregator.services.providers.guardian import GuardianProvider
from news_aggregator.services.providers.nyt import NytProvider
from news_aggregator.services.providers.aggregator import (
    AggregateResult,
    ProviderAggregator,
    ProviderResult,
)

__all__ = [
    "BaseProvider",
    "NormalizedArticle",
    "ProviderRequest",
    "get_provider_class",
    "register_provider",
    "registered_providers",
    "RateLimiter",
    "RateLimitPolicy",
    "NewsApiProvider",
    "GuardianProvider",
    "NytProvider",
    "AggregateResult",
    "ProviderAggregator",
    "ProviderResult",
]
