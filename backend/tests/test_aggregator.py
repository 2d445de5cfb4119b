"""
Tests for the provider aggregator.
"""
import httpx
import pytest

from conftest import (
    GUARDIAN_HOST,
    NEWSAPI_HOST,
    NYT_HOST,
    guardian_item,
    guardian_payload,
    newsapi_item,
    newsapi_payload,
    nyt_item,
    nyt_topstories_payload,
)
from news_aggregator.config import NytSettings
from news_aggregator.core.exceptions import ConfigurationError
from news_aggregator.models.domain import FetchMode, NewsFilters, ProviderQuery
from news_aggregator.services.providers import ProviderAggregator


def stub_all(fake_apis):
    fake_apis.respond(
        NEWSAPI_HOST,
        httpx.Response(200, json=newsapi_payload(newsapi_item("https://bbc.co.uk/news/a"))),
    )
    fake_apis.respond(
        GUARDIAN_HOST,
        httpx.Response(200, json=guardian_payload(
            guardian_item("https://www.theguardian.com/technology/b"),
            guardian_item("https://www.theguardian.com/technology/c"),
        )),
    )
    fake_apis.respond(
        NYT_HOST,
        httpx.Response(200, json=nyt_topstories_payload(nyt_item("https://www.nytimes.com/d.html"))),
    )


class TestProviderAggregator:
    """Tests for fanning a query out to every provider."""

    async def test_concatenates_in_configured_order(self, aggregator, fake_apis):
        stub_all(fake_apis)

        result = await aggregator.fetch(FetchMode.HEADLINES, ProviderQuery())

        assert [a.provider for a in result.articles] == ["newsapi", "guardian", "guardian", "nyt"]
        assert [r.provider for r in result.results] == ["newsapi", "guardian", "nyt"]
        assert [r.articles_fetched for r in result.results] == [1, 2, 1]
        assert result.errors == []

    async def test_calls_each_configured_provider(self, aggregator, fake_apis):
        stub_all(fake_apis)

        await aggregator.fetch_by_keyword(ProviderQuery(filters=NewsFilters(keyword="ai")))

        assert len(fake_apis.calls_to(NEWSAPI_HOST)) == 1
        assert len(fake_apis.calls_to(GUARDIAN_HOST)) == 1
        assert len(fake_apis.calls_to(NYT_HOST)) == 1

    async def test_unauthorized_provider_contributes_nothing(self, aggregator, fake_apis):
        """One provider answering 401 leaves the union of the others."""
        stub_all(fake_apis)
        fake_apis.respond(GUARDIAN_HOST, httpx.Response(401, json={"message": "Unauthorized"}))

        result = await aggregator.fetch_headlines(ProviderQuery())

        assert [a.url for a in result.articles] == [
            "https://bbc.co.uk/news/a",
            "https://www.nytimes.com/d.html",
        ]

    async def test_unconfigured_provider_is_skipped(self, settings, rate_limiter, http_client, fake_apis):
        stub_all(fake_apis)
        settings = settings.model_copy(update={"nyt": NytSettings(_env_file=None, api_key=None)})
        aggregator = ProviderAggregator(rate_limiter, settings=settings, client=http_client)

        result = await aggregator.fetch_headlines(ProviderQuery())

        assert fake_apis.calls_to(NYT_HOST) == []
        assert {r.provider: r.skipped for r in result.results} == {
            "newsapi": False,
            "guardian": False,
            "nyt": True,
        }

    async def test_provider_exception_is_isolated(self, aggregator, fake_apis):
        stub_all(fake_apis)

        async def explode(mode, query):
            raise RuntimeError("boom")

        aggregator.get_provider("newsapi").fetch = explode

        result = await aggregator.fetch_headlines(ProviderQuery())

        assert [a.provider for a in result.articles] == ["guardian", "guardian", "nyt"]
        assert result.errors == ["newsapi: boom"]

    def test_unknown_provider_key_fails_at_construction(self, settings, rate_limiter):
        settings = settings.model_copy(update={"enabled_providers": ["newsapi", "reuters"]})
        with pytest.raises(ConfigurationError):
            ProviderAggregator(rate_limiter, settings=settings)

    def test_enabled_subset(self, settings, rate_limiter):
        settings = settings.model_copy(update={"enabled_providers": ["nyt", "guardian"]})
        aggregator = ProviderAggregator(rate_limiter, settings=settings)

        assert aggregator.provider_keys == ["nyt", "guardian"]
        stats = aggregator.get_provider_stats()
        assert stats["total_providers"] == 2
        assert stats["providers"][0]["name"] == "The New York Times"
