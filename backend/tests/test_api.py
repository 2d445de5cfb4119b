"""
Tests for the HTTP API.
"""
import httpx
import pytest

from conftest import (
    GUARDIAN_HOST,
    NEWSAPI_HOST,
    NYT_HOST,
    guardian_payload,
    newsapi_item,
    newsapi_payload,
    normalized,
    nyt_search_payload,
    nyt_topstories_payload,
)
from news_aggregator.api.routes import set_services
from news_aggregator.main import create_app
from news_aggregator.services.container import build_services
from news_aggregator.services.sources import seed_sources


@pytest.fixture
def services(database, settings, store, http_client, fake_apis):
    fake_apis.respond(
        NEWSAPI_HOST,
        httpx.Response(200, json=newsapi_payload(
            newsapi_item("https://example.com/api-1", title="AI in the newsroom"),
            newsapi_item("https://example.com/api-2", title="Chips and AI"),
        )),
    )
    fake_apis.respond(GUARDIAN_HOST, httpx.Response(200, json=guardian_payload()))
    fake_apis.respond(
        NYT_HOST,
        lambda request: httpx.Response(
            200,
            json=nyt_search_payload() if "search" in request.url.path else nyt_topstories_payload(),
        ),
    )

    async def no_sleep(seconds: float):
        return None

    services = build_services(database, settings=settings, store=store, client=http_client, sleep=no_sleep)
    set_services(services)
    yield services
    set_services(None)


@pytest.fixture
async def client(services):
    app = create_app()
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        yield client


class TestNewsRoutes:
    """Tests for headline, search and article routes."""

    async def test_headlines_on_empty_store(self, client):
        response = await client.get("/api/news/headlines", params={"category": "technology"})

        assert response.status_code == 200
        body = response.json()
        assert body["meta"]["total"] == 2
        assert body["meta"]["current_page"] == 1
        assert {a["url"] for a in body["data"]} == {"https://example.com/api-1", "https://example.com/api-2"}

    async def test_page_size_alias(self, client):
        response = await client.get("/api/news/headlines", params={"category": "technology", "pageSize": 1})

        body = response.json()
        assert len(body["data"]) == 1
        assert body["meta"]["per_page"] == 1
        assert body["meta"]["last_page"] == 2

    async def test_page_size_out_of_range(self, client):
        response = await client.get("/api/news/headlines", params={"pageSize": 500})
        assert response.status_code == 422

    async def test_search(self, client):
        response = await client.get("/api/news/search", params={"keyword": "ai"})

        assert response.status_code == 200
        assert response.json()["meta"]["total"] == 2

    async def test_search_requires_keyword(self, client, fake_apis):
        response = await client.get("/api/news/search", params={"category": "technology"})

        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert body["details"] == {"field": "keyword"}
        assert fake_apis.requests == []

    async def test_unknown_provider(self, client):
        response = await client.get("/api/news/headlines", params={"provider": "reuters"})

        assert response.status_code == 422
        assert response.json()["details"]["field"] == "provider"

    async def test_reversed_date_range(self, client):
        response = await client.get("/api/news/headlines", params={"from": "2025-09-10", "to": "2025-09-01"})

        assert response.status_code == 422
        assert response.json()["error_code"] == "ValidationError"

    async def test_get_and_delete_article(self, client, services):
        result = await services.article_store.upsert([normalized("https://example.com/by-id")])
        article_id = result.article_ids[0]

        response = await client.get(f"/api/news/{article_id}")
        assert response.status_code == 200
        assert response.json()["data"]["url"] == "https://example.com/by-id"

        response = await client.delete(f"/api/news/{article_id}")
        assert response.status_code == 200
        assert response.json() == {"message": "Article deleted successfully"}

        response = await client.get(f"/api/news/{article_id}")
        assert response.status_code == 404

    async def test_delete_unknown_article(self, client, services):
        await services.article_store.upsert([normalized("https://example.com/kept")])

        response = await client.delete("/api/news/987654")

        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"
        assert await services.article_store.count() == 1


class TestPreferenceRoutes:
    """Tests for the global preference routes."""

    async def test_round_trip(self, client):
        assert (await client.get("/api/preferences")).json() == {"data": None}

        response = await client.put("/api/preferences", json={"source": "BBC News", "category": "technology"})
        assert response.status_code == 200

        data = (await client.get("/api/preferences")).json()["data"]
        assert data["source"] == "BBC News"
        assert data["category"] == "technology"
        assert data["author"] is None

    async def test_partial_update_keeps_other_fields(self, client):
        await client.put("/api/preferences", json={"source": "BBC News", "category": "technology"})
        await client.put("/api/preferences", json={"author": "Jane Reporter"})

        data = (await client.get("/api/preferences")).json()["data"]
        assert (data["source"], data["category"], data["author"]) == ("BBC News", "technology", "Jane Reporter")


class TestCatalogRoutes:
    """Tests for sources, categories, providers and health."""

    async def test_sources(self, client, services):
        await seed_sources(services.sources)

        data = (await client.get("/api/sources")).json()["data"]

        assert {s["provider"] for s in data} == {"newsapi", "guardian", "nyt"}
        assert all(s["is_active"] for s in data)

    async def test_categories(self, client):
        data = (await client.get("/api/categories")).json()["data"]
        assert "technology" in data["categories"]

    async def test_providers(self, client):
        data = (await client.get("/api/providers")).json()["data"]

        assert data["total_providers"] == 3
        assert "rate_limits" in data

    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
