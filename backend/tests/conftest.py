"""
Shared fixtures.

Provider HTTP traffic goes through httpx.MockTransport, the database is a
temporary SQLite file per test, and the rate limiter's throttle sleep is
recorded instead of awaited.
"""
from datetime import datetime
from typing import Callable, Optional, Union

import httpx
import pytest

from news_aggregator.config import GuardianSettings, NewsApiSettings, NytSettings, Settings
from news_aggregator.core.cache import MemoryStore
from news_aggregator.models.database import Database
from news_aggregator.services.article_store import ArticleStore
from news_aggregator.services.preferences import PreferenceStore
from news_aggregator.services.providers import ProviderAggregator, RateLimiter
from news_aggregator.services.providers.base import NormalizedArticle
from news_aggregator.services.sources import SourceRepository

NEWSAPI_HOST = "newsapi.org"
GUARDIAN_HOST = "content.guardianapis.com"
NYT_HOST = "api.nytimes.com"

Responder = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


class FakeNewsApis:
    """Routes requests by host to canned responses and records every request."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.responses: dict[str, Responder] = {}

    def respond(self, host: str, responder: Responder):
        self.responses[host] = responder

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        responder = self.responses.get(request.url.host)
        if responder is None:
            return httpx.Response(404, json={"message": "not stubbed"})
        if callable(responder):
            return responder(request)
        return responder

    def calls_to(self, host: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host == host]


# =============================================================================
# Payload builders
# =============================================================================

def newsapi_payload(*items: dict) -> dict:
    return {"status": "ok", "totalResults": len(items), "articles": list(items)}


def newsapi_item(url: str, title: str = "NewsAPI story", source: str = "BBC News", **extra) -> dict:
    item = {
        "source": {"id": None, "name": source},
        "author": "Jane Reporter",
        "title": title,
        "description": f"About {title}",
        "url": url,
        "urlToImage": f"{url}/image.jpg",
        "publishedAt": "2025-09-29T10:00:00Z",
        "content": "...",
    }
    item.update(extra)
    return item


def guardian_payload(*items: dict) -> dict:
    return {"response": {"status": "ok", "total": len(items), "results": list(items)}}


def guardian_item(url: str, title: str = "Guardian story", section: str = "technology", **extra) -> dict:
    item = {
        "id": url.replace("https://www.theguardian.com/", ""),
        "sectionId": section,
        "webTitle": title,
        "webUrl": url,
        "webPublicationDate": "2025-09-29T09:00:00Z",
        "fields": {"trailText": f"About {title}", "thumbnail": f"{url}/thumb.jpg", "byline": "Alex Writer"},
    }
    item.update(extra)
    return item


def nyt_topstories_payload(*items: dict) -> dict:
    return {"status": "OK", "num_results": len(items), "results": list(items)}


def nyt_search_payload(*docs: dict) -> dict:
    return {"status": "OK", "response": {"docs": list(docs)}}


def nyt_item(url: str, title: str = "NYT story", section: str = "Technology", **extra) -> dict:
    item = {
        "uri": f"nyt://article/{abs(hash(url))}",
        "section": section,
        "title": title,
        "abstract": f"About {title}",
        "url": url,
        "byline": "By Sam Columnist",
        "published_date": "2025-09-29T08:00:00-04:00",
        "multimedia": [
            {"url": "https://static01.nyt.com/thumb.jpg", "format": "Large Thumbnail"},
            {"url": "https://static01.nyt.com/jumbo.jpg", "format": "Super Jumbo"},
        ],
    }
    item.update(extra)
    return item


def normalized(
    url: str,
    provider: str = "newsapi",
    title: str = "Stored story",
    source_name: str = "BBC News",
    category: Optional[str] = "technology",
    published_at: Optional[datetime] = None,
    external_id: Optional[str] = None,
    author: Optional[str] = "Jane Reporter",
    description: Optional[str] = None,
) -> NormalizedArticle:
    return NormalizedArticle(
        title=title,
        description=description,
        url=url,
        source_name=source_name,
        published_at=published_at or datetime(2025, 9, 29, 10, 0, 0),
        provider=provider,
        author=author,
        category=category,
        external_id=external_id,
        metadata={"url": url, "provider": provider},
    )


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        enabled_providers=["newsapi", "guardian", "nyt"],
        newsapi=NewsApiSettings(_env_file=None, api_key="newsapi-test-key"),
        guardian=GuardianSettings(_env_file=None, api_key="guardian-test-key"),
        nyt=NytSettings(_env_file=None, api_key="nyt-test-key"),
    )


@pytest.fixture
async def database(settings):
    db = Database(settings.database_url)
    await db.create_tables()
    yield db
    await db.dispose()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def rate_limiter(store, sleeps) -> RateLimiter:
    async def record_sleep(seconds: float):
        sleeps.append(seconds)

    return RateLimiter(store, sleep=record_sleep)


@pytest.fixture
def fake_apis() -> FakeNewsApis:
    return FakeNewsApis()


@pytest.fixture
async def http_client(fake_apis):
    async with httpx.AsyncClient(transport=httpx.MockTransport(fake_apis.handler)) as client:
        yield client


@pytest.fixture
def sources(database) -> SourceRepository:
    return SourceRepository(database.async_session)


@pytest.fixture
def article_store(database, sources) -> ArticleStore:
    return ArticleStore(database.async_session, sources)


@pytest.fixture
def preferences(database) -> PreferenceStore:
    return PreferenceStore(database.async_session)


@pytest.fixture
def aggregator(settings, rate_limiter, http_client, sources) -> ProviderAggregator:
    return ProviderAggregator(
        rate_limiter,
        settings=settings,
        client=http_client,
        source_lookup=sources.get_source_id_by_name,
    )
