"""
Tests for the article store: dedup upsert, provider links and search.
"""
from datetime import date, datetime

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.dialects import sqlite
from sqlalchemy.exc import OperationalError

from conftest import normalized
from news_aggregator.core.exceptions import StorageError
from news_aggregator.models.domain import NewsFilters
from news_aggregator.services import article_store as article_store_module
from news_aggregator.services.article_store import content_identity
from news_aggregator.services.sources import STATIC_SOURCES, seed_sources


@pytest.fixture
async def seeded_sources(sources):
    await seed_sources(sources)
    return sources


class TestUpsert:
    """Tests for content-addressed upserts."""

    async def test_same_url_from_two_providers(self, article_store, seeded_sources):
        """Two providers reporting one URL share one article with two links."""
        url = "https://example.com/shared-story"
        result = await article_store.upsert([
            normalized(url, provider="newsapi", source_name="BBC News"),
            normalized(url, provider="guardian", source_name="The Guardian", external_id="world/shared-story"),
        ])

        assert result.articles == 1
        assert result.links == 2
        assert await article_store.count() == 1

        ids = await article_store.ids_for_url(url)
        assert len(ids) == 1

        links = await article_store.get_links(ids[0])
        assert sorted((l.provider, l.external_id) for l in links) == [
            ("guardian", "world/shared-story"),
            ("newsapi", url),
        ]
        assert all(l.article_id == ids[0] for l in links)
        assert links[0].metadata_json["provider"] in ("guardian", "newsapi")

    async def test_latest_values_win_and_id_is_kept(self, article_store):
        url = "https://example.com/evolving-story"
        first = await article_store.upsert([normalized(url, title="Draft headline")])
        second = await article_store.upsert([normalized(url, title="Final headline", author="Editor")])

        assert first.article_ids == second.article_ids
        article = await article_store.find_by_id(first.article_ids[0])
        assert article.title == "Final headline"
        assert article.author == "Editor"
        assert await article_store.count() == 1

    async def test_duplicates_within_a_batch_collapse(self, article_store):
        url = "https://example.com/dup"
        result = await article_store.upsert([
            normalized(url, title="First"),
            normalized(url, title="Second"),
        ])

        assert result.received == 2
        assert result.articles == 1
        article = await article_store.find_by_id(result.article_ids[0])
        assert article.title == "Second"

    async def test_repeat_sighting_updates_link(self, article_store):
        url = "https://example.com/again"
        await article_store.upsert([normalized(url, provider="nyt", external_id="nyt://1", source_name="x")])
        result = await article_store.upsert([normalized(url, provider="nyt", external_id="nyt://1", source_name="x")])

        links = await article_store.get_links(result.article_ids[0])
        assert len(links) == 1

    async def test_source_resolution(self, article_store, seeded_sources):
        result = await article_store.upsert([
            normalized("https://example.com/bbc", provider="newsapi", source_name="bbc news"),
            normalized("https://example.com/unknown", provider="newsapi", source_name="Some Blog"),
            normalized("https://example.com/wrong-provider", provider="nyt", source_name="BBC News"),
        ])

        articles = [await article_store.find_by_id(i) for i in result.article_ids]
        assert [a.source for a in articles] == ["BBC News", None, None]

    async def test_inactive_sources_are_not_resolved(self, article_store, sources):
        await sources.upsert("bbc-news", "newsapi", name="BBC News", is_active=False)
        result = await article_store.upsert([normalized("https://example.com/x", source_name="BBC News")])

        article = await article_store.find_by_id(result.article_ids[0])
        assert article.source is None

    async def test_empty_batch(self, article_store):
        result = await article_store.upsert([])
        assert result.articles == 0
        assert result.links == 0

    async def test_failure_rolls_back_everything(self, article_store, monkeypatch):
        """A failure while linking leaves no article rows behind."""
        def insert(table):
            if table.name == "article_sources":
                raise OperationalError("INSERT INTO article_sources", {}, Exception("disk I/O error"))
            return sqlite.insert(table)

        monkeypatch.setattr(article_store_module, "_insert_for", lambda session: insert)

        with pytest.raises(StorageError):
            await article_store.upsert([normalized("https://example.com/rollback")])

        assert await article_store.count() == 0

    def test_content_identity(self):
        assert content_identity("https://example.com") == "327c3fda87ce286848a574982ddd0b7c7487f816"


class TestSearch:
    """Tests for stored article search."""

    @pytest.fixture
    async def stored(self, article_store, seeded_sources):
        await article_store.upsert([
            normalized(
                "https://example.com/1",
                title="AI chips are here",
                category="technology",
                published_at=datetime(2025, 9, 1, 8),
                author="Ada Lovelace",
            ),
            normalized(
                "https://example.com/2",
                title="Football results",
                category="sports",
                provider="guardian",
                source_name="The Guardian",
                published_at=datetime(2025, 9, 2, 8),
            ),
            normalized(
                "https://example.com/3",
                title="Markets rally",
                description="Stocks up on AI optimism",
                category="business",
                published_at=datetime(2025, 9, 3, 23, 30),
            ),
        ])

    async def test_newest_first(self, article_store, stored):
        page = await article_store.search(NewsFilters(), 1, 20)

        assert page.total == 3
        assert [a.url for a in page.items] == [
            "https://example.com/3",
            "https://example.com/2",
            "https://example.com/1",
        ]

    async def test_keyword_matches_title_and_description(self, article_store, stored):
        page = await article_store.search(NewsFilters(keyword="ai"), 1, 20)
        assert {a.url for a in page.items} == {"https://example.com/1", "https://example.com/3"}

    async def test_keyword_matches_source_name(self, article_store, stored):
        page = await article_store.search(NewsFilters(keyword="guardian"), 1, 20)
        assert [a.url for a in page.items] == ["https://example.com/2"]

    async def test_category_filter_is_canonicalized(self, article_store, stored):
        page = await article_store.search(NewsFilters(category="Sports"), 1, 20)
        assert [a.url for a in page.items] == ["https://example.com/2"]

    async def test_provider_source_and_author_filters(self, article_store, stored):
        assert (await article_store.search(NewsFilters(provider="guardian"), 1, 20)).total == 1
        assert (await article_store.search(NewsFilters(source="bbc"), 1, 20)).total == 2
        assert (await article_store.search(NewsFilters(author="lovelace"), 1, 20)).total == 1

    async def test_date_bounds_are_inclusive_days(self, article_store, stored):
        page = await article_store.search(
            NewsFilters(from_date=date(2025, 9, 2), to_date=date(2025, 9, 3)), 1, 20
        )
        assert [a.url for a in page.items] == ["https://example.com/3", "https://example.com/2"]

    async def test_pagination(self, article_store, stored):
        page = await article_store.search(NewsFilters(), 2, 2)

        assert page.total == 3
        assert [a.url for a in page.items] == ["https://example.com/1"]
        assert page.meta() == {
            "current_page": 2,
            "per_page": 2,
            "from": 3,
            "to": 3,
            "total": 3,
            "last_page": 2,
        }

    async def test_no_matches(self, article_store, stored):
        page = await article_store.search(NewsFilters(keyword="volcano"), 1, 20)
        assert page.total == 0
        assert page.items == []


class TestLookups:
    """Tests for find and delete."""

    async def test_find_and_delete(self, article_store):
        result = await article_store.upsert([normalized("https://example.com/delete-me")])
        article_id = result.article_ids[0]

        assert (await article_store.find_by_id(article_id)).url == "https://example.com/delete-me"
        assert await article_store.delete_by_id(article_id) is True
        assert await article_store.find_by_id(article_id) is None
        assert await article_store.get_links(article_id) == []

    async def test_delete_unknown(self, article_store):
        await article_store.upsert([normalized("https://example.com/keep")])

        assert await article_store.delete_by_id(999_999) is False
        assert await article_store.count() == 1


def test_static_sources_cover_guardian_and_nyt():
    assert {s["provider"] for s in STATIC_SOURCES} == {"guardian", "nyt"}


class TestDatabase:
    """Tests for the connection manager."""

    async def test_foreign_keys_enabled_on_own_engine_only(self, database):
        async with database.engine.connect() as conn:
            assert (await conn.execute(text("PRAGMA foreign_keys"))).scalar() == 1

        other = create_engine("sqlite://")
        with other.connect() as conn:
            assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 0
        other.dispose()
