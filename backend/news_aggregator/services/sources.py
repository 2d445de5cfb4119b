"""
Source catalogue: provider-native publisher ids and their display names.
"""
from typing import Iterable, Optional

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from news_aggregator.models.database import DBSource

logger = structlog.get_logger(__name__)

# Used when NewsAPI's live catalogue cannot be fetched
FALLBACK_NEWSAPI_SOURCES = [
    {"id": "bbc-news", "name": "BBC News", "url": "https://www.bbc.co.uk/news", "category": "general", "language": "en", "country": "gb"},
    {"id": "cnn", "name": "CNN", "url": "https://us.cnn.com", "category": "general", "language": "en", "country": "us"},
    {"id": "reuters", "name": "Reuters", "url": "https://www.reuters.com", "category": "general", "language": "en", "country": "us"},
    {"id": "associated-press", "name": "Associated Press", "url": "https://apnews.com/", "category": "general", "language": "en", "country": "us"},
    {"id": "techcrunch", "name": "TechCrunch", "url": "https://techcrunch.com", "category": "technology", "language": "en", "country": "us"},
    {"id": "the-verge", "name": "The Verge", "url": "https://www.theverge.com", "category": "technology", "language": "en", "country": "us"},
    {"id": "bloomberg", "name": "Bloomberg", "url": "https://www.bloomberg.com", "category": "business", "language": "en", "country": "us"},
]

STATIC_SOURCES = [
    {
        "source_id": "the-guardian",
        "name": "The Guardian",
        "description": "Latest news, sport, business, comment, analysis and reviews from the Guardian.",
        "url": "https://www.theguardian.com",
        "category": "general",
        "language": "en",
        "country": "gb",
        "provider": "guardian",
    },
    {
        "source_id": "the-new-york-times",
        "name": "The New York Times",
        "description": "Breaking news, multimedia, reviews and opinion from nytimes.com.",
        "url": "https://www.nytimes.com",
        "category": "general",
        "language": "en",
        "country": "us",
        "provider": "nyt",
    },
]


def _name_matches(value: str):
    folded = value.strip().lower()
    return or_(func.lower(DBSource.name) == folded, func.lower(DBSource.source_id) == folded)


class SourceRepository:
    """Lookups and upserts over the sources table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def find_by_name(self, name: str, provider: str = "newsapi") -> Optional[DBSource]:
        """Active source of a provider whose name or native id matches, ignoring case."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(DBSource)
                .where(_name_matches(name))
                .where(DBSource.provider == provider)
                .where(DBSource.is_active.is_(True))
                .order_by(DBSource.id)
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def get_source_id_by_name(self, name: str, provider: str = "newsapi") -> Optional[str]:
        source = await self.find_by_name(name, provider)
        return source.source_id if source else None

    async def find_many(
        self,
        session: AsyncSession,
        pairs: Iterable[tuple[str, str]],
    ) -> dict[tuple[str, str], int]:
        """
        Batch-resolve (name, provider) pairs to source row ids.

        Keys of the returned dict are (lower-cased name, provider); pairs
        with no active match are absent.
        """
        wanted = {(name.strip().lower(), provider) for name, provider in pairs if name}
        if not wanted:
            return {}

        providers = {provider for _, provider in wanted}
        names = {name for name, _ in wanted}
        result = await session.execute(
            select(DBSource.id, DBSource.name, DBSource.source_id, DBSource.provider)
            .where(DBSource.provider.in_(providers))
            .where(DBSource.is_active.is_(True))
            .where(or_(func.lower(DBSource.name).in_(names), func.lower(DBSource.source_id).in_(names)))
            .order_by(DBSource.id)
        )

        resolved: dict[tuple[str, str], int] = {}
        for row_id, name, source_id, provider in result.all():
            for candidate in (name.lower(), source_id.lower()):
                key = (candidate, provider)
                if key in wanted and key not in resolved:
                    resolved[key] = row_id
        return resolved

    async def list_active(self) -> list[DBSource]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(DBSource).where(DBSource.is_active.is_(True)).order_by(DBSource.provider, DBSource.name)
            )
            return list(result.scalars().all())

    async def count_active(self) -> int:
        async with self.session_factory() as session:
            result = await session.execute(
                select(func.count(DBSource.id)).where(DBSource.is_active.is_(True))
            )
            return int(result.scalar() or 0)

    async def upsert(self, source_id: str, provider: str, **values) -> DBSource:
        """Create or update the source identified by (source_id, provider)."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(DBSource)
                .where(DBSource.source_id == source_id)
                .where(DBSource.provider == provider)
            )
            source = result.scalar_one_or_none()

            if source is None:
                source = DBSource(source_id=source_id, provider=provider, **values)
                session.add(source)
            else:
                for field_name, value in values.items():
                    setattr(source, field_name, value)

            await session.commit()
            await session.refresh(source)
            return source


async def seed_sources(repository: SourceRepository, newsapi_provider=None) -> int:
    """
    Load the source catalogue.

    NewsAPI's live listing is used when a configured provider is given,
    otherwise a small static list. Guardian and NYT sources are static.
    Returns the number of active sources afterwards.
    """
    newsapi_sources = []
    if newsapi_provider is not None:
        newsapi_sources = await newsapi_provider.fetch_sources()

    if not newsapi_sources:
        logger.warning("No sources fetched from NewsAPI, using fallback sources")
        newsapi_sources = FALLBACK_NEWSAPI_SOURCES

    for data in newsapi_sources:
        if not data.get("id") or not data.get("name"):
            continue
        await repository.upsert(
            data["id"],
            "newsapi",
            name=data["name"],
            description=data.get("description"),
            url=data.get("url"),
            category=data.get("category"),
            language=(data.get("language") or "en")[:2],
            country=(data.get("country") or "")[:2] or None,
            is_active=True,
        )

    for source in STATIC_SOURCES:
        values = {k: v for k, v in source.items() if k not in ("source_id", "provider")}
        await repository.upsert(source["source_id"], source["provider"], is_active=True, **values)

    total = await repository.count_active()
    logger.info("Seeded news sources", newsapi=len(newsapi_sources), static=len(STATIC_SOURCES), total=total)
    return total
