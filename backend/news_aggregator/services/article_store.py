"""
Article Store - content-addressed persistence for normalized articles.

Articles are keyed by the SHA-1 of their URL, so the same story reported
by any number of providers, or seen again on a later pass, collapses onto
one row. Each provider's sighting is kept separately in article_sources,
keyed by (provider, external_id), all pointing at that one row.
"""

import hashlib
from dataclasses import dataclass, field
from typing import Optional

import structlog
from sqlalchemy import Select, func, or_, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from news_aggregator.core.dates import end_of_day, start_of_day, to_naive_utc, utcnow
from news_aggregator.core.exceptions import StorageError
from news_aggregator.core.taxonomy import Taxonomy, get_taxonomy
from news_aggregator.models.database import DBArticle, DBArticleSource, DBSource
from news_aggregator.models.domain import Article, NewsFilters, Page
from news_aggregator.services.providers.base import NormalizedArticle
from news_aggregator.services.sources import SourceRepository

logger = structlog.get_logger(__name__)

# Columns overwritten when a URL is seen again; id, url_sha1 and created_at are kept
MUTABLE_ARTICLE_COLUMNS = (
    "title",
    "description",
    "url",
    "image_url",
    "author",
    "source_id",
    "published_at",
    "provider",
    "category",
    "updated_at",
)

UPSERT_CHUNK_SIZE = 200


def content_identity(url: str) -> str:
    """Dedup key for an article: SHA-1 hex digest of its URL."""
    return hashlib.sha1(url.encode("utf-8")).hexdigest()


@dataclass
class UpsertResult:
    """Outcome of one batch upsert."""
    received: int = 0
    articles: int = 0
    links: int = 0
    dropped_links: int = 0
    article_ids: list[int] = field(default_factory=list)


def _insert_for(session: AsyncSession):
    dialect = session.get_bind().dialect.name
    if dialect == "sqlite":
        return sqlite.insert
    if dialect == "postgresql":
        return postgresql.insert
    raise StorageError(
        f"Upsert is not supported on dialect '{dialect}'",
        details={"dialect": dialect},
    )


def _chunks(rows: list[dict], size: int = UPSERT_CHUNK_SIZE):
    for start in range(0, len(rows), size):
        yield rows[start:start + size]


class ArticleStore:
    """Upsert, search and lookup over the articles table."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        sources: Optional[SourceRepository] = None,
        taxonomy: Optional[Taxonomy] = None,
    ):
        self.session_factory = session_factory
        self.sources = sources or SourceRepository(session_factory)
        self.taxonomy = taxonomy or get_taxonomy()

    # ------------------------------------------------------------------
    # Upsert
    # ------------------------------------------------------------------

    async def upsert(self, articles: list[NormalizedArticle]) -> UpsertResult:
        """
        Insert or update a batch of normalized articles.

        1. Resolve each source display name to a source row (or None)
        2. Key each article by content identity; later duplicates win
        3. Upsert articles on url_sha1, overwriting mutable fields
        4. Read back the ids assigned to the batch
        5. Upsert one article_sources row per (provider, external_id)

        Everything runs in one transaction. Any database failure rolls it
        back and is raised as StorageError.
        """
        result = UpsertResult(received=len(articles))
        articles = [a for a in articles if a.url]
        if not articles:
            return result

        logger.info("Upserting articles", count=len(articles))
        now = utcnow()

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    insert = _insert_for(session)

                    source_ids = await self.sources.find_many(
                        session, [(a.source_name, a.provider) for a in articles]
                    )

                    article_rows: dict[str, dict] = {}
                    link_rows: dict[tuple[str, str], dict] = {}

                    for article in articles:
                        identity = content_identity(article.url)
                        source_key = ((article.source_name or "").strip().lower(), article.provider)
                        article_rows[identity] = {
                            "url_sha1": identity,
                            "title": article.title,
                            "description": article.description,
                            "url": article.url,
                            "image_url": article.image_url,
                            "author": article.author,
                            "source_id": source_ids.get(source_key),
                            "published_at": to_naive_utc(article.published_at),
                            "provider": article.provider,
                            "category": article.category,
                            "created_at": now,
                            "updated_at": now,
                        }

                        if article.provider:
                            external_id = article.external_id or article.url
                            link_rows[(article.provider, external_id)] = {
                                "url_sha1": identity,
                                "provider": article.provider,
                                "external_id": external_id,
                                "metadata": article.metadata,
                            }

                    table = DBArticle.__table__
                    for chunk in _chunks(list(article_rows.values())):
                        stmt = insert(table).values(chunk)
                        stmt = stmt.on_conflict_do_update(
                            index_elements=["url_sha1"],
                            set_={col: stmt.excluded[col] for col in MUTABLE_ARTICLE_COLUMNS},
                        )
                        await session.execute(stmt)

                    ids_by_identity: dict[str, int] = {}
                    identities = list(article_rows)
                    for start in range(0, len(identities), UPSERT_CHUNK_SIZE):
                        rows = await session.execute(
                            select(DBArticle.url_sha1, DBArticle.id).where(
                                DBArticle.url_sha1.in_(identities[start:start + UPSERT_CHUNK_SIZE])
                            )
                        )
                        ids_by_identity.update({sha: article_id for sha, article_id in rows.all()})

                    links = []
                    for link in link_rows.values():
                        article_id = ids_by_identity.get(link["url_sha1"])
                        if article_id is None:
                            result.dropped_links += 1
                            continue
                        links.append({
                            "article_id": article_id,
                            "provider": link["provider"],
                            "external_id": link["external_id"],
                            "metadata": link["metadata"],
                            "created_at": now,
                            "updated_at": now,
                        })

                    link_table = DBArticleSource.__table__
                    for chunk in _chunks(links):
                        stmt = insert(link_table).values(chunk)
                        stmt = stmt.on_conflict_do_update(
                            index_elements=["provider", "external_id"],
                            set_={
                                "article_id": stmt.excluded["article_id"],
                                "metadata": stmt.excluded["metadata"],
                                "updated_at": stmt.excluded["updated_at"],
                            },
                        )
                        await session.execute(stmt)

        except SQLAlchemyError as e:
            logger.error("Article upsert failed", count=len(articles), error=str(e))
            raise StorageError(
                "Failed to upsert articles",
                details={"count": len(articles), "error": str(e)},
            ) from e

        result.articles = len(article_rows)
        result.links = len(links)
        result.article_ids = [ids_by_identity[sha] for sha in article_rows if sha in ids_by_identity]

        logger.info(
            "Upserted articles",
            received=result.received,
            articles=result.articles,
            links=result.links,
            dropped_links=result.dropped_links,
        )
        return result

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _filtered(self, filters: NewsFilters) -> Select:
        query = select(DBArticle.id).outerjoin(DBSource, DBArticle.source_id == DBSource.id)

        if filters.keyword:
            term = filters.keyword.strip()
            query = query.where(
                or_(
                    DBArticle.title.icontains(term, autoescape=True),
                    DBArticle.description.icontains(term, autoescape=True),
                    DBArticle.author.icontains(term, autoescape=True),
                    DBSource.name.icontains(term, autoescape=True),
                )
            )

        if filters.from_date:
            query = query.where(DBArticle.published_at >= start_of_day(filters.from_date))

        if filters.to_date:
            query = query.where(DBArticle.published_at <= end_of_day(filters.to_date))

        if filters.provider:
            query = query.where(DBArticle.provider == filters.provider)

        if filters.source:
            query = query.where(DBSource.name.icontains(filters.source.strip(), autoescape=True))

        if filters.author:
            query = query.where(DBArticle.author.icontains(filters.author.strip(), autoescape=True))

        if filters.category:
            category = self.taxonomy.canonicalize(filters.category) or filters.category.strip().lower()
            query = query.where(DBArticle.category == category)

        return query

    async def search(self, filters: NewsFilters, page: int, page_size: int) -> Page[Article]:
        """One page of stored articles matching the filters, newest first."""
        page = max(1, page)
        filtered = self._filtered(filters)

        try:
            async with self.session_factory() as session:
                total = await session.scalar(
                    select(func.count()).select_from(filtered.subquery())
                )

                rows: list[DBArticle] = []
                if total:
                    ids = filtered.subquery()
                    result = await session.execute(
                        select(DBArticle)
                        .where(DBArticle.id.in_(select(ids.c.id)))
                        .order_by(DBArticle.published_at.desc(), DBArticle.id.desc())
                        .offset((page - 1) * page_size)
                        .limit(page_size)
                    )
                    rows = list(result.unique().scalars().all())
        except SQLAlchemyError as e:
            raise StorageError("Failed to search articles", details={"error": str(e)}) from e

        return Page[Article](
            items=[Article.from_db(row) for row in rows],
            total=int(total or 0),
            page=page,
            page_size=page_size,
        )

    async def find_by_id(self, article_id: int) -> Optional[Article]:
        try:
            async with self.session_factory() as session:
                row = await session.get(DBArticle, article_id)
                return Article.from_db(row) if row else None
        except SQLAlchemyError as e:
            raise StorageError("Failed to load article", details={"id": article_id, "error": str(e)}) from e

    async def delete_by_id(self, article_id: int) -> bool:
        """Delete an article and its provider links. False if it does not exist."""
        try:
            async with self.session_factory() as session:
                row = await session.get(DBArticle, article_id)
                if row is None:
                    return False
                await session.delete(row)
                await session.commit()
                return True
        except SQLAlchemyError as e:
            raise StorageError("Failed to delete article", details={"id": article_id, "error": str(e)}) from e

    async def count(self) -> int:
        async with self.session_factory() as session:
            return int(await session.scalar(select(func.count(DBArticle.id))) or 0)

    async def get_links(self, article_id: int) -> list[DBArticleSource]:
        """Provider sightings recorded for an article."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(DBArticleSource)
                .where(DBArticleSource.article_id == article_id)
                .order_by(DBArticleSource.provider, DBArticleSource.id)
            )
            return list(result.scalars().all())

    async def ids_for_url(self, url: str) -> list[int]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(DBArticle.id).where(DBArticle.url_sha1 == content_identity(url))
            )
            return list(result.scalars().all())
