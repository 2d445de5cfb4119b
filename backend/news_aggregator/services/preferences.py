"""
The single global preference record.

There is no per-user storage: one row holds the default source, category
and author applied to unfiltered queries. It is created on first save (or
by the seed) and only updated in place afterwards.
"""
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from news_aggregator.models.database import DBPreference
from news_aggregator.models.domain import Preference, PreferenceUpdate

logger = structlog.get_logger(__name__)

DEFAULT_PREFERENCE = PreferenceUpdate(source="BBC News", category="technology")


class PreferenceStore:
    """Load and save the global preference."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @staticmethod
    async def _first(session: AsyncSession) -> Optional[DBPreference]:
        result = await session.execute(select(DBPreference).order_by(DBPreference.id).limit(1))
        return result.scalar_one_or_none()

    async def load(self) -> Optional[Preference]:
        async with self.session_factory() as session:
            row = await self._first(session)
            return Preference.model_validate(row) if row else None

    async def save(self, update: PreferenceUpdate) -> Preference:
        """Update the record in place, creating it if none exists yet."""
        values = update.model_dump(exclude_unset=True)

        async with self.session_factory() as session:
            row = await self._first(session)
            if row is None:
                row = DBPreference(**values)
                session.add(row)
            else:
                for field_name, value in values.items():
                    setattr(row, field_name, value)

            await session.commit()
            await session.refresh(row)

        logger.info("Updated preferences", fields=sorted(values))
        return Preference.model_validate(row)

    async def has_any(self) -> bool:
        preference = await self.load()
        return preference is not None and preference.has_preference()

    async def seed_default(self) -> Preference:
        """Reset the record to the default preference."""
        return await self.save(
            PreferenceUpdate(
                source=DEFAULT_PREFERENCE.source,
                category=DEFAULT_PREFERENCE.category,
                author=None,
            )
        )
