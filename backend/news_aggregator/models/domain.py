"""
Domain models for the news aggregator.
These are the core business entities, independent of database/API representation.
"""
import math
from datetime import date, datetime
from enum import Enum
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator


# =============================================================================
# Enums
# =============================================================================

class FetchMode(str, Enum):
    """Which provider operation a query maps to."""
    HEADLINES = "headlines"
    SEARCH = "search"


# =============================================================================
# Query filters
# =============================================================================

class NewsFilters(BaseModel):
    """Filters shared by headline and search queries (pagination excluded)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    keyword: Optional[str] = Field(default=None, min_length=2, max_length=200)
    category: Optional[str] = Field(default=None, max_length=50)
    source: Optional[str] = Field(default=None, max_length=200)
    provider: Optional[str] = Field(default=None, max_length=50)
    author: Optional[str] = Field(default=None, max_length=100)
    from_date: Optional[date] = Field(default=None, alias="from")
    to_date: Optional[date] = Field(default=None, alias="to")

    @model_validator(mode="after")
    def check_date_range(self) -> "NewsFilters":
        if self.from_date and self.to_date and self.to_date < self.from_date:
            raise ValueError("End date must be after or equal to start date")
        return self

    def is_empty(self) -> bool:
        return not any(
            (self.keyword, self.category, self.source, self.provider,
             self.author, self.from_date, self.to_date)
        )

    def clock_fields(self) -> dict:
        """The fields that identify one freshness lifecycle."""
        return {
            "keyword": self.keyword,
            "category": self.category,
            "source": self.source,
            "provider": self.provider,
            "author": self.author,
            "from": self.from_date.isoformat() if self.from_date else None,
            "to": self.to_date.isoformat() if self.to_date else None,
        }


class ProviderQuery(BaseModel):
    """What a provider is asked for: the filters plus the 1-indexed page."""

    model_config = ConfigDict(frozen=True)

    filters: NewsFilters = Field(default_factory=NewsFilters)
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)


# =============================================================================
# Articles
# =============================================================================

class Article(BaseModel):
    """Stored article as returned to callers."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str] = None
    url: str
    image_url: Optional[str] = None
    author: Optional[str] = None
    source: Optional[str] = None
    provider: str
    published_at: datetime
    category: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_db(cls, row) -> "Article":
        return cls(
            id=row.id,
            title=row.title,
            description=row.description,
            url=row.url,
            image_url=row.image_url,
            author=row.author,
            source=row.source.name if row.source is not None else None,
            provider=row.provider,
            published_at=row.published_at,
            category=row.category,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )


T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """One page of a paginated result."""

    items: list[T] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 20

    @property
    def last_page(self) -> int:
        return max(1, math.ceil(self.total / self.page_size)) if self.page_size else 1

    @property
    def first_item(self) -> Optional[int]:
        if not self.items:
            return None
        return (self.page - 1) * self.page_size + 1

    @property
    def last_item(self) -> Optional[int]:
        if not self.items:
            return None
        return (self.page - 1) * self.page_size + len(self.items)

    def meta(self) -> dict:
        return {
            "current_page": self.page,
            "per_page": self.page_size,
            "from": self.first_item,
            "to": self.last_item,
            "total": self.total,
            "last_page": self.last_page,
        }


# =============================================================================
# Sources & Preferences
# =============================================================================

class Source(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    source_id: str
    name: str
    provider: str
    is_active: bool = True


class Preference(BaseModel):
    """The single global preference record."""

    model_config = ConfigDict(from_attributes=True)

    source: Optional[str] = None
    category: Optional[str] = None
    author: Optional[str] = None
    updated_at: Optional[datetime] = None

    def has_preference(self) -> bool:
        return bool(self.source or self.category or self.author)


class PreferenceUpdate(BaseModel):
    source: Optional[str] = Field(default=None, max_length=200)
    category: Optional[str] = Field(default=None, max_length=50)
    author: Optional[str] = Field(default=None, max_length=100)
