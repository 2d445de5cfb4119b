"""
FastAPI routes for the News Aggregator API.
"""

from datetime import date
from typing import Annotated, Optional

import structlog
from fastapi import APIRouter, Depends, Query
from pydantic import ValidationError as PydanticValidationError

from news_aggregator.core.exceptions import NotFoundError, ValidationError
from news_aggregator.core.taxonomy import get_taxonomy
from news_aggregator.models.domain import (
    Article,
    NewsFilters,
    Page,
    Preference,
    PreferenceUpdate,
    Source,
)
from news_aggregator.services.container import AppServices
from news_aggregator.services.providers import registered_providers

logger = structlog.get_logger(__name__)
router = APIRouter()

_services: Optional[AppServices] = None


def set_services(services: Optional[AppServices]):
    """Install the services the routes run against (done by the app lifespan)."""
    global _services
    _services = services


def get_services() -> AppServices:
    if _services is None:
        raise RuntimeError("Services are not initialized")
    return _services


ServicesDep = Annotated[AppServices, Depends(get_services)]


def _validation_details(error: PydanticValidationError) -> list[dict]:
    return [
        {"field": ".".join(str(part) for part in err["loc"]) or "filters", "message": err["msg"]}
        for err in error.errors()
    ]


def news_filters(
    keyword: Annotated[Optional[str], Query(max_length=200)] = None,
    category: Annotated[Optional[str], Query(max_length=50)] = None,
    source: Annotated[Optional[str], Query(max_length=200)] = None,
    publisher: Annotated[Optional[str], Query(max_length=200)] = None,
    provider: Annotated[Optional[str], Query(max_length=50)] = None,
    author: Annotated[Optional[str], Query(max_length=100)] = None,
    from_date: Annotated[Optional[date], Query(alias="from")] = None,
    to_date: Annotated[Optional[date], Query(alias="to")] = None,
) -> NewsFilters:
    """Query-string filters shared by the headline and search endpoints."""
    if provider is not None and provider not in registered_providers():
        raise ValidationError(
            f"Provider must be one of: {', '.join(registered_providers())}",
            details={"field": "provider", "value": provider},
        )

    try:
        return NewsFilters(
            keyword=keyword or None,
            category=category or None,
            source=source or publisher or None,
            provider=provider,
            author=author or None,
            from_date=from_date,
            to_date=to_date,
        )
    except PydanticValidationError as e:
        raise ValidationError("Invalid query filters", details={"errors": _validation_details(e)}) from e


FiltersDep = Annotated[NewsFilters, Depends(news_filters)]
PageQuery = Annotated[int, Query(ge=1)]
PageSizeQuery = Annotated[Optional[int], Query(alias="pageSize", ge=1, le=100)]


def _page_response(page: Page[Article]) -> dict:
    return {
        "data": [article.model_dump(mode="json") for article in page.items],
        "meta": page.meta(),
    }


# ============================================================================
# News Routes
# ============================================================================


@router.get("/news/headlines")
async def get_headlines(
    services: ServicesDep,
    filters: FiltersDep,
    page: PageQuery = 1,
    page_size: PageSizeQuery = None,
):
    """
    Top headlines.

    With no filters the saved preference (source, category, author) is
    applied.
    """
    result = await services.news.get_headlines(filters, page, page_size)
    return _page_response(result)


@router.get("/news/search")
async def search_news(
    services: ServicesDep,
    filters: FiltersDep,
    page: PageQuery = 1,
    page_size: PageSizeQuery = None,
):
    """Keyword search. The keyword is required."""
    result = await services.news.search_articles(filters, page, page_size)
    return _page_response(result)


@router.get("/news/{article_id}")
async def get_article(article_id: int, services: ServicesDep):
    article = await services.news.find_by_id(article_id)
    return {"data": article.model_dump(mode="json")}


@router.delete("/news/{article_id}")
async def delete_article(article_id: int, services: ServicesDep):
    if not await services.news.delete_by_id(article_id):
        raise NotFoundError("Article", article_id)
    return {"message": "Article deleted successfully"}


# ============================================================================
# Preferences
# ============================================================================


@router.get("/preferences")
async def get_preferences(services: ServicesDep):
    preference = await services.preferences.load()
    return {"data": preference.model_dump(mode="json") if preference else None}


@router.put("/preferences")
async def update_preferences(update: PreferenceUpdate, services: ServicesDep):
    """Update the global preference. Only the fields sent are changed."""
    preference: Preference = await services.preferences.save(update)
    return {"data": preference.model_dump(mode="json")}


# ============================================================================
# Sources & Taxonomy
# ============================================================================


@router.get("/sources")
async def list_sources(services: ServicesDep):
    sources = await services.sources.list_active()
    return {"data": [Source.model_validate(s).model_dump() for s in sources]}


@router.get("/categories")
async def list_categories():
    """Canonical categories and the provider aliases that map to them."""
    return {"data": get_taxonomy().to_dict()}


@router.get("/providers")
async def list_providers(services: ServicesDep):
    stats = services.aggregator.get_provider_stats()
    stats["rate_limits"] = await services.rate_limiter.get_all_status()
    return {"data": stats}
