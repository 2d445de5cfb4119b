"""
Main FastAPI application for the News Aggregator.
"""
from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from news_aggregator.api.routes import router, set_services
from news_aggregator.config import get_settings
from news_aggregator.core.exceptions import (
    NewsAggregatorError,
    NotFoundError,
    ValidationError,
)
from news_aggregator.core.logging import configure_logging
from news_aggregator.models.database import Database
from news_aggregator.services.container import build_services

settings = get_settings()
configure_logging(settings.log_level, settings.log_json)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - handles startup and shutdown."""
    settings = get_settings()

    # Initialize database
    logger.info("Initializing database", url=settings.database_url)
    database = Database(settings.database_url, echo=settings.debug)
    await database.create_tables()

    client = httpx.AsyncClient()
    services = build_services(database, settings=settings, client=client)
    set_services(services)

    services.refresh_queue.start()
    logger.info(
        "News aggregator started",
        providers=services.aggregator.provider_keys,
        environment=settings.environment,
    )

    yield

    # Shutdown
    logger.info("Shutting down")
    services.refresh_queue.shutdown()
    set_services(None)
    await client.aclose()
    await database.dispose()


def _error_response(status_code: int, error: NewsAggregatorError) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, **error.to_dict()})


async def not_found_handler(request: Request, exc: NotFoundError):
    return _error_response(404, exc)


async def validation_error_handler(request: Request, exc: ValidationError):
    return _error_response(422, exc)


async def news_aggregator_error_handler(request: Request, exc: NewsAggregatorError):
    logger.error("Request failed", path=request.url.path, error=exc.message, error_code=exc.error_code)
    return _error_response(500, exc)


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        description="Headlines and search across NewsAPI, The Guardian and The New York Times.",
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(NotFoundError, not_found_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(NewsAggregatorError, news_aggregator_error_handler)

    app.include_router(router, prefix="/api")

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": "news-aggregator",
            "version": settings.app_version,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "news_aggregator.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
