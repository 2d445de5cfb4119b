#!/usr/bin/env python3
"""
Management CLI for the news aggregator.

Usage:
    # Create the database tables
    python scripts/manage.py init-db

    # Load the source catalogue and the default preference
    python scripts/manage.py seed

    # Fetch headlines (or search results) from every provider and store them
    python scripts/manage.py fetch --mode headlines --category technology
    python scripts/manage.py fetch --mode search --keyword "climate"

    # Show provider configuration, rate limits and stored counts
    python scripts/manage.py status
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from news_aggregator.config import get_settings
from news_aggregator.core.logging import configure_logging
from news_aggregator.models.database import Database
from news_aggregator.models.domain import FetchMode, NewsFilters, ProviderQuery
from news_aggregator.services.container import build_services
from news_aggregator.services.freshness import refresh_articles
from news_aggregator.services.sources import seed_sources


async def cmd_init_db(args):
    """Create all tables."""
    settings = get_settings()
    database = Database(settings.database_url)
    try:
        if args.reset:
            await database.drop_tables()
            print("Dropped all tables")
        await database.create_tables()
        print(f"Database ready: {settings.database_url}")
    finally:
        await database.dispose()
    return 0


async def cmd_seed(args):
    """Seed sources and the default preference."""
    settings = get_settings()
    database = Database(settings.database_url)
    try:
        await database.create_tables()
        services = build_services(database, settings=settings)

        total = await seed_sources(services.sources, services.aggregator.get_provider("newsapi"))
        print(f"Active sources: {total}")

        if not args.skip_preferences:
            preference = await services.preferences.seed_default()
            print(f"Default preference: source={preference.source!r}, category={preference.category!r}")
    finally:
        await database.dispose()
    return 0


async def cmd_fetch(args):
    """Run one aggregation pass and store the results."""
    settings = get_settings()
    database = Database(settings.database_url)
    mode = FetchMode(args.mode)

    try:
        filters = NewsFilters(
            keyword=args.keyword,
            category=args.category,
            source=args.source,
        )
    except ValueError as e:
        print(f"Invalid filters: {e}")
        return 1

    if mode == FetchMode.SEARCH and not filters.keyword:
        print("--keyword is required in search mode")
        return 1

    try:
        await database.create_tables()
        services = build_services(database, settings=settings)
        query = ProviderQuery(filters=filters, page=args.page, page_size=args.page_size)

        print(f"Fetching {mode.value} from: {', '.join(services.aggregator.provider_keys)}")
        result = await refresh_articles(services.aggregator, services.article_store, mode, query)
    finally:
        await database.dispose()

    print("\n" + "=" * 50)
    print("FETCH RESULTS")
    print("=" * 50)
    print(f"Received: {result.received}")
    print(f"Stored articles: {result.articles}")
    print(f"Provider links: {result.links}")
    return 0


async def cmd_status(args):
    """Show provider and storage status."""
    settings = get_settings()
    database = Database(settings.database_url)
    try:
        await database.create_tables()
        services = build_services(database, settings=settings)
        status = {
            "providers": services.aggregator.get_provider_stats(),
            "rate_limits": await services.rate_limiter.get_all_status(),
            "articles": await services.article_store.count(),
            "active_sources": await services.sources.count_active(),
        }
    finally:
        await database.dispose()

    if args.json:
        print(json.dumps(status, indent=2))
        return 0

    print("\n" + "=" * 50)
    print("PROVIDERS")
    print("=" * 50)
    for provider in status["providers"]["providers"]:
        configured = "configured" if provider["configured"] else "missing API key"
        print(f"  {provider['name']} ({provider['key']}): {configured}")

    print("\nRATE LIMITS (this process)")
    for limits in status["rate_limits"]:
        windows = ", ".join(
            f"{window}={limits[window]['used']}/{limits[window]['limit']}"
            for window in ("daily", "minute", "second")
            if limits[window]["limit"] is not None
        )
        print(f"  {limits['provider']}: {windows}")

    print(f"\nStored articles: {status['articles']}")
    print(f"Active sources: {status['active_sources']}")
    return 0


def main():
    settings = get_settings()
    configure_logging(settings.log_level, json_logs=False)

    parser = argparse.ArgumentParser(description="News Aggregator - management CLI")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    init_parser = subparsers.add_parser("init-db", help="Create database tables")
    init_parser.add_argument("--reset", action="store_true", help="Drop all tables first")

    seed_parser = subparsers.add_parser("seed", help="Seed sources and the default preference")
    seed_parser.add_argument(
        "--skip-preferences",
        action="store_true",
        help="Only seed the source catalogue",
    )

    fetch_parser = subparsers.add_parser("fetch", help="Fetch and store articles")
    fetch_parser.add_argument(
        "--mode", "-m",
        choices=[m.value for m in FetchMode],
        default=FetchMode.HEADLINES.value,
        help="Provider operation (default: headlines)",
    )
    fetch_parser.add_argument("--keyword", "-k", help="Search keyword (required for search)")
    fetch_parser.add_argument("--category", "-c", help="Category filter (e.g. technology)")
    fetch_parser.add_argument("--source", "-s", help="Source display name (e.g. 'BBC News')")
    fetch_parser.add_argument("--page", type=int, default=1, help="Page to request (default: 1)")
    fetch_parser.add_argument(
        "--page-size",
        type=int,
        default=settings.default_page_size,
        help=f"Results per provider (default: {settings.default_page_size})",
    )

    status_parser = subparsers.add_parser("status", help="Show provider and storage status")
    status_parser.add_argument("--json", action="store_true", help="Print status as JSON")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    commands = {
        "init-db": cmd_init_db,
        "seed": cmd_seed,
        "fetch": cmd_fetch,
        "status": cmd_status,
    }
    return asyncio.run(commands[args.command](args))


if __name__ == "__main__":
    sys.exit(main())
