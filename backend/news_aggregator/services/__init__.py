"""
Services layer - aggregation, storage and freshness for the news aggregator.

1. Providers (providers/):
   - NewsAPI, The Guardian and The New York Times connectors
   - Per-provider rate limiting and aggregation

2. Article Store (article_store.py):
   - Content-addressed upsert and filtered search

3. Freshness (freshness.py):
   - Serve, refresh inline, or defer to a background job

4. News Service (news_service.py):
   - Headlines, search and lookups with the saved preference applied
"""
