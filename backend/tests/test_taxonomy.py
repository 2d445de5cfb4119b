"""
Tests for the category taxonomy.
"""
import dataclasses

import pytest

from news_aggregator.core.taxonomy import (
    CATEGORIES,
    build_taxonomy,
    canonicalize,
    get_taxonomy,
)


class TestCanonicalize:
    """Tests for mapping provider strings onto canonical keys."""

    def test_case_and_whitespace_insensitive(self):
        assert canonicalize("Technology") == "technology"
        assert canonicalize("  TECHNOLOGY ") == "technology"

    def test_configured_alias(self):
        """A provider alias resolves to the same key as the canonical spelling."""
        taxonomy = build_taxonomy(aliases={"newsapi": {"tech": "technology"}})

        assert (
            taxonomy.canonicalize("Technology", "newsapi")
            == taxonomy.canonicalize("technology", "newsapi")
            == taxonomy.canonicalize("tech", "newsapi")
            == "technology"
        )

    def test_unknown_value(self):
        assert canonicalize("unknown-xyz") is None
        assert canonicalize("unknown-xyz", "guardian") is None

    def test_empty_values(self):
        assert canonicalize(None) is None
        assert canonicalize("") is None
        assert canonicalize("   ") is None

    def test_provider_aliases(self):
        assert canonicalize("sport", "guardian") == "sports"
        assert canonicalize("lifeandstyle", "guardian") == "health"
        assert canonicalize("Business Day", "nyt") == "business"
        assert canonicalize("business day", "nyt") == "business"
        assert canonicalize("U.S.", "nyt") == "politics"
        assert canonicalize("general", "newsapi") == "world"

    def test_aliases_are_provider_scoped(self):
        """Another provider's alias does not leak into the lookup."""
        assert canonicalize("sport", "nyt") is None
        assert canonicalize("sport") is None

    def test_display_label_fallback(self):
        taxonomy = build_taxonomy(categories={"tech": "Technology"}, aliases={})
        assert taxonomy.canonicalize("technology") == "tech"

    def test_canonicalize_many(self):
        taxonomy = get_taxonomy()
        result = taxonomy.canonicalize_many(["sport", "Sports", "film", "nope"], "guardian")
        assert result == ["sports", "entertainment"]
        assert taxonomy.canonicalize_many("world") == ["world"]
        assert taxonomy.canonicalize_many(None) == []


class TestToProvider:
    """Tests for translating filters into a provider's vocabulary."""

    def test_first_matching_alias(self):
        taxonomy = get_taxonomy()
        assert taxonomy.to_provider("sports", "guardian") == "sport"
        assert taxonomy.to_provider("technology", "nyt") == "Technology"
        assert taxonomy.to_provider("world", "newsapi") == "general"

    def test_falls_back_to_key_or_raw(self):
        taxonomy = get_taxonomy()
        assert taxonomy.to_provider("Science", "unknown-provider") == "science"
        assert taxonomy.to_provider("crosswords", "guardian") == "crosswords"
        assert taxonomy.to_provider(None, "guardian") is None


class TestTaxonomyTable:
    """Tests for the table itself."""

    def test_canonical_keys(self):
        assert set(get_taxonomy().keys) == set(CATEGORIES)
        assert len(CATEGORIES) == 8

    def test_immutable(self):
        taxonomy = get_taxonomy()
        with pytest.raises(dataclasses.FrozenInstanceError):
            taxonomy.categories = {}
        with pytest.raises(TypeError):
            taxonomy.categories["gossip"] = "Gossip"

    def test_to_dict(self):
        data = get_taxonomy().to_dict()
        assert data["categories"]["technology"] == "Technology"
        assert data["aliases"]["guardian"]["sport"] == "sports"
