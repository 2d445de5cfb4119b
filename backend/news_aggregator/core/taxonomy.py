"""
Canonical news categories and per-provider aliases.

Structure:
- Canonical key: the category stored on articles, e.g. "technology"
- Display label: human-readable name, e.g. "Technology"
- Alias: a provider's own category string that maps onto a canonical key
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping, Optional


CATEGORIES: dict[str, str] = {
    "business": "Business",
    "technology": "Technology",
    "science": "Science",
    "sports": "Sports",
    "world": "World",
    "politics": "Politics",
    "health": "Health",
    "entertainment": "Entertainment",
}

ALIASES: dict[str, dict[str, str]] = {
    "guardian": {
        "world": "world",
        "business": "business",
        "technology": "technology",
        "science": "science",
        "sport": "sports",
        "politics": "politics",
        "lifeandstyle": "health",
        "film": "entertainment",
        "tv-and-radio": "entertainment",
    },
    "nyt": {
        "World": "world",
        "Business": "business",
        "Business Day": "business",
        "Technology": "technology",
        "Science": "science",
        "Sports": "sports",
        "Politics": "politics",
        "U.S.": "politics",
        "Health": "health",
        "Arts": "entertainment",
    },
    "newsapi": {
        "general": "world",
        "business": "business",
        "entertainment": "entertainment",
        "health": "health",
        "science": "science",
        "sports": "sports",
        "technology": "technology",
    },
}


def _fold(value: str) -> str:
    return value.strip().casefold()


@dataclass(frozen=True)
class Taxonomy:
    """Immutable category table with a pure lookup."""

    categories: Mapping[str, str]
    aliases: Mapping[str, Mapping[str, str]]
    _labels: Mapping[str, str] = field(init=False, repr=False)
    _folded_aliases: Mapping[str, Mapping[str, str]] = field(init=False, repr=False)

    def __post_init__(self):
        object.__setattr__(
            self,
            "_labels",
            MappingProxyType({_fold(label): key for key, label in self.categories.items()}),
        )
        object.__setattr__(
            self,
            "_folded_aliases",
            MappingProxyType({
                provider: MappingProxyType({_fold(raw): key for raw, key in table.items()})
                for provider, table in self.aliases.items()
            }),
        )

    @property
    def keys(self) -> tuple[str, ...]:
        return tuple(self.categories)

    def canonicalize(self, raw: Optional[str], provider: Optional[str] = None) -> Optional[str]:
        """
        Map a provider category string to a canonical key.

        Lookup order: canonical key, then the provider's alias table,
        then display label. All comparisons ignore case and surrounding
        whitespace. Returns None when nothing matches.
        """
        if not raw or not raw.strip():
            return None
        value = _fold(raw)

        if value in self.categories:
            return value

        if provider:
            key = self._folded_aliases.get(provider, {}).get(value)
            if key:
                return key

        return self._labels.get(value)

    def canonicalize_many(self, values: Optional[Iterable[str] | str], provider: Optional[str] = None) -> list[str]:
        """Canonicalize several values, dropping misses and duplicates."""
        if not values:
            return []
        if isinstance(values, str):
            values = [values]

        out: list[str] = []
        for value in values:
            key = self.canonicalize(value, provider)
            if key and key not in out:
                out.append(key)
        return out

    def to_provider(self, category: Optional[str], provider: str) -> Optional[str]:
        """
        Translate a category filter into the provider's own vocabulary.

        Uses the first alias that maps onto the canonical key; falls back
        to the canonical key itself, or the raw value when it is unknown.
        """
        if not category:
            return None
        key = self.canonicalize(category, provider)
        if key is None:
            return category.strip()
        for raw, mapped in self.aliases.get(provider, {}).items():
            if mapped == key:
                return raw
        return key

    def to_dict(self) -> dict:
        """Convert taxonomy to dictionary for API responses."""
        return {
            "categories": dict(self.categories),
            "aliases": {provider: dict(table) for provider, table in self.aliases.items()},
        }


def build_taxonomy(
    categories: Optional[Mapping[str, str]] = None,
    aliases: Optional[Mapping[str, Mapping[str, str]]] = None,
) -> Taxonomy:
    """Build an immutable taxonomy from plain tables."""
    categories = categories if categories is not None else CATEGORIES
    aliases = aliases if aliases is not None else ALIASES
    return Taxonomy(
        categories=MappingProxyType({key.casefold(): label for key, label in categories.items()}),
        aliases=MappingProxyType({
            provider: MappingProxyType(dict(table)) for provider, table in aliases.items()
        }),
    )


# Global taxonomy instance
TAXONOMY = build_taxonomy()


def get_taxonomy() -> Taxonomy:
    """Get the global taxonomy instance."""
    return TAXONOMY


def canonicalize(raw: Optional[str], provider: Optional[str] = None) -> Optional[str]:
    return TAXONOMY.canonicalize(raw, provider)
