"""Catalog cache coordination: snapshot, favorites, search sessions and fallback tiers."""

from .coordinator import (
    EVENT_CATALOG,
    EVENT_DIAGNOSTIC,
    EVENT_FAVORITES,
    EVENT_SEARCH,
    CatalogCoordinator,
)
from .fallback import resolve_fallback, synthetic_products
from .session import DEFAULT_PAGE_SIZE, FallbackTier, SearchSession

__all__ = [
    "CatalogCoordinator",
    "DEFAULT_PAGE_SIZE",
    "EVENT_CATALOG",
    "EVENT_DIAGNOSTIC",
    "EVENT_FAVORITES",
    "EVENT_SEARCH",
    "FallbackTier",
    "SearchSession",
    "resolve_fallback",
    "synthetic_products",
]
