from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List

from ..domain.models import Product


DEFAULT_PAGE_SIZE = 20


class FallbackTier(str, Enum):
    """Where the current catalog snapshot came from, best first."""

    REMOTE = "remote"
    DOCUMENTS_CACHE = "documents_cache"
    BUNDLE_SEED = "bundle_seed"
    SYNTHETIC_TEST_DATA = "synthetic_test_data"


@dataclass
class SearchSession:
    """Pagination state for one query string. Never persisted."""

    query: str = ""
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    results: List[Product] = field(default_factory=list)
    has_more: bool = False
    in_flight: bool = False
    api_failed: bool = False
    # Bumped on every reset; responses started under an older generation are stale.
    generation: int = 0

    def reset(self, query: str, page_size: int) -> None:
        self.query = query
        self.page = 1
        self.page_size = page_size
        self.results = []
        self.has_more = False
        self.in_flight = False
        self.api_failed = False
        self.generation += 1

    def snapshot(self) -> "SearchSession":
        return replace(self, results=list(self.results))
