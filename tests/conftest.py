from __future__ import annotations

from concurrent.futures import Executor, Future
from typing import Callable, Dict, List, Optional, Sequence

import pytest

from skincare_catalog.domain.models import Product
from skincare_catalog.errors import StoreUnavailableError


def make_product(name: str, barcode: str, *, id: Optional[str] = None, brand: str = "Brand", category: str = "Treatment") -> Product:
    kwargs = {"name": name, "brand": brand, "category": category, "barcode": barcode}
    if id is not None:
        kwargs["id"] = id
    return Product(**kwargs)


class MemoryStore:
    """In-memory ProductStore; ``fail`` makes every call raise."""

    def __init__(self, products: Sequence[Product] = (), favorites: Sequence[str] = ()) -> None:
        self.products: List[Product] = list(products)
        self.favorites: List[str] = list(favorites)
        self.fail = False
        self.deleted = 0

    def _check(self) -> None:
        if self.fail:
            raise StoreUnavailableError("store offline")

    def load_products(self) -> List[Product]:
        self._check()
        return list(self.products)

    def save_products(self, products: Sequence[Product]) -> None:
        self._check()
        self.products = list(products)

    def delete_products(self) -> None:
        self._check()
        self.products = []
        self.deleted += 1

    def load_favorite_ids(self) -> List[str]:
        self._check()
        return list(self.favorites)

    def save_favorite_ids(self, ids: Sequence[str]) -> None:
        self._check()
        self.favorites = sorted(ids)


class FakeSeed:
    def __init__(self, products: Sequence[Product] = (), error: Optional[Exception] = None) -> None:
        self.products = list(products)
        self.error = error

    def load(self) -> List[Product]:
        if self.error is not None:
            raise self.error
        return list(self.products)


class FakeDirectory:
    """Scripted ProductDirectory.

    ``pages`` maps a query to its result pages; ``samples`` is consumed one
    entry per random fetch (an Exception entry is raised).
    """

    def __init__(self) -> None:
        self.pages: Dict[str, List[List[Product]]] = {}
        self.samples: List[object] = []
        self.barcodes: Dict[str, Optional[Product]] = {}
        self.search_error: Optional[Exception] = None
        self.barcode_error: Optional[Exception] = None
        self.search_calls: List[tuple] = []
        self.barcode_calls: List[str] = []
        self.on_search: Optional[Callable[[str, int], None]] = None
        self.on_sample: Optional[Callable[[], None]] = None

    def search(self, query: str, page: int = 1, page_size: int = 20) -> List[Product]:
        self.search_calls.append((query, page, page_size))
        hook, self.on_search = self.on_search, None
        if hook is not None:
            hook(query, page)
        if self.search_error is not None:
            raise self.search_error
        pages = self.pages.get(query, [])
        if page - 1 < len(pages):
            return list(pages[page - 1])
        return []

    def fetch_random_products(self, count: int) -> List[Product]:
        hook, self.on_sample = self.on_sample, None
        if hook is not None:
            hook()
        item = self.samples.pop(0) if self.samples else []
        if isinstance(item, Exception):
            raise item
        return list(item)[:count]

    def fetch_by_barcode(self, code: str) -> Optional[Product]:
        self.barcode_calls.append(code)
        if self.barcode_error is not None:
            raise self.barcode_error
        return self.barcodes.get(code)


class FakeSync:
    def __init__(self, ids: Sequence[str] = (), items: Sequence[dict] = ()) -> None:
        self.ids = list(ids)
        self.items = list(items)
        self.saved: List[tuple] = []
        self.error: Optional[Exception] = None

    def load(self, user_id: str):
        if self.error is not None:
            raise self.error
        return list(self.ids), list(self.items)

    def save(self, user_id: str, ids, items) -> None:
        if self.error is not None:
            raise self.error
        self.saved.append((user_id, list(ids), list(items)))


class InlineExecutor(Executor):
    """Runs submitted work immediately on the calling thread."""

    def submit(self, fn, /, *args, **kwargs) -> Future:
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    for name in (
        "CATALOG_DATA_DIR",
        "CATALOG_SEED_PATH",
        "OBF_BASE_URL",
        "OBF_USER_AGENT",
        "CATALOG_PAGE_SIZE",
        "CATALOG_SAMPLE_SIZE",
        "CATALOG_HTTP_TIMEOUT",
        "FAVORITES_SYNC_URL",
        "FAVORITES_SYNC_TOKEN",
        "CATALOG_USER_ID",
    ):
        monkeypatch.delenv(name, raising=False)
