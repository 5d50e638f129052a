from __future__ import annotations

import random
from typing import Any, Dict, List, Optional, Protocol, Sequence

import requests

from .. import __version__
from ..domain.models import Product
from ..domain.normalize import coerce_page_field, product_from_obf
from ..errors import DirectoryDecodeError, DirectoryNetworkError, StoreUnavailableError
from ..logging import get_logger


DEFAULT_BASE_URL = "https://world.openbeautyfacts.org"
SEARCH_FIELDS = (
    "code,product_name,brands,image_url,image_small_url,"
    "ingredients_text,quantity,categories_tags,labels_tags"
)
RANDOM_TERMS = (
    "cleanser",
    "moisturizer",
    "serum",
    "sunscreen",
    "shampoo",
    "conditioner",
    "lipstick",
    "foundation",
    "mascara",
    "toner",
)


class ProductDirectory(Protocol):
    """Remote product directory used by the catalog coordinator.

    Every method may raise DirectoryNetworkError or DirectoryDecodeError.
    ``fetch_by_barcode`` returns None for "no such product".
    """

    def fetch_by_barcode(self, code: str) -> Optional[Product]: ...

    def search(self, query: str, page: int = 1, page_size: int = 20) -> List[Product]: ...

    def fetch_random_products(self, count: int) -> List[Product]: ...


class OpenBeautyFactsClient:
    """Thin client for the Open Beauty Facts API with session, timeouts, and logging.

    Only implements the subset we use: CGI keyword search and the v2
    product-by-barcode endpoint. When a ``cache`` store is given, fetched
    products are written into its documents cache (deduplicated by barcode).
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        timeout: int = 15,
        user_agent: Optional[str] = None,
        cache: Optional[Any] = None,
        session: Optional[requests.Session] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.base = base_url.rstrip("/")
        self.timeout = int(timeout)
        self.cache = cache
        self.log = get_logger("obf-client")
        self.rng = rng or random.Random()
        self.s = session or requests.Session()
        self.s.headers.update({
            "User-Agent": user_agent or f"skincare-catalog/{__version__}",
            "Accept": "application/json",
        })

    # ---------- helpers ----------
    def _url(self, path: str) -> str:
        return f"{self.base}{path}"

    def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> requests.Response:
        try:
            return self.s.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            self.log.error(f"GET {url} failed: {e}")
            raise DirectoryNetworkError(f"Network error: {e}") from e

    def _json(self, r: requests.Response) -> Any:
        try:
            return r.json()
        except ValueError as e:
            raise DirectoryDecodeError(f"Failed to decode response: {e}") from e

    # ---------- search ----------
    def search(self, query: str, page: int = 1, page_size: int = 20) -> List[Product]:
        if not query or not query.strip():
            return []
        params = {
            "search_terms": query,
            "search_simple": "1",
            "action": "process",
            "json": "1",
            "page": str(int(page)),
            "page_size": str(int(page_size)),
            "fields": SEARCH_FIELDS,
        }
        url = self._url("/cgi/search.pl")
        self.log.info(f"Search: query={query!r} page={page} page_size={page_size}")
        r = self._get(url, params)
        if r.status_code != 200:
            self.log.warning(f"Search failed with status {r.status_code}")
            raise DirectoryNetworkError(f"Invalid response from server (HTTP {r.status_code})")

        body = self._json(r)
        if not isinstance(body, dict):
            raise DirectoryDecodeError("Search response is not an object")
        raw_products = body.get("products") or []
        if not isinstance(raw_products, list):
            raise DirectoryDecodeError("Search response 'products' is not a list")
        self.log.debug(
            "Search response page=%s page_size=%s count=%s",
            coerce_page_field(body.get("page")),
            coerce_page_field(body.get("page_size")),
            coerce_page_field(body.get("count")),
        )

        products: List[Product] = []
        for raw in raw_products:
            if not isinstance(raw, dict):
                continue
            try:
                products.append(product_from_obf(raw))
            except (TypeError, ValueError) as e:
                self.log.debug(f"Skipping undecodable search hit: {e}")
        self.log.info(f"Search found {len(products)} product(s) for {query!r}")
        self._cache_many(products)
        return products

    # ---------- barcode ----------
    def fetch_by_barcode(self, code: str) -> Optional[Product]:
        if not code or not code.strip():
            return None
        url = self._url(f"/api/v2/product/{requests.utils.quote(code.strip())}.json")
        self.log.info(f"Fetching barcode: {code}")
        r = self._get(url)
        # 404 is a valid "not found" answer
        if r.status_code not in (200, 404):
            self.log.warning(f"Unexpected HTTP status {r.status_code} for barcode {code}")
            raise DirectoryNetworkError(f"Invalid response from server (HTTP {r.status_code})")
        body = self._json(r)
        if not isinstance(body, dict):
            raise DirectoryDecodeError("Barcode response is not an object")
        raw = body.get("product")
        if coerce_page_field(body.get("status")) != 1 or not isinstance(raw, dict):
            self.log.info(f"Product not found for barcode: {code}")
            return None
        product = product_from_obf(raw)
        self.log.info(f"Found product: {product.name}")
        self._cache_one(product)
        return product

    # ---------- random sample ----------
    def fetch_random_products(self, count: int) -> List[Product]:
        term = self.rng.choice(RANDOM_TERMS)
        self.log.info(f"Fetching random products using term: {term!r}")
        return self.search(term, page=1, page_size=count)

    # ---------- documents cache ----------
    def _cache_many(self, products: Sequence[Product]) -> None:
        if self.cache is None or not products:
            return
        try:
            cached = self.cache.load_products()
            known = {p.barcode for p in cached}
            for product in products:
                if product.barcode not in known:
                    cached.append(product)
                    known.add(product.barcode)
            self.cache.save_products(cached)
            self.log.debug(f"Cached {len(products)} product(s)")
        except StoreUnavailableError as e:
            self.log.warning(f"Failed to cache products: {e}")

    def _cache_one(self, product: Product) -> None:
        if self.cache is None:
            return
        try:
            cached = self.cache.load_products()
            for idx, existing in enumerate(cached):
                if existing.barcode == product.barcode:
                    cached[idx] = product
                    break
            else:
                cached.append(product)
            self.cache.save_products(cached)
            self.log.debug(f"Cached product: {product.name}")
        except StoreUnavailableError as e:
            self.log.warning(f"Failed to cache product: {e}")
