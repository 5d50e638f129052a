from __future__ import annotations

import json
import os
import tempfile
from threading import Lock
from typing import Any, List, Optional, Protocol, Sequence

from ..domain.models import Product, decode_products
from ..errors import ProductDecodeError, SeedError, StoreUnavailableError
from ..logging import get_logger


LOG = get_logger("file-store")

PRODUCTS_FILENAME = "products.json"
FAVORITES_FILENAME = "favorites.json"


class ProductStore(Protocol):
    """Persistence the catalog coordinator depends on.

    Every method may raise StoreUnavailableError.
    """

    def load_products(self) -> List[Product]: ...

    def save_products(self, products: Sequence[Product]) -> None: ...

    def delete_products(self) -> None: ...

    def load_favorite_ids(self) -> List[str]: ...

    def save_favorite_ids(self, ids: Sequence[str]) -> None: ...


class FileDataStore:
    """JSON-file store kept in a documents directory.

    Files are rewritten whole through a temp file + rename so a crash
    never leaves a half-written document behind.
    """

    def __init__(self, root_dir: str) -> None:
        self.root_dir = os.path.abspath(root_dir)
        self._lock = Lock()

    @property
    def products_path(self) -> str:
        return os.path.join(self.root_dir, PRODUCTS_FILENAME)

    @property
    def favorites_path(self) -> str:
        return os.path.join(self.root_dir, FAVORITES_FILENAME)

    # ---------- products ----------
    def load_products(self) -> List[Product]:
        data = self._read_json(self.products_path)
        if data is None:
            return []
        try:
            return decode_products(data)
        except ProductDecodeError as exc:
            raise StoreUnavailableError(f"{self.products_path}: {exc}") from exc

    def save_products(self, products: Sequence[Product]) -> None:
        self._write_json(self.products_path, [p.to_dict() for p in products])
        LOG.debug("Saved %d product(s) to %s", len(products), self.products_path)

    def delete_products(self) -> None:
        with self._lock:
            try:
                if os.path.exists(self.products_path):
                    os.remove(self.products_path)
                    LOG.info("Deleted cached catalog at %s", self.products_path)
            except OSError as exc:
                raise StoreUnavailableError(f"Cannot delete {self.products_path}: {exc}") from exc

    # ---------- favorites ----------
    def load_favorite_ids(self) -> List[str]:
        data = self._read_json(self.favorites_path)
        if data is None:
            return []
        if not isinstance(data, list):
            raise StoreUnavailableError(f"{self.favorites_path}: expected a list of ids")
        return [str(v) for v in data]

    def save_favorite_ids(self, ids: Sequence[str]) -> None:
        self._write_json(self.favorites_path, sorted(str(i) for i in ids))

    # ---------- seeding ----------
    def seed_if_needed(self, seed: Optional[Any] = None) -> None:
        """On first run, copy the bundled catalog in and create empty favorites.

        ``seed`` is anything with a ``load()`` returning products (BundleSeed).
        Failures are logged; a store that cannot be seeded stays empty.
        """
        if not os.path.exists(self.products_path):
            products: List[Product] = []
            if seed is not None:
                try:
                    products = seed.load()
                except SeedError as exc:
                    LOG.warning("Bundle seed unavailable while seeding store: %s", exc)
            try:
                self.save_products(products)
                LOG.info("Seeded %d product(s) into %s", len(products), self.products_path)
            except StoreUnavailableError as exc:
                LOG.warning("Could not seed products: %s", exc)
        if not os.path.exists(self.favorites_path):
            try:
                self.save_favorite_ids([])
            except StoreUnavailableError as exc:
                LOG.warning("Could not create favorites file: %s", exc)

    # ---------- helpers ----------
    def _read_json(self, path: str) -> Any:
        with self._lock:
            if not os.path.exists(path):
                return None
            try:
                with open(path, "r", encoding="utf-8") as f:
                    return json.load(f)
            except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
                raise StoreUnavailableError(f"Cannot read {path}: {exc}") from exc

    def _write_json(self, path: str, payload: Any) -> None:
        with self._lock:
            try:
                os.makedirs(os.path.dirname(path), exist_ok=True)
                fd, tmp = tempfile.mkstemp(prefix=".tmp-", dir=os.path.dirname(path))
                try:
                    with os.fdopen(fd, "w", encoding="utf-8") as f:
                        json.dump(payload, f, ensure_ascii=False, indent=2, sort_keys=True)
                    os.replace(tmp, path)
                except BaseException:
                    if os.path.exists(tmp):
                        os.remove(tmp)
                    raise
            except OSError as exc:
                raise StoreUnavailableError(f"Cannot write {path}: {exc}") from exc
