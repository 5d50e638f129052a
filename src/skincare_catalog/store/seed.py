from __future__ import annotations

import json
import os
from importlib import resources
from typing import Any, List, Optional

from ..domain.models import Product, decode_products
from ..errors import ProductDecodeError, SeedCorruptError, SeedMissingError
from ..logging import get_logger


LOG = get_logger("bundle-seed")

SEED_PACKAGE = "skincare_catalog.data"
SEED_FILENAME = "products.json"


class BundleSeed:
    """Read-only catalog shipped with the package.

    The document is either ``{"version": <int>, "products": [...]}`` or a
    bare list of products. A missing file raises SeedMissingError; a file
    that exists but does not decode raises SeedCorruptError.
    """

    def __init__(self, path: Optional[str] = None) -> None:
        self.path = path
        self.version: Optional[int] = None

    def _read_bytes(self) -> bytes:
        if self.path is not None:
            if not os.path.isfile(self.path):
                raise SeedMissingError(f"Seed file not found: {self.path}")
            try:
                with open(self.path, "rb") as f:
                    return f.read()
            except OSError as exc:
                raise SeedMissingError(f"Seed file unreadable: {exc}") from exc
        try:
            return resources.files(SEED_PACKAGE).joinpath(SEED_FILENAME).read_bytes()
        except (FileNotFoundError, ModuleNotFoundError) as exc:
            raise SeedMissingError(f"Bundled {SEED_FILENAME} not found") from exc

    def load(self) -> List[Product]:
        raw = self._read_bytes()
        try:
            doc: Any = json.loads(raw.decode("utf-8"))
        except UnicodeDecodeError as exc:
            raise SeedCorruptError(f"Seed is not UTF-8: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise SeedCorruptError(f"Seed is not valid JSON: {exc}") from exc

        items = doc
        if isinstance(doc, dict):
            self.version = doc.get("version") if isinstance(doc.get("version"), int) else None
            items = doc.get("products")
        try:
            products = decode_products(items)
        except ProductDecodeError as exc:
            raise SeedCorruptError(f"Seed decode failed: {exc}") from exc
        LOG.debug("Loaded %d seed product(s) (version=%s)", len(products), self.version)
        return products
