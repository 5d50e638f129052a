from __future__ import annotations

from typing import List, Optional, Tuple

from ..domain.models import Concern, Ingredient, Product
from ..errors import SeedError, StoreUnavailableError
from ..logging import get_logger
from .session import FallbackTier


LOG = get_logger("catalog-fallback")


def synthetic_products() -> List[Product]:
    """Fixed placeholder catalog shown when every local source is empty.

    Ids are constant so repeated fallbacks never duplicate entries.
    """
    return [
        Product(
            id="00000000-0000-4000-8000-000000000001",
            name="Test Gentle Cleanser",
            brand="Test Brand",
            category="Cleanser",
            barcode="0000000000001",
            concerns=[Concern.SENSITIVITY],
            ingredients=[Ingredient(inci_name="Glycerin", common_name="Glycerin", role="humectant")],
            rating=4.0,
        ),
        Product(
            id="00000000-0000-4000-8000-000000000002",
            name="Test Daily Moisturizer",
            brand="Test Brand",
            category="Moisturizer",
            barcode="0000000000002",
            concerns=[Concern.DRYNESS],
            ingredients=[Ingredient(inci_name="Sodium Hyaluronate", common_name="Hyaluronic Acid", role="humectant")],
            rating=4.2,
        ),
        Product(
            id="00000000-0000-4000-8000-000000000003",
            name="Test Mineral Sunscreen SPF 50",
            brand="Test Brand",
            category="Sunscreen",
            barcode="0000000000003",
            concerns=[Concern.PIGMENTATION],
            ingredients=[Ingredient(inci_name="Zinc Oxide", common_name="Zinc Oxide", role="UV filter")],
            rating=4.5,
        ),
    ]


def resolve_fallback(seed, store) -> Tuple[FallbackTier, List[Product], Optional[str]]:
    """Pick the best local source: bundle seed, then documents cache, then placeholders.

    Local I/O only. Returns (tier, products, diagnostic); the diagnostic
    carries the reasons earlier tiers were skipped, or None.
    """
    reasons: List[str] = []

    if seed is not None:
        try:
            products = seed.load()
            if products:
                LOG.info("Fallback resolved to bundle seed (%d products)", len(products))
                return FallbackTier.BUNDLE_SEED, products, None
            reasons.append("bundle seed is empty")
        except SeedError as exc:
            reasons.append(f"bundle seed unavailable: {exc}")
    else:
        reasons.append("no bundle seed configured")

    if store is not None:
        try:
            products = store.load_products()
            if products:
                LOG.info("Fallback resolved to documents cache (%d products)", len(products))
                return FallbackTier.DOCUMENTS_CACHE, products, "; ".join(reasons)
            reasons.append("documents cache is empty")
        except StoreUnavailableError as exc:
            reasons.append(f"documents cache unavailable: {exc}")

    LOG.warning("Fallback using synthetic test data (%s)", "; ".join(reasons))
    return FallbackTier.SYNTHETIC_TEST_DATA, synthetic_products(), "Showing test products: " + "; ".join(reasons)
