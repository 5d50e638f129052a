"""Turn raw Open Beauty Facts payloads into catalog Products."""

import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from ..logging import get_logger
from .models import Concern, Ingredient, Product

_LOG = get_logger("normalize")

# First matching keyword group wins, in this order.
_CATEGORY_RULES = (
    (("cleanser", "cleaning", "soap"), "Cleanser"),
    (("moisturizer", "cream", "lotion"), "Moisturizer"),
    (("serum", "treatment", "essence"), "Treatment"),
    (("sunscreen", "spf", "sun"), "Sunscreen"),
    (("toner", "astringent"), "Toner"),
    (("mask", "pack"), "Mask"),
    (("makeup", "cosmetic"), "Makeup"),
    (("perfume", "fragrance"), "Fragrance"),
    (("shampoo", "conditioner"), "Hair Care"),
)
DEFAULT_CATEGORY = "Personal Care"
UNKNOWN_BRAND = "Unknown Brand"

_CONCERN_RULES = (
    (("sensitive", "sensitivity", "hypoallergenic"), Concern.SENSITIVITY),
    (("oily", "oiliness", "sebum"), Concern.OILINESS),
    (("dry", "dryness", "moisturizing"), Concern.DRYNESS),
    (("acne", "blemish", "anti-acne"), Concern.ACNE),
    (("aging", "wrinkle", "anti-aging", "anti-wrinkle"), Concern.AGING),
    (("pigmentation", "dark spot", "brightening", "whitening"), Concern.PIGMENTATION),
    (("redness", "irritation"), Concern.REDNESS),
)

_GRADE_SCORES = {"A": 5.0, "B": 4.0, "C": 3.0, "D": 2.0, "E": 1.0}
_NOVA_SCORES = {1: 5.0, 2: 4.0, 3: 3.0, 4: 2.0}


def extract_category(categories_tags: Iterable[str]) -> str:
    for tag in categories_tags or []:
        lowered = str(tag).lower()
        for keywords, label in _CATEGORY_RULES:
            if any(k in lowered for k in keywords):
                return label
    return DEFAULT_CATEGORY


def extract_concerns(categories_tags: Optional[List[str]], labels_tags: Optional[List[str]]) -> List[Concern]:
    concerns: List[Concern] = []
    for tag in (categories_tags or []) + (labels_tags or []):
        lowered = str(tag).lower()
        for keywords, concern in _CONCERN_RULES:
            if any(k in lowered for k in keywords):
                if concern not in concerns:
                    concerns.append(concern)
                break
    return concerns


def parse_ingredients(text: Optional[str]) -> List[Ingredient]:
    """Split an ingredient list on commas and semicolons."""
    if not text:
        return []
    parts = [p.strip() for p in re.split(r"[,;]", text)]
    return [
        Ingredient(inci_name=p, common_name=p, role="ingredient", note="Ingredient from Open Beauty Facts")
        for p in parts
        if p
    ]


def calculate_rating(raw: Dict[str, Any]) -> Optional[float]:
    """Average the available quality signals on a 1-5 scale.

    Returns None when no signal is present.
    """
    scores: List[float] = []
    grade = raw.get("nutrition_grades")
    if isinstance(grade, str) and grade.upper() in _GRADE_SCORES:
        scores.append(_GRADE_SCORES[grade.upper()])
    eco = raw.get("ecoscore_grade")
    if isinstance(eco, str) and eco.upper() in _GRADE_SCORES:
        scores.append(_GRADE_SCORES[eco.upper()])
    nova = _as_int(raw.get("nova_group"))
    if nova in _NOVA_SCORES:
        scores.append(_NOVA_SCORES[nova])
    if raw.get("ingredients_text"):
        scores.append(3.0)
    if raw.get("image_url") or raw.get("image_front_url"):
        scores.append(2.0)
    if not scores:
        return None
    return min(5.0, max(1.0, sum(scores) / len(scores)))


def generate_name(raw: Dict[str, Any]) -> str:
    """Build a display name when ``product_name`` is missing."""
    parts: List[str] = []
    brands = raw.get("brands")
    if brands:
        parts.append(str(brands))
    categories = raw.get("categories")
    if categories:
        cleaned = (
            str(categories)
            .replace("en:", "")
            .replace("open-beauty-facts", "")
            .replace("non-food-products", "")
            .strip()
        )
        if cleaned and cleaned != categories:
            parts.append(cleaned.title())
    quantity = raw.get("quantity")
    if quantity:
        parts.append(str(quantity))
    if not parts:
        return f"Product {raw.get('code') or 'Unknown'}"
    return " ".join(parts)


def _as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _timestamp(value: Any) -> Optional[datetime]:
    ts = _as_int(value)
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def _tags(raw: Dict[str, Any], key: str) -> Optional[List[str]]:
    value = raw.get(key)
    if isinstance(value, list):
        return [str(v) for v in value]
    return None


def product_from_obf(raw: Dict[str, Any]) -> Product:
    """Convert one OBF ``product`` object. Missing fields get defaults."""
    categories_tags = _tags(raw, "categories_tags")
    labels_tags = _tags(raw, "labels_tags")
    ingredients_text = raw.get("ingredients_text") or raw.get("ingredients_text_en")
    product = Product(
        name=raw.get("product_name") or generate_name(raw),
        brand=raw.get("brands") or UNKNOWN_BRAND,
        category=extract_category(categories_tags or []),
        barcode=str(raw.get("code") or ""),
        asset_name="",
        concerns=extract_concerns(categories_tags, labels_tags),
        ingredients=parse_ingredients(ingredients_text),
        rating=calculate_rating(raw),
        image_url=raw.get("image_url") or raw.get("image_small_url") or raw.get("image_front_url"),
        quantity=raw.get("quantity"),
        product_labels=labels_tags,
        product_categories=categories_tags,
        allergens=_tags(raw, "allergens_tags"),
        traces=_tags(raw, "traces_tags"),
        additives=_tags(raw, "additives_tags"),
        nutrition_grade=raw.get("nutrition_grades"),
        ingredients_text=ingredients_text,
        last_modified=_timestamp(raw.get("last_modified_t")),
        created_date=_timestamp(raw.get("created_t")),
        is_from_open_beauty_facts=True,
    )
    _LOG.debug("Normalized OBF product code=%s name=%r", product.barcode, product.name)
    return product


def coerce_page_field(value: Any) -> Optional[int]:
    """Search responses send page/page_size/count as int or string."""
    return _as_int(value)
