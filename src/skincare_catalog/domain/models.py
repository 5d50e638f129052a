from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from ..errors import ProductDecodeError


class Concern(str, Enum):
    ACNE = "acne"
    REDNESS = "redness"
    PIGMENTATION = "pigmentation"
    SENSITIVITY = "sensitivity"
    AGING = "aging"
    DRYNESS = "dryness"
    OILINESS = "oiliness"
    PORES = "pores"

    @property
    def title(self) -> str:
        return self.value.capitalize()


@dataclass
class Ingredient:
    inci_name: str
    common_name: str
    role: str
    note: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "inciName": self.inci_name,
            "commonName": self.common_name,
            "role": self.role,
        }
        if self.note is not None:
            out["note"] = self.note
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Ingredient":
        if not isinstance(data, dict):
            raise ProductDecodeError(f"ingredient must be an object, got {type(data).__name__}")
        try:
            return cls(
                inci_name=str(data["inciName"]),
                common_name=str(data["commonName"]),
                role=str(data["role"]),
                note=data.get("note"),
            )
        except KeyError as exc:
            raise ProductDecodeError(f"ingredient missing field {exc.args[0]!r}") from exc


def new_product_id() -> str:
    return str(uuid.uuid4())


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError as exc:
        raise ProductDecodeError(f"invalid ISO-8601 date: {value!r}") from exc


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _str_list(value: Any) -> Optional[List[str]]:
    if value is None:
        return None
    if not isinstance(value, list):
        raise ProductDecodeError(f"expected a list of strings, got {type(value).__name__}")
    return [str(v) for v in value]


def _concerns(values: Any) -> List[Concern]:
    out: List[Concern] = []
    for raw in values or []:
        try:
            concern = Concern(str(raw).lower())
        except ValueError:
            continue
        if concern not in out:
            out.append(concern)
    return out


# JSON key -> attribute name for the optional remote metadata block.
_OPTIONAL_STRINGS = {
    "imageURL": "image_url",
    "quantity": "quantity",
    "nutritionGrade": "nutrition_grade",
    "ingredientsText": "ingredients_text",
}
_OPTIONAL_LISTS = {
    "productLabels": "product_labels",
    "productCategories": "product_categories",
    "allergens": "allergens",
    "traces": "traces",
    "additives": "additives",
}


@dataclass
class Product:
    """A catalog entry.

    ``id`` is the in-memory identity and the key of the favorite set;
    ``barcode`` is the natural key shared with the remote directory and is
    what lookups and deduplication join on.
    """

    name: str
    brand: str
    category: str
    barcode: str
    asset_name: str = ""
    concerns: List[Concern] = field(default_factory=list)
    ingredients: List[Ingredient] = field(default_factory=list)
    rating: Optional[float] = None
    id: str = field(default_factory=new_product_id)

    # Open Beauty Facts metadata
    image_url: Optional[str] = None
    quantity: Optional[str] = None
    product_labels: Optional[List[str]] = None
    product_categories: Optional[List[str]] = None
    allergens: Optional[List[str]] = None
    traces: Optional[List[str]] = None
    additives: Optional[List[str]] = None
    nutrition_grade: Optional[str] = None
    ingredients_text: Optional[str] = None
    last_modified: Optional[datetime] = None
    created_date: Optional[datetime] = None
    is_from_open_beauty_facts: bool = False

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "brand": self.brand,
            "category": self.category,
            "assetName": self.asset_name,
            "concerns": [c.value for c in self.concerns],
            "ingredients": [i.to_dict() for i in self.ingredients],
            "barcode": self.barcode,
        }
        if self.rating is not None:
            out["rating"] = self.rating
        for key, attr in {**_OPTIONAL_STRINGS, **_OPTIONAL_LISTS}.items():
            value = getattr(self, attr)
            if value is not None:
                out[key] = value
        if self.last_modified is not None:
            out["lastModified"] = _format_datetime(self.last_modified)
        if self.created_date is not None:
            out["createdDate"] = _format_datetime(self.created_date)
        out["isFromOpenBeautyFacts"] = self.is_from_open_beauty_facts
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Product":
        """Decode a JSON record; a missing ``id`` gets a fresh one."""
        if not isinstance(data, dict):
            raise ProductDecodeError(f"product must be an object, got {type(data).__name__}")
        missing = [k for k in ("name", "brand", "category", "barcode") if data.get(k) is None]
        if missing:
            raise ProductDecodeError(f"product missing required field(s): {', '.join(missing)}")

        rating = data.get("rating")
        try:
            rating = float(rating) if rating is not None else None
        except (TypeError, ValueError) as exc:
            raise ProductDecodeError(f"invalid rating: {rating!r}") from exc

        ingredients = data.get("ingredients") or []
        if not isinstance(ingredients, list):
            raise ProductDecodeError("ingredients must be a list")

        kwargs: Dict[str, Any] = {
            "name": str(data["name"]),
            "brand": str(data["brand"]),
            "category": str(data["category"]),
            "barcode": str(data["barcode"]),
            "asset_name": str(data.get("assetName") or ""),
            "concerns": _concerns(data.get("concerns")),
            "ingredients": [Ingredient.from_dict(i) for i in ingredients],
            "rating": rating,
            "last_modified": _parse_datetime(data.get("lastModified")),
            "created_date": _parse_datetime(data.get("createdDate")),
            "is_from_open_beauty_facts": bool(data.get("isFromOpenBeautyFacts", False)),
        }
        if data.get("id"):
            kwargs["id"] = str(data["id"])
        for key, attr in _OPTIONAL_STRINGS.items():
            value = data.get(key)
            kwargs[attr] = str(value) if value is not None else None
        for key, attr in _OPTIONAL_LISTS.items():
            kwargs[attr] = _str_list(data.get(key))
        return cls(**kwargs)

    # ---------- favorites sync projection ----------
    def to_projection(self) -> Dict[str, Any]:
        """Minimal record pushed to the favorites document store."""
        out: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "brand": self.brand,
            "category": self.category,
            "barcode": self.barcode,
            "assetName": self.asset_name,
        }
        if self.image_url:
            out["imageURL"] = self.image_url
        return out

    @classmethod
    def from_projection(cls, data: Dict[str, Any]) -> "Product":
        return cls(
            id=str(data.get("id") or new_product_id()),
            name=str(data.get("name") or ""),
            brand=str(data.get("brand") or ""),
            category=str(data.get("category") or ""),
            barcode=str(data.get("barcode") or ""),
            asset_name=str(data.get("assetName") or ""),
            image_url=data.get("imageURL"),
        )

    def matches(self, needle: str) -> bool:
        """Case-insensitive substring match over name, brand, category, barcode."""
        n = needle.casefold()
        return any(n in field_value.casefold() for field_value in (self.name, self.brand, self.category, self.barcode))


def decode_products(items: Any) -> List[Product]:
    if not isinstance(items, list):
        raise ProductDecodeError(f"expected a list of products, got {type(items).__name__}")
    return [Product.from_dict(item) for item in items]
