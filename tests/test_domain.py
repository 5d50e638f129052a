from __future__ import annotations

from datetime import datetime, timezone

import pytest

from skincare_catalog.domain import (
    calculate_rating,
    extract_category,
    extract_concerns,
    generate_name,
    parse_ingredients,
    product_from_obf,
)
from skincare_catalog.domain.models import Concern, Ingredient, Product, decode_products
from skincare_catalog.errors import ProductDecodeError


def test_product_json_uses_camel_case_keys() -> None:
    p = Product(
        id="fixed-id",
        name="Cicaplast Baume B5",
        brand="La Roche-Posay",
        category="Moisturizer",
        barcode="3337872413056",
        asset_name="lrp_cicaplast",
        concerns=[Concern.REDNESS, Concern.SENSITIVITY],
        ingredients=[Ingredient("Panthenol", "Vitamin B5", "soothing", note="Calms irritation")],
        rating=4.6,
        image_url="https://example.test/img.jpg",
        last_modified=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        is_from_open_beauty_facts=True,
    )
    data = p.to_dict()

    assert data["assetName"] == "lrp_cicaplast"
    assert data["imageURL"] == "https://example.test/img.jpg"
    assert data["lastModified"] == "2024-05-01T12:00:00Z"
    assert data["concerns"] == ["redness", "sensitivity"]
    assert data["ingredients"][0] == {
        "inciName": "Panthenol",
        "commonName": "Vitamin B5",
        "role": "soothing",
        "note": "Calms irritation",
    }
    assert "quantity" not in data
    assert Product.from_dict(data) == p


def test_from_dict_fills_defaults() -> None:
    p = Product.from_dict(
        {
            "name": "Toner",
            "brand": "Klairs",
            "category": "Toner",
            "barcode": "1",
            "concerns": ["dryness", "glow", "DRYNESS"],
        }
    )

    assert p.id
    assert p.concerns == [Concern.DRYNESS]
    assert p.ingredients == []
    assert p.rating is None
    assert p.is_from_open_beauty_facts is False


def test_from_dict_rejects_incomplete_records() -> None:
    with pytest.raises(ProductDecodeError):
        Product.from_dict({"name": "x", "brand": "y", "category": "z"})
    with pytest.raises(ProductDecodeError):
        Product.from_dict({"name": "x", "brand": "y", "category": "z", "barcode": "1", "rating": "great"})
    with pytest.raises(ProductDecodeError):
        decode_products({"products": []})


def test_projection_is_minimal() -> None:
    p = Product(name="Serum", brand="B", category="Treatment", barcode="42", rating=5.0)
    projection = p.to_projection()

    assert set(projection) == {"id", "name", "brand", "category", "barcode", "assetName"}
    back = Product.from_projection(projection)
    assert (back.id, back.name, back.barcode) == (p.id, "Serum", "42")


def test_matches_is_case_insensitive_across_fields() -> None:
    p = Product(name="Gentle Foaming Cleanser", brand="CeraVe", category="Cleanser", barcode="3337875597180")
    assert p.matches("foaming")
    assert p.matches("CERAVE")
    assert p.matches("5597")
    assert not p.matches("retinol")


def test_extract_category_first_rule_wins() -> None:
    assert extract_category(["en:face-cleansers", "en:creams"]) == "Cleanser"
    assert extract_category(["en:night-cream"]) == "Moisturizer"
    assert extract_category(["en:sun-protection"]) == "Sunscreen"
    assert extract_category(["en:shampoos"]) == "Hair Care"
    assert extract_category([]) == "Personal Care"


def test_extract_concerns_from_tags() -> None:
    concerns = extract_concerns(["en:anti-aging-creams"], ["en:sensitive-skin", "en:hypoallergenic", "en:oily-skin"])
    assert concerns == [Concern.AGING, Concern.SENSITIVITY, Concern.OILINESS]
    assert extract_concerns(None, None) == []


def test_parse_ingredients_splits_and_trims() -> None:
    parsed = parse_ingredients("Aqua, Glycerin; Niacinamide,, ")
    assert [i.inci_name for i in parsed] == ["Aqua", "Glycerin", "Niacinamide"]
    assert parse_ingredients(None) == []


def test_calculate_rating_averages_signals() -> None:
    assert calculate_rating({}) is None
    assert calculate_rating({"nutrition_grades": "a"}) == 5.0
    assert calculate_rating({"nova_group": "4", "ingredients_text": "aqua"}) == 2.5
    assert calculate_rating({"ecoscore_grade": "e", "image_url": "x"}) == 1.5


def test_generate_name_fallbacks() -> None:
    assert generate_name({"brands": "Nivea", "quantity": "50 ml"}) == "Nivea 50 ml"
    assert generate_name({"code": "123"}) == "Product 123"


def test_product_from_obf_maps_fields() -> None:
    raw = {
        "code": "3600523614455",
        "product_name": "Hydra Genius",
        "brands": "L'Oréal",
        "categories_tags": ["en:moisturizers"],
        "labels_tags": ["en:dry-skin"],
        "ingredients_text": "Aqua, Glycerin",
        "image_url": "https://images.example/1.jpg",
        "quantity": "70 ml",
        "last_modified_t": 1700000000,
    }
    p = product_from_obf(raw)

    assert p.name == "Hydra Genius"
    assert p.barcode == "3600523614455"
    assert p.category == "Moisturizer"
    assert p.concerns == [Concern.DRYNESS]
    assert [i.inci_name for i in p.ingredients] == ["Aqua", "Glycerin"]
    assert p.rating == 2.5
    assert p.is_from_open_beauty_facts is True
    assert p.last_modified == datetime.fromtimestamp(1700000000, tz=timezone.utc)


def test_product_from_obf_defaults() -> None:
    p = product_from_obf({"code": "9"})
    assert p.name == "Product 9"
    assert p.brand == "Unknown Brand"
    assert p.category == "Personal Care"
    assert p.rating is None
