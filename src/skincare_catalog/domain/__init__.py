from .models import Concern, Ingredient, Product, decode_products, new_product_id
from .normalize import (
    calculate_rating,
    extract_category,
    extract_concerns,
    generate_name,
    parse_ingredients,
    product_from_obf,
)

__all__ = [
    "Concern",
    "Ingredient",
    "Product",
    "calculate_rating",
    "decode_products",
    "extract_category",
    "extract_concerns",
    "generate_name",
    "new_product_id",
    "parse_ingredients",
    "product_from_obf",
]
