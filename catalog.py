"""Catalog store: product CRUD and free-text search."""
import json
import logging
import re
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

import database
import images
from database import create_document, serialize_doc, to_object_id, utcnow
from errors import NotFound, ValidationError
from schemas import Product, first_error_message

logger = logging.getLogger(__name__)

SEARCH_FIELDS = ("name", "description", "category", "tags")


def _products():
    return database.get_db()["product"]


def validate_product(data: dict) -> Product:
    try:
        return Product.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(first_error_message(e))


def _find_product(product_id) -> dict:
    oid = to_object_id(product_id)
    product = _products().find_one({"_id": oid}) if oid else None
    if not product:
        raise NotFound("Product not found")
    return product


def _parse_json(raw: Optional[str], field: str):
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be valid JSON")


def product_data_from_form(
    name: Optional[str] = None,
    description: Optional[str] = None,
    price: Optional[str] = None,
    category: Optional[str] = None,
    tags: Optional[str] = None,
    variants: Optional[str] = None,
    inventory: Optional[str] = None,
    quantity: Optional[str] = None,
    in_stock: Optional[str] = None,
    category_data: Optional[str] = None,
) -> dict:
    """Turn multipart form fields (all strings) into a product payload."""
    if not name or not description or not price or not category:
        raise ValidationError("Please fill all required fields: name, description, price, and category")
    try:
        price_value = float(price)
    except ValueError:
        raise ValidationError("price must be a number")

    data = {
        "name": name,
        "description": description,
        "price": price_value,
        "category": category,
        "tags": [t.strip() for t in tags.split(",") if t.strip()] if tags else [],
        "variants": _parse_json(variants, "variants") if variants else [],
    }
    if inventory:
        data["inventory"] = _parse_json(inventory, "inventory")
    else:
        try:
            qty = int(quantity or "0")
        except ValueError:
            raise ValidationError("quantity must be an integer")
        data["inventory"] = {"quantity": qty, "in_stock": (in_stock or "").lower() == "true"}
    if category_data:
        try:
            data["category_data"] = json.loads(category_data)
        except ValueError:
            data["category_data"] = category_data
    return data


def create_product(data: dict) -> dict:
    product = validate_product(data)
    product_id = create_document("product", product)
    logger.info("Created product %s (%s)", product_id, product.name)
    return serialize_doc(_products().find_one({"_id": to_object_id(product_id)}))


def list_products() -> List[dict]:
    return serialize_doc(database.get_documents("product"))


def search_products(term: str) -> List[dict]:
    """Case-insensitive substring match over name, description, category or tags."""
    pattern = re.escape(term)
    filt = {"$or": [{field: {"$regex": pattern, "$options": "i"}} for field in SEARCH_FIELDS]}
    return serialize_doc(database.get_documents("product", filt))


def get_product(product_id) -> dict:
    return serialize_doc(_find_product(product_id))


def update_product(product_id, patch: dict) -> dict:
    """Merge a partial payload into the stored product and re-validate the whole.

    inventory.in_stock is written as given; it is not recomputed from quantity here.
    """
    current = _find_product(product_id)
    merged = {k: v for k, v in current.items() if k in Product.model_fields}
    merged.update(patch)
    product = validate_product(merged)
    update = product.model_dump()
    update["updated_at"] = utcnow()
    _products().update_one({"_id": current["_id"]}, {"$set": update})
    return serialize_doc(_products().find_one({"_id": current["_id"]}))


def delete_product(product_id) -> None:
    product = _find_product(product_id)
    _products().delete_one({"_id": product["_id"]})
    logger.info("Deleted product %s", product["_id"])
    if product.get("image"):
        images.delete_image(product["image"])
