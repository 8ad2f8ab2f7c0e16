from typing import Dict, List

from bson import ObjectId

from marketplace.errors import NotFoundError, ValidationError
from marketplace.serializers import serialize_product
from marketplace.utils import safe_float, safe_int, utcnow


def _parse_tags(value) -> List[str]:
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, list):
        return []
    return [str(tag).strip() for tag in value if str(tag).strip()]


def parse_product(payload) -> Dict:
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    title = str(payload.get("title") or "").strip()
    if not title:
        raise ValidationError("Title is required")

    price = safe_float(payload.get("price"))
    if price is None or price < 0:
        raise ValidationError("Price must be a non-negative number")

    quantity = safe_int(payload.get("quantity"), 0)
    if quantity is None or quantity < 0:
        raise ValidationError("Quantity must be a non-negative whole number")

    sale_price = safe_float(payload.get("salePrice"))
    if sale_price is not None and sale_price < 0:
        raise ValidationError("Sale price must be a non-negative number")

    return {
        "title": title,
        "description": str(payload.get("description") or "").strip(),
        "category": str(payload.get("category") or "").strip(),
        "brand": str(payload.get("brand") or "").strip(),
        "model": str(payload.get("model") or "").strip(),
        "price": round(price, 2),
        "sale_price": round(sale_price, 2) if sale_price is not None else None,
        "quantity": quantity,
        "sku": str(payload.get("sku") or "").strip() or None,
        "tags": _parse_tags(payload.get("tags")),
        "negotiable": bool(payload.get("negotiable")),
    }


class ProductService:
    def __init__(self, store):
        self.store = store

    def create(self, seller_id: ObjectId, payload) -> Dict:
        document = parse_product(payload)
        now = utcnow()
        document.update({"seller_id": seller_id, "created_at": now, "updated_at": now})
        return serialize_product(self.store.products.insert(document))

    def list_for_seller(self, seller_id: ObjectId) -> List[Dict]:
        return [serialize_product(product) for product in self.store.products.list_by_seller(seller_id)]

    def get(self, product_id: ObjectId) -> Dict:
        product = self.store.products.find_by_id(product_id)
        if not product:
            raise NotFoundError("Product not found")
        return serialize_product(product)
