import logging
from typing import Dict, List

from bson import ObjectId

from marketplace.errors import NotFoundError, ValidationError
from marketplace.serializers import serialize_cart
from marketplace.utils import parse_object_id, utcnow

logger = logging.getLogger(__name__)

DEFAULT_CART_TITLE = "My Cart"


class CartService:
    """Titled carts holding a set of product references per customer."""

    def __init__(self, store):
        self.store = store

    def _products_by_id(self, carts: List[Dict]) -> Dict[str, Dict]:
        product_ids = {pid for cart in carts for pid in cart.get("product_ids") or []}
        if not product_ids:
            return {}
        return {str(product["_id"]): product for product in self.store.products.find_many(product_ids)}

    def add(self, customer_id: ObjectId, payload) -> Dict:
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object")

        raw_ids = payload.get("productIds")
        if raw_ids is None and payload.get("productId"):
            raw_ids = [payload.get("productId")]
        if not isinstance(raw_ids, list) or not raw_ids:
            raise ValidationError("At least one productId is required")

        product_ids: List[ObjectId] = []
        for raw_id in raw_ids:
            product_id = parse_object_id(raw_id, "product identifier")
            if product_id not in product_ids:
                product_ids.append(product_id)
        found = {product["_id"] for product in self.store.products.find_many(product_ids)}
        missing = [str(pid) for pid in product_ids if pid not in found]
        if missing:
            raise NotFoundError("Product not found", details={"productIds": missing})

        title = str(payload.get("title") or "").strip() or DEFAULT_CART_TITLE
        cart = self.store.carts.find_by_title(customer_id, title)
        if cart:
            cart = self.store.carts.add_products(cart["_id"], product_ids)
        else:
            now = utcnow()
            cart = self.store.carts.insert(
                {
                    "customer_id": customer_id,
                    "title": title,
                    "product_ids": product_ids,
                    "created_at": now,
                    "updated_at": now,
                }
            )
            logger.info("Customer %s created cart %s", customer_id, cart["_id"])
        return serialize_cart(cart, self._products_by_id([cart]))

    def list_for_customer(self, customer_id: ObjectId) -> List[Dict]:
        carts = self.store.carts.list_by_customer(customer_id)
        products_by_id = self._products_by_id(carts)
        return [serialize_cart(cart, products_by_id) for cart in carts]

    def delete(self, customer_id: ObjectId, cart_id: ObjectId) -> None:
        if not self.store.carts.delete_owned(cart_id, customer_id):
            raise NotFoundError("Cart not found")
