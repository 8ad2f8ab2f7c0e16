import logging
from typing import Dict, List, Optional, Tuple

from bson import ObjectId

from marketplace.checkout import run_checkout_transaction
from marketplace.errors import AuthorizationError, ForbiddenError, NotFoundError
from marketplace.schemas import BUY_AGAIN, ORDER_STATUSES
from marketplace.security import Actor
from marketplace.serializers import (
    serialize_address,
    serialize_order,
    serialize_shipping_info,
    stock_status,
)
from marketplace.utils import id_str, isoformat, utcnow

logger = logging.getLogger(__name__)


class OrderService:
    def __init__(self, store, identifiers):
        self.store = store
        self.identifiers = identifiers

    def _product_titles(self, orders: List[Dict]) -> Dict[str, str]:
        product_ids = {order.get("product_id") for order in orders if order.get("product_id")}
        return {
            str(product["_id"]): product.get("title") or ""
            for product in self.store.products.find_many(product_ids)
        }

    def customer_orders(self, customer_id: ObjectId) -> List[Dict]:
        orders = self.store.orders.list_by_customer(customer_id)
        titles = self._product_titles(orders)
        return [
            serialize_order(order, titles.get(str(order.get("product_id")), "Unknown Product"))
            for order in orders
        ]

    def customer_payments(self, customer_id: ObjectId) -> List[Dict]:
        orders = self.store.orders.list_by_customer(customer_id)
        titles = self._product_titles(orders)
        return [serialize_order(order, titles.get(str(order.get("product_id")))) for order in orders]

    def seller_orders(self, seller_id: ObjectId) -> List[Dict]:
        product_ids = self.store.products.ids_by_seller(seller_id)
        if not product_ids:
            return []
        orders = self.store.orders.list_by_products(product_ids)
        names: Dict[str, str] = {}
        transformed = []
        for order in orders:
            customer_key = str(order.get("customer_id"))
            if customer_key not in names:
                customer = self.store.customers.find_by_id(order.get("customer_id")) or {}
                names[customer_key] = (
                    f"{customer.get('first_name', '')} {customer.get('last_name', '')}".strip()
                )
            transformed.append(
                {
                    "_id": id_str(order.get("_id")),
                    "orderId": order.get("order_id"),
                    "status": order.get("order_status"),
                    "paymentStatus": order.get("payment_status"),
                    "price": order.get("price"),
                    "quantity": order.get("quantity"),
                    "customerName": names[customer_key],
                    "createdAt": isoformat(order.get("created_at")),
                    "updatedAt": isoformat(order.get("updated_at")),
                }
            )
        return transformed

    def seller_payments(self, seller_id: ObjectId) -> List[Dict]:
        products = self.store.products.list_by_seller(seller_id)
        if not products:
            return []
        titles = {str(product["_id"]): product.get("title") for product in products}
        orders = self.store.orders.list_by_products([product["_id"] for product in products])
        return [serialize_order(order, titles.get(str(order.get("product_id")))) for order in orders]

    def seller_order_detail(self, seller_id: ObjectId, order_id: ObjectId) -> Dict:
        order = self.store.orders.find_by_id(order_id)
        product = self.store.products.find_by_id(order.get("product_id")) if order else None
        if not order or not product or product.get("seller_id") != seller_id:
            raise NotFoundError("Order not found or unauthorized")

        shipping_info = self.store.shipping_infos.find_by_id(order.get("shipping_info_id"))
        primary = optional = None
        if shipping_info:
            primary = self.store.addresses.find_by_id(shipping_info.get("address_id"))
            if shipping_info.get("optional_address_id"):
                optional = self.store.addresses.find_by_id(shipping_info["optional_address_id"])

        detail = serialize_order(order)
        detail["product"] = {
            "_id": id_str(product.get("_id")),
            "title": product.get("title") or "",
            "price": product.get("price"),
            "salePrice": product.get("sale_price"),
            "category": product.get("category") or "",
            "brand": product.get("brand") or "",
            "model": product.get("model") or "",
            "sku": product.get("sku"),
            "quantity": product.get("quantity", 0),
            "stockStatus": stock_status(product.get("quantity")),
        }
        detail["shippingInfo"] = serialize_shipping_info(shipping_info)
        if detail["shippingInfo"]:
            detail["shippingInfo"]["address"] = serialize_address(primary)
            detail["shippingInfo"]["optionalAddress"] = serialize_address(optional)
        return detail

    def status_counts(self, seller_id: ObjectId) -> Dict[str, int]:
        result = {status: 0 for status in ORDER_STATUSES}
        product_ids = self.store.products.ids_by_seller(seller_id)
        if not product_ids:
            return result
        for status, count in self.store.orders.status_counts(product_ids).items():
            result[status] = count
        return result

    def _authorize(self, actor: Actor, order: Dict) -> Optional[Dict]:
        product = self.store.products.find_by_id(order.get("product_id"))
        if actor.role == "seller":
            if not product or product.get("seller_id") != actor.id:
                raise ForbiddenError("You are not authorized to update this order.")
        elif actor.role == "customer":
            if order.get("customer_id") != actor.id:
                raise ForbiddenError("You are not authorized to update this order.")
        else:
            raise AuthorizationError("Unauthorized request.")
        return product

    def update_status(self, actor: Actor, order_id: ObjectId, order_status: str) -> Tuple[Dict, bool]:
        """Apply a status change, or clone the order for ``buy again``.

        Returns the resulting order and whether it is a newly created one.
        """
        order = self.store.orders.find_by_id(order_id)
        if not order:
            raise NotFoundError("Order not found.")
        product = self._authorize(actor, order)

        if order_status == BUY_AGAIN:
            return self._buy_again(order), True

        updated = self.store.orders.set_order_status(order["_id"], order_status)
        now = utcnow()
        self.store.activities.insert(
            {
                "customer_id": order.get("customer_id"),
                "order_id": order["_id"],
                "activity_type": f"order {order_status}",
                "activity_status": f"Your order #{order.get('order_id')} has been {order_status}",
                "created_at": now,
            }
        )
        if actor.role == "customer" and product and product.get("seller_id"):
            self.store.seller_notifications.insert(
                {
                    "seller_id": product["seller_id"],
                    "order_id": order["_id"],
                    "notification_type": f"Order {order_status}",
                    "description": f"Order #{order.get('order_id')} has been {order_status} by the customer.",
                    "created_at": now,
                }
            )
        logger.info("Order %s set to %s by %s %s", order.get("order_id"), order_status, actor.role, actor.id)
        return updated, False

    def _buy_again(self, original: Dict) -> Dict:
        def callback(session):
            now = utcnow()
            clone = {
                key: value
                for key, value in original.items()
                if key not in ("_id", "order_id", "transaction_id", "created_at", "updated_at")
            }
            clone.update(
                {
                    "order_id": self.identifiers.order_id(session=session),
                    "transaction_id": self.identifiers.transaction_id(session=session),
                    "payment_status": "pending",
                    "order_status": "pending",
                    "created_at": now,
                    "updated_at": now,
                }
            )
            new_order = self.store.orders.insert(clone, session=session)
            self.store.activities.insert(
                {
                    "customer_id": new_order.get("customer_id"),
                    "order_id": new_order["_id"],
                    "activity_type": "order added",
                    "activity_status": f"Your order #{new_order['order_id']} has been placed",
                    "created_at": now,
                },
                session=session,
            )
            return new_order

        new_order = run_checkout_transaction(self.store, callback, "Buy again")
        logger.info("Order %s re-ordered as %s", original.get("order_id"), new_order.get("order_id"))
        return new_order

    def customer_stats(self, customer_id: ObjectId) -> Dict[str, int]:
        carts = self.store.carts.list_by_customer(customer_id)
        return {
            "totalOrders": self.store.orders.count_by_customer(customer_id),
            "pendingOrders": self.store.orders.count_by_customer(customer_id, "pending"),
            "totalCartItems": sum(len(cart.get("product_ids") or []) for cart in carts),
        }

