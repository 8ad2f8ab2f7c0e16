"""Checkout: addresses, shipping info, order batch, cart cleanup and the
provisional hold used while a gateway payment is pending.

Everything a checkout writes goes through one database transaction; only the
gateway session call happens after commit.
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Dict, Iterable, List, Optional

from bson import ObjectId
from pymongo.errors import DuplicateKeyError, PyMongoError

from marketplace.errors import (
    AuthorizationError,
    ExternalServiceError,
    MarketplaceError,
    NotFoundError,
    TransactionError,
)
from marketplace.schemas import AddressInput, CheckoutRequest, parse_checkout_request
from marketplace.serializers import serialize_order, serialize_shipping_info
from marketplace.utils import id_str, utcnow

logger = logging.getLogger(__name__)

TEMP_TRANSACTION_PREFIX = "temp_"


class CheckoutStage(str, Enum):
    VALIDATING = "validating"
    ADDRESSES_RESOLVED = "addresses_resolved"
    SHIPPING_CREATED = "shipping_created"
    ORDERS_CREATED = "orders_created"
    COMMITTED = "committed"
    PAYMENT_PENDING = "payment_pending"


@dataclass
class ResolvedShipping:
    shipping_info: Dict
    primary_address_id: ObjectId
    optional_address_id: Optional[ObjectId]
    primary_address_created: bool
    gateway_address: Dict[str, str]


@dataclass
class CheckoutResult:
    payment_method: str
    stage: CheckoutStage
    orders: List[Dict] = field(default_factory=list)
    shipping_info: Optional[Dict] = None
    primary_address_id: Optional[ObjectId] = None
    optional_address_id: Optional[ObjectId] = None
    order_summary: Optional[Dict] = None
    provisional_checkout_id: Optional[ObjectId] = None
    gateway_address: Dict[str, str] = field(default_factory=dict)
    payment_url: Optional[str] = None
    session_key: Optional[str] = None

    def to_response(self) -> Dict:
        if self.payment_method == "gateway":
            return {
                "success": True,
                "message": "Payment session created",
                "data": {"paymentUrl": self.payment_url, "sessionkey": self.session_key},
            }
        return {
            "success": True,
            "message": "Orders created successfully",
            "data": {
                "orders": [serialize_order(order) for order in self.orders],
                "shippingInfo": serialize_shipping_info(self.shipping_info),
                "addresses": {
                    "primary": id_str(self.primary_address_id),
                    "optional": id_str(self.optional_address_id),
                },
                "orderSummary": self.order_summary,
            },
        }


def gateway_address_fields(address_document) -> Dict[str, str]:
    return {
        "address_line": address_document.get("address_line") or "",
        "city": address_document.get("city") or "",
        "zip_code": address_document.get("zip_code") or "",
        "country": address_document.get("country") or "",
        "state": address_document.get("state") or "",
    }


class AddressResolver:
    def __init__(self, store):
        self.store = store

    def _create_address(self, customer_id: ObjectId, address: AddressInput, session) -> Dict:
        now = utcnow()
        return self.store.addresses.insert(
            {
                "customer_id": customer_id,
                "name": address.name or "Unnamed",
                "address_line": address.address_line,
                "city": address.city,
                "zip_code": address.zip_code,
                "country": address.country,
                "state": address.state or "",
                "is_default": False,
                "created_at": now,
                "updated_at": now,
            },
            session=session,
        )

    def resolve(self, customer_id: ObjectId, request: CheckoutRequest, session=None) -> ResolvedShipping:
        optional_address_id = None
        if request.address_id is not None:
            existing = self.store.addresses.find_owned(request.address_id, customer_id, session=session)
            if not existing:
                raise NotFoundError("Address not found")
            primary = existing
            primary_created = False
        else:
            primary = self._create_address(customer_id, request.primary_address, session)
            primary_created = True
            if request.secondary_address is not None:
                optional = self._create_address(customer_id, request.secondary_address, session)
                optional_address_id = optional["_id"]

        shipping_info = self.store.shipping_infos.insert(
            {
                "customer_id": customer_id,
                "full_name": request.full_name,
                "phone_number": request.phone_number,
                "email": request.email,
                "address_id": primary["_id"],
                "optional_address_id": optional_address_id,
                "created_at": utcnow(),
            },
            session=session,
        )
        return ResolvedShipping(
            shipping_info=shipping_info,
            primary_address_id=primary["_id"],
            optional_address_id=optional_address_id,
            primary_address_created=primary_created,
            gateway_address=gateway_address_fields(primary),
        )


class OrderBatchCreator:
    def __init__(self, store, identifiers):
        self.store = store
        self.identifiers = identifiers

    def create(
        self, customer_id: ObjectId, request: CheckoutRequest, shipping_info_id: ObjectId, session=None
    ) -> List[Dict]:
        created_orders = []
        for item in request.items:
            now = utcnow()
            order = self.store.orders.insert(
                {
                    "order_id": self.identifiers.order_id(session=session),
                    "transaction_id": self.identifiers.transaction_id(session=session),
                    "customer_id": customer_id,
                    "product_id": item.product_id,
                    "quantity": item.quantity,
                    "price": item.price,
                    "payment_method": request.payment_method,
                    "shipping_info_id": shipping_info_id,
                    "payment_status": "pending",
                    "order_status": "pending",
                    "created_at": now,
                    "updated_at": now,
                },
                session=session,
            )
            created_orders.append(order)

            product = self.store.products.find_by_id(item.product_id, session=session)
            if product and product.get("seller_id"):
                self.store.seller_notifications.insert(
                    {
                        "seller_id": product["seller_id"],
                        "order_id": order["_id"],
                        "notification_type": "order placed",
                        "description": f"An order has been placed for '{product.get('title', '')}'",
                        "created_at": now,
                    },
                    session=session,
                )

            self.store.activities.insert(
                {
                    "customer_id": customer_id,
                    "order_id": order["_id"],
                    "activity_type": "order added",
                    "activity_status": f"Your order #{order['order_id']} has been placed",
                    "created_at": now,
                },
                session=session,
            )
        return created_orders


class CartReconciler:
    def __init__(self, carts):
        self.carts = carts

    def reconcile(self, customer_id: ObjectId, product_ids: Iterable, session=None) -> Dict[str, int]:
        ordered = {str(product_id) for product_id in product_ids}
        updated = deleted = 0
        for cart in self.carts.list_by_customer(customer_id, session=session):
            current = cart.get("product_ids") or []
            remaining = [pid for pid in current if str(pid) not in ordered]
            if len(remaining) == len(current):
                continue
            if not remaining:
                self.carts.delete(cart["_id"], session=session)
                deleted += 1
            else:
                self.carts.replace_products(cart["_id"], remaining, session=session)
                updated += 1
        return {"updated": updated, "deleted": deleted}


def run_checkout_transaction(store, callback, description: str):
    """Run ``callback`` in a transaction, re-running it once on a duplicate
    order or transaction identifier raised by the unique indexes."""
    for attempt in (1, 2):
        try:
            return store.run_transaction(callback)
        except DuplicateKeyError as exc:
            if attempt == 2:
                raise TransactionError(details=str(exc))
            logger.warning("%s hit a duplicate identifier, retrying once: %s", description, exc)
        except MarketplaceError:
            raise
        except PyMongoError as exc:
            logger.error("%s aborted: %s", description, exc)
            raise TransactionError(details=str(exc))
        except Exception as exc:
            logger.exception("%s aborted", description)
            raise TransactionError(details=str(exc))


class CheckoutService:
    def __init__(self, store, gateway, identifiers, mailer=None, config=None):
        config = config or {}
        self.store = store
        self.gateway = gateway
        self.mailer = mailer
        self.addresses = AddressResolver(store)
        self.order_batches = OrderBatchCreator(store, identifiers)
        self.cart_reconciler = CartReconciler(store.carts)
        self.backend_url = str(config.get("BACKEND_URL") or "").rstrip("/")
        self.currency = config.get("PAYMENT_CURRENCY") or "BDT"
        self.provisional_ttl = timedelta(
            seconds=int(config.get("PROVISIONAL_CHECKOUT_TTL_SECONDS") or 3600)
        )

    def checkout(self, customer_id: Optional[ObjectId], payload) -> CheckoutResult:
        if customer_id is None:
            raise AuthorizationError("Customer ID is required")
        request = parse_checkout_request(payload)

        if request.payment_method == "cod":
            result = self._commit_cash_on_delivery(customer_id, request)
            logger.info(
                "COD checkout committed for customer %s: %d orders",
                customer_id,
                len(result.orders),
            )
            self._send_receipt(request, result.orders)
            return result

        result = self._commit_provisional(customer_id, request)
        logger.info(
            "Gateway checkout %s committed for customer %s: %d pending orders",
            result.provisional_checkout_id,
            customer_id,
            len(result.orders),
        )
        return self._open_payment_session(request, result)

    def _create_orders(self, customer_id, request, session, result: CheckoutResult) -> ResolvedShipping:
        resolved = self.addresses.resolve(customer_id, request, session=session)
        result.stage = CheckoutStage.SHIPPING_CREATED
        result.orders = self.order_batches.create(
            customer_id, request, resolved.shipping_info["_id"], session=session
        )
        result.stage = CheckoutStage.ORDERS_CREATED
        result.shipping_info = resolved.shipping_info
        result.primary_address_id = resolved.primary_address_id
        result.optional_address_id = resolved.optional_address_id
        result.gateway_address = resolved.gateway_address
        return resolved

    def _commit_cash_on_delivery(self, customer_id, request: CheckoutRequest) -> CheckoutResult:
        def callback(session):
            result = CheckoutResult(payment_method="cod", stage=CheckoutStage.VALIDATING)
            self._create_orders(customer_id, request, session, result)
            self.cart_reconciler.reconcile(customer_id, request.product_ids, session=session)
            result.order_summary = request.order_summary(len(result.orders))
            return result

        result = run_checkout_transaction(self.store, callback, "COD checkout")
        result.stage = CheckoutStage.COMMITTED
        return result

    def _commit_provisional(self, customer_id, request: CheckoutRequest) -> CheckoutResult:
        def callback(session):
            result = CheckoutResult(payment_method="gateway", stage=CheckoutStage.VALIDATING)
            resolved = self._create_orders(customer_id, request, session, result)
            now = utcnow()
            provisional = self.store.provisional_checkouts.insert(
                {
                    "customer_id": customer_id,
                    "orders": [order["_id"] for order in result.orders],
                    "shipping_info_id": resolved.shipping_info["_id"],
                    "address_ids": {
                        "primary": resolved.primary_address_id,
                        "optional": resolved.optional_address_id,
                    },
                    "primary_address_created": resolved.primary_address_created,
                    "checkout_payload": request.stored_payload(),
                    "products": [item.snapshot() for item in request.items],
                    "gateway_address": resolved.gateway_address,
                    "created_at": now,
                    "expires_at": now + self.provisional_ttl,
                },
                session=session,
            )
            result.provisional_checkout_id = provisional["_id"]
            return result

        result = run_checkout_transaction(self.store, callback, "Gateway checkout")
        result.stage = CheckoutStage.PAYMENT_PENDING
        return result

    def payment_details(self, request: CheckoutRequest, result: CheckoutResult) -> Dict:
        address = result.gateway_address
        tran_id = f"{TEMP_TRANSACTION_PREFIX}{result.provisional_checkout_id}"
        total = request.total
        if total is None:
            total = round(sum(item.price * item.quantity for item in request.items), 2)
        secondary_line = request.secondary_address.address_line if request.secondary_address else ""
        return {
            "total_amount": total,
            "currency": self.currency,
            "tran_id": tran_id,
            "success_url": f"{self.backend_url}/api/payment/success?tran_id={tran_id}",
            "fail_url": f"{self.backend_url}/api/payment/fail?tran_id={tran_id}",
            "cancel_url": f"{self.backend_url}/api/payment/cancel?tran_id={tran_id}",
            "ipn_url": f"{self.backend_url}/api/payment/ipn",
            "shipping_method": "Courier",
            "product_name": f"Order for {len(result.orders)} items",
            "product_category": "Electronic",
            "product_profile": "general",
            "cus_name": request.full_name,
            "cus_email": request.email,
            "cus_add1": address.get("address_line", ""),
            "cus_add2": secondary_line,
            "cus_city": address.get("city", ""),
            "cus_state": address.get("state", ""),
            "cus_postcode": address.get("zip_code", ""),
            "cus_country": address.get("country", ""),
            "cus_phone": request.phone_number,
            "cus_fax": "",
            "ship_name": request.full_name,
            "ship_add1": address.get("address_line", ""),
            "ship_add2": secondary_line,
            "ship_city": address.get("city", ""),
            "ship_state": address.get("state", ""),
            "ship_postcode": address.get("zip_code", ""),
            "ship_country": address.get("country", ""),
        }

    def _open_payment_session(self, request: CheckoutRequest, result: CheckoutResult) -> CheckoutResult:
        details = self.payment_details(request, result)
        try:
            session = self.gateway.init(details)
        except ExternalServiceError:
            # The committed orders stay pending; the TTL index only removes
            # the provisional record.
            logger.warning(
                "Payment session failed for %s; %d pending orders left in place",
                details["tran_id"],
                len(result.orders),
            )
            raise
        result.payment_url = session.payment_url
        result.session_key = session.session_key
        logger.info("Payment session opened for %s", details["tran_id"])
        return result

    def _send_receipt(self, request: CheckoutRequest, orders: List[Dict]):
        if self.mailer is None or not self.mailer.enabled:
            return
        self.mailer.send_receipt(request.email, request.full_name, orders, request.total)
