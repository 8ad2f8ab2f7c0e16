"""Reconciles a provisional checkout once the gateway reports back.

Both handlers answer with the URL the browser is redirected to; they never
raise, because the gateway delivers callbacks through a browser redirect.
"""

import logging
from typing import Optional
from urllib.parse import quote

from bson import ObjectId
from bson.errors import InvalidId

from marketplace.checkout import TEMP_TRANSACTION_PREFIX, CartReconciler
from marketplace.utils import utcnow

logger = logging.getLogger(__name__)


def parse_temp_transaction_id(tran_id: Optional[str]) -> Optional[ObjectId]:
    value = str(tran_id or "").strip()
    if not value.startswith(TEMP_TRANSACTION_PREFIX):
        return None
    try:
        return ObjectId(value[len(TEMP_TRANSACTION_PREFIX):])
    except (InvalidId, TypeError):
        return None


class PaymentCallbackHandler:
    def __init__(self, store, frontend_url: str, mailer=None):
        self.store = store
        self.frontend_url = (frontend_url or "").rstrip("/")
        self.mailer = mailer
        self.cart_reconciler = CartReconciler(store.carts)

    def success_url(self, tran_id: str) -> str:
        return f"{self.frontend_url}/payment/success?tran_id={quote(tran_id)}"

    def fail_url(self, tran_id: str) -> str:
        return f"{self.frontend_url}/payment/fail?tran_id={quote(tran_id)}"

    def handle_success(self, tran_id: Optional[str]) -> str:
        provisional_id = parse_temp_transaction_id(tran_id)
        if provisional_id is None:
            return self.fail_url("invalid")

        try:
            provisional = self.store.provisional_checkouts.find_by_id(provisional_id)
            if not provisional:
                # Already reconciled, rolled back or expired.
                logger.info("Success callback for unknown provisional checkout %s", tran_id)
                return self.fail_url(tran_id)
            orders = self.store.run_transaction(self._confirm_payment(provisional))
        except Exception:
            # Orders stay pending/unpaid and need manual reconciliation.
            logger.exception("Payment success reconciliation for %s aborted", tran_id)
            return self.fail_url(tran_id)

        if orders is None:
            return self.fail_url(tran_id)

        logger.info("Payment confirmed for %s: %d orders marked paid", tran_id, len(orders))
        self._send_receipt(provisional, orders)
        return self.success_url(tran_id)

    def _confirm_payment(self, provisional):
        provisional_id = provisional["_id"]
        order_ids = list(provisional.get("orders") or [])
        ordered_products = [entry.get("product_id") for entry in provisional.get("products") or []]

        def callback(session):
            # A concurrent duplicate callback may have reconciled it already.
            if not self.store.provisional_checkouts.find_by_id(provisional_id, session=session):
                return None
            self.store.orders.mark_paid(order_ids, session=session)
            orders = self.store.orders.find_many(order_ids, session=session)
            now = utcnow()
            for order in orders:
                product = self.store.products.find_by_id(order.get("product_id"), session=session)
                if product and product.get("seller_id"):
                    self.store.seller_notifications.insert(
                        {
                            "seller_id": product["seller_id"],
                            "order_id": order["_id"],
                            "notification_type": "Payment Received",
                            "description": f"You have received payment for order ID #{order.get('order_id')}",
                            "created_at": now,
                        },
                        session=session,
                    )
                self.store.activities.insert(
                    {
                        "customer_id": order.get("customer_id"),
                        "order_id": order["_id"],
                        "activity_type": "payment confirmed",
                        "activity_status": f"Payment for order #{order.get('order_id')} has been received",
                        "created_at": now,
                    },
                    session=session,
                )
            self.cart_reconciler.reconcile(provisional["customer_id"], ordered_products, session=session)
            self.store.provisional_checkouts.delete(provisional_id, session=session)
            return orders

        return callback

    def handle_failure(self, tran_id: Optional[str]) -> str:
        """Shared by the fail and cancel callbacks."""
        redirect_to = self.fail_url(tran_id or "unknown")
        provisional_id = parse_temp_transaction_id(tran_id)
        if provisional_id is None:
            return redirect_to

        try:
            provisional = self.store.provisional_checkouts.find_by_id(provisional_id)
            if not provisional:
                return redirect_to
            self.store.run_transaction(self._roll_back(provisional))
        except Exception:
            logger.exception("Payment rollback for %s aborted", tran_id)
            return redirect_to

        logger.info("Provisional checkout %s rolled back", tran_id)
        return redirect_to

    def _roll_back(self, provisional):
        provisional_id = provisional["_id"]
        address_ids = provisional.get("address_ids") or {}

        def callback(session):
            if not self.store.provisional_checkouts.find_by_id(provisional_id, session=session):
                return
            self.store.orders.delete_many(provisional.get("orders") or [], session=session)
            if provisional.get("shipping_info_id"):
                self.store.shipping_infos.delete(provisional["shipping_info_id"], session=session)
            # A primary address picked by id belongs to the customer's book.
            if address_ids.get("primary") and provisional.get("primary_address_created"):
                self.store.addresses.delete(address_ids["primary"], session=session)
            if address_ids.get("optional"):
                self.store.addresses.delete(address_ids["optional"], session=session)
            self.store.provisional_checkouts.delete(provisional_id, session=session)

        return callback

    def _send_receipt(self, provisional, orders):
        if self.mailer is None or not self.mailer.enabled:
            return
        try:
            shipping_info = self.store.shipping_infos.find_by_id(provisional.get("shipping_info_id"))
        except Exception:
            # The payment is already committed; the receipt is best effort.
            logger.exception("Could not load shipping info for the receipt of %s", provisional.get("_id"))
            return
        if not shipping_info:
            return
        total = (provisional.get("checkout_payload") or {}).get("total")
        self.mailer.send_receipt(shipping_info.get("email"), shipping_info.get("full_name"), orders, total)
