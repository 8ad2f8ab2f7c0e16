import logging

from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from marketplace.repositories import (
    AccountRepository,
    AddressRepository,
    CartRepository,
    OrderRepository,
    ProductRepository,
    ProvisionalCheckoutRepository,
    RecentActivityRepository,
    SellerNotificationRepository,
    ShippingInfoRepository,
)

logger = logging.getLogger(__name__)


class MongoStore:
    """Repositories bound to one database, plus the transaction runner.

    Built once in ``create_app`` and handed to the services that need it.
    """

    def __init__(self, client, database):
        self.client = client
        self.database = database
        self.customers = AccountRepository(database.customers)
        self.sellers = AccountRepository(database.sellers)
        self.products = ProductRepository(database.products)
        self.addresses = AddressRepository(database.addresses)
        self.shipping_infos = ShippingInfoRepository(database.shipping_infos)
        self.orders = OrderRepository(database.orders)
        self.carts = CartRepository(database.carts)
        self.seller_notifications = SellerNotificationRepository(database.seller_notifications)
        self.activities = RecentActivityRepository(database.recent_activities)
        self.provisional_checkouts = ProvisionalCheckoutRepository(database.temp_orders)

    def run_transaction(self, callback):
        """Run ``callback(session)`` inside one multi-document transaction.

        ``with_transaction`` commits on return, aborts on exception and
        retries transient transaction errors, so ``callback`` must not keep
        state across invocations.
        """
        with self.client.start_session() as session:
            return session.with_transaction(callback)

    def ensure_indexes(self):
        database = self.database
        try:
            database.customers.create_index("email", unique=True)
            database.sellers.create_index("email", unique=True)
            database.orders.create_index("order_id", unique=True)
            database.orders.create_index("transaction_id", unique=True)
            database.orders.create_index([("customer_id", ASCENDING), ("created_at", DESCENDING)])
            database.orders.create_index("product_id")
            database.products.create_index("seller_id")
            database.addresses.create_index("customer_id")
            database.carts.create_index("customer_id")
            database.seller_notifications.create_index(
                [("seller_id", ASCENDING), ("created_at", DESCENDING)]
            )
            database.recent_activities.create_index(
                [("customer_id", ASCENDING), ("created_at", DESCENDING)]
            )
        except PyMongoError as exc:
            logger.warning("Unable to ensure marketplace indexes: %s", exc)

        try:
            database.temp_orders.create_index("expires_at", expireAfterSeconds=0)
        except PyMongoError as exc:
            logger.warning("Unable to ensure TTL index for provisional checkouts: %s", exc)
