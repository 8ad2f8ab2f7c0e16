import pytest

from marketplace import create_app
from marketplace.security import hash_password
from marketplace.utils import utcnow
from tests.fakes import FakeGateway, InMemoryStore
from tests.helpers import auth_headers

TEST_CONFIG = {
    "TESTING": True,
    "JWT_SECRET_KEY": "test-secret-key-that-is-long-enough-for-hs256",
    "FRONTEND_URL": "http://shop.test",
    "BACKEND_URL": "http://api.test",
    "SSLCOMMERZ_STORE_ID": "store",
    "SSLCOMMERZ_STORE_PASSWORD": "secret",
    "RESEND_ORDER_API_KEY": "",
    "LOG_LEVEL": "DEBUG",
}


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def app(store, gateway):
    return create_app(config=TEST_CONFIG, store=store, gateway=gateway)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def services(app):
    return app.extensions["marketplace"]


@pytest.fixture
def customer(store):
    return store.customers.insert(
        {
            "first_name": "Ada",
            "last_name": "Lovelace",
            "email": "ada@example.com",
            "password": hash_password("secret-pass"),
            "phone": "0123456789",
            "last_notification_seen_at": None,
        }
    )


@pytest.fixture
def other_customer(store):
    return store.customers.insert(
        {
            "first_name": "Grace",
            "last_name": "Hopper",
            "email": "grace@example.com",
            "password": hash_password("secret-pass"),
            "last_notification_seen_at": None,
        }
    )


@pytest.fixture
def seller(store):
    return store.sellers.insert(
        {
            "name": "Gadget Hub",
            "email": "seller@example.com",
            "password": hash_password("seller-pass"),
            "last_notification_seen_at": None,
        }
    )


@pytest.fixture
def customer_headers(app, customer):
    return auth_headers(app, customer["_id"], "customer")


@pytest.fixture
def seller_headers(app, seller):
    return auth_headers(app, seller["_id"], "seller")


@pytest.fixture
def products(store, seller):
    created = []
    for title, price, quantity in (("Keyboard", 50.0, 20), ("Mouse", 25.0, 5), ("Monitor", 199.0, 0)):
        created.append(
            store.products.insert(
                {
                    "seller_id": seller["_id"],
                    "title": title,
                    "price": price,
                    "quantity": quantity,
                    "created_at": utcnow(),
                }
            )
        )
    return created
