import re

import bson
from pymongo.errors import DuplicateKeyError, PyMongoError

from tests.helpers import checkout_payload


def test_cash_on_delivery_creates_one_order_per_line_item(client, store, customer_headers, products):
    response = client.post(
        "/api/orders/add-order", json=checkout_payload(products[:2]), headers=customer_headers
    )

    assert response.status_code == 201
    body = response.get_json()
    assert body["success"] is True
    data = body["data"]
    assert len(data["orders"]) == 2
    shipping_id = data["shippingInfo"]["_id"]
    assert {order["shippingInfoId"] for order in data["orders"]} == {shipping_id}
    assert all(re.match(r"^ORD-\d{5}$", order["orderId"]) for order in data["orders"])
    assert all(re.match(r"^TXN-\d{7}$", order["transactionId"]) for order in data["orders"])
    assert len({order["orderId"] for order in data["orders"]}) == 2
    assert all(order["paymentStatus"] == "pending" for order in data["orders"])
    assert data["orderSummary"]["totalOrders"] == 2
    assert data["orderSummary"]["total"] == 80.0
    assert data["addresses"]["optional"] is None

    assert len(store.all("orders")) == 2
    assert len(store.all("addresses")) == 1
    assert len(store.all("shipping_infos")) == 1
    assert len(store.all("recent_activities")) == 2
    notifications = store.all("seller_notifications")
    assert [entry["notification_type"] for entry in notifications] == ["order placed", "order placed"]


def test_cash_on_delivery_reconciles_carts(client, store, customer, customer_headers, products):
    keyboard, mouse, monitor = products
    store.carts.insert({"customer_id": customer["_id"], "title": "Desk", "product_ids": [keyboard["_id"], monitor["_id"]]})
    store.carts.insert({"customer_id": customer["_id"], "title": "Mice", "product_ids": [mouse["_id"]]})

    response = client.post(
        "/api/orders/add-order", json=checkout_payload([keyboard, mouse]), headers=customer_headers
    )

    assert response.status_code == 201
    carts = store.all("carts")
    assert len(carts) == 1
    assert carts[0]["title"] == "Desk"
    assert carts[0]["product_ids"] == [monitor["_id"]]


def test_secondary_address_line_creates_optional_address(client, store, customer_headers, products):
    payload = checkout_payload(products[:1], addressLine2="Flat 3")

    response = client.post("/api/orders/add-order", json=payload, headers=customer_headers)

    assert response.status_code == 201
    addresses = response.get_json()["data"]["addresses"]
    assert addresses["optional"] is not None
    lines = sorted(address["address_line"] for address in store.all("addresses"))
    assert lines == ["12 Analytical Row", "Flat 3"]


def test_existing_address_is_reused(client, store, customer, customer_headers, products):
    address = store.addresses.insert(
        {
            "customer_id": customer["_id"],
            "address_line": "1 Saved Street",
            "city": "Leeds",
            "zip_code": "LS1",
            "country": "UK",
            "is_default": True,
        }
    )
    payload = checkout_payload(products[:1], addressId=str(address["_id"]))

    response = client.post("/api/orders/add-order", json=payload, headers=customer_headers)

    assert response.status_code == 201
    assert len(store.all("addresses")) == 1
    assert store.all("shipping_infos")[0]["address_id"] == address["_id"]


def test_address_of_another_customer_is_not_found(client, store, other_customer, customer_headers, products):
    address = store.addresses.insert(
        {"customer_id": other_customer["_id"], "address_line": "x", "city": "y", "zip_code": "z", "country": "w"}
    )
    payload = checkout_payload(products[:1], addressId=str(address["_id"]))

    response = client.post("/api/orders/add-order", json=payload, headers=customer_headers)

    assert response.status_code == 404
    assert response.get_json()["message"] == "Address not found"
    assert store.all("orders") == []
    assert store.all("shipping_infos") == []


def test_empty_products_is_rejected_without_writes(client, store, customer_headers, products):
    payload = checkout_payload(products[:1])
    payload["checkoutPayload"]["products"] = []

    response = client.post("/api/orders/add-order", json=payload, headers=customer_headers)

    assert response.status_code == 400
    assert response.get_json() == {
        "success": False,
        "message": "Products are required in checkout payload",
    }
    assert store.all("orders") == []
    assert store.all("addresses") == []


def test_unknown_payment_method_is_rejected(client, store, customer_headers, products):
    response = client.post(
        "/api/orders/add-order",
        json=checkout_payload(products[:1], payment_method="card"),
        headers=customer_headers,
    )

    assert response.status_code == 400
    assert store.all("orders") == []


def test_failure_mid_batch_rolls_everything_back(client, store, customer_headers, products, monkeypatch):
    original_insert = store.activities.insert
    calls = []

    def failing_insert(document, session=None):
        calls.append(document)
        if len(calls) == 2:
            raise PyMongoError("connection reset")
        return original_insert(document, session=session)

    monkeypatch.setattr(store.activities, "insert", failing_insert)

    response = client.post(
        "/api/orders/add-order", json=checkout_payload(products[:2]), headers=customer_headers
    )

    assert response.status_code == 500
    assert response.get_json()["message"] == "Failed to create order"
    for collection in ("orders", "addresses", "shipping_infos", "recent_activities", "seller_notifications"):
        assert store.all(collection) == []


def test_duplicate_identifier_reruns_the_transaction_once(client, store, customer_headers, products, monkeypatch):
    original_insert = store.orders.insert
    failures = []

    def flaky_insert(document, session=None):
        if not failures:
            failures.append(document)
            raise DuplicateKeyError("E11000 duplicate key error collection: orders index: order_id_1")
        return original_insert(document, session=session)

    monkeypatch.setattr(store.orders, "insert", flaky_insert)

    response = client.post(
        "/api/orders/add-order", json=checkout_payload(products[:2]), headers=customer_headers
    )

    assert response.status_code == 201
    assert len(store.all("orders")) == 2
    assert len(store.all("shipping_infos")) == 1


def test_repeated_duplicate_identifier_fails(client, store, customer_headers, products, monkeypatch):
    def always_duplicate(document, session=None):
        raise DuplicateKeyError("E11000 duplicate key")

    monkeypatch.setattr(store.orders, "insert", always_duplicate)

    response = client.post(
        "/api/orders/add-order", json=checkout_payload(products[:1]), headers=customer_headers
    )

    assert response.status_code == 500
    assert store.all("addresses") == []


def test_gateway_checkout_commits_provisional_record(client, store, gateway, customer_headers, products):
    response = client.post(
        "/api/orders/add-order",
        json=checkout_payload(products[:2], payment_method="gateway"),
        headers=customer_headers,
    )

    assert response.status_code == 201
    data = response.get_json()["data"]
    assert data == {"paymentUrl": gateway.payment_url, "sessionkey": "SESSION-KEY"}

    provisional = store.all("temp_orders")
    assert len(provisional) == 1
    record = provisional[0]
    assert record["expires_at"] > record["created_at"]
    assert record["primary_address_created"] is True
    assert sorted(record["orders"]) == sorted(order["_id"] for order in store.all("orders"))
    assert all(order["payment_status"] == "pending" for order in store.all("orders"))

    details = gateway.calls[0]
    assert details["tran_id"] == f"temp_{record['_id']}"
    assert details["success_url"] == f"http://api.test/api/payment/success?tran_id=temp_{record['_id']}"
    assert details["total_amount"] == 80.0
    assert details["cus_city"] == "London"


def test_gateway_refusal_leaves_orders_committed(client, store, gateway, customer_headers, products):
    gateway.fail_with({"status": "FAILED", "failedreason": "Store Credential Error"})

    response = client.post(
        "/api/orders/add-order",
        json=checkout_payload(products[:1], payment_method="gateway"),
        headers=customer_headers,
    )

    assert response.status_code == 400
    body = response.get_json()
    assert body["message"] == "Failed to create payment session"
    assert body["error"]["failedreason"] == "Store Credential Error"
    assert len(store.all("orders")) == 1
    assert len(store.all("temp_orders")) == 1


def test_checkout_requires_customer_token(client, seller_headers, products):
    assert client.post("/api/orders/add-order", json=checkout_payload(products[:1])).status_code == 401
    response = client.post(
        "/api/orders/add-order", json=checkout_payload(products[:1]), headers=seller_headers
    )
    assert response.status_code == 401


def test_unexpected_error_in_transaction_is_a_json_failure(client, store, customer_headers, products, monkeypatch):
    def overflowing_insert(document, session=None):
        raise OverflowError("MongoDB can only handle up to 8-byte ints")

    monkeypatch.setattr(store.provisional_checkouts, "insert", overflowing_insert)

    response = client.post(
        "/api/orders/add-order",
        json=checkout_payload(products[:2], payment_method="gateway"),
        headers=customer_headers,
    )

    assert response.status_code == 500
    body = response.get_json()
    assert body["success"] is False
    assert body["message"] == "Failed to create order"
    assert store.all("orders") == []
    assert store.all("temp_orders") == []


def test_provisional_record_keeps_only_parsed_figures(client, store, customer_headers, products):
    payload = checkout_payload(products[:1], payment_method="gateway")
    payload["checkoutPayload"]["total"] = 10**20
    payload["checkoutPayload"]["coupon"] = {"code": "SPRING", "points": 10**20}

    response = client.post("/api/orders/add-order", json=payload, headers=customer_headers)

    assert response.status_code == 201
    record = store.all("temp_orders")[0]
    assert record["checkout_payload"] == {
        "products": [{"product_id": str(products[0]["_id"]), "quantity": 1, "price": 50.0}],
        "subtotal": 50.0,
        "shipping": 5.0,
        "tax": 0.0,
        "total": 1e20,
    }
    bson.encode(record)
