import pytest
from bson import ObjectId

from marketplace.errors import ValidationError
from marketplace.schemas import (
    BUY_AGAIN,
    parse_address_fields,
    parse_checkout_request,
    parse_order_status,
)

PRODUCT_ID = str(ObjectId())


def base_payload(**overrides):
    payload = {
        "paymentMethod": "cod",
        "fullName": "Ada Lovelace",
        "phoneNumber": "0123456789",
        "email": " Ada@Example.com ",
        "addressLine1": "12 Analytical Row",
        "city": "London",
        "zipCode": "N1 9GU",
        "country": "UK",
        "checkoutPayload": {
            "products": [{"productId": PRODUCT_ID, "quantity": "2", "price": "19.999"}],
            "total": 44.0,
        },
    }
    payload.update(overrides)
    return payload


def test_parses_a_complete_request():
    request = parse_checkout_request(base_payload(addressLine2="Flat 3"))

    assert request.payment_method == "cod"
    assert request.email == "ada@example.com"
    assert request.items[0].product_id == ObjectId(PRODUCT_ID)
    assert request.items[0].quantity == 2
    assert request.items[0].price == 20.0
    assert request.primary_address.address_line == "12 Analytical Row"
    assert request.primary_address.name == "Unnamed"
    assert request.secondary_address.address_line == "Flat 3"
    assert request.secondary_address.city == "London"
    assert request.order_summary(1)["total"] == 44.0


def test_address_id_skips_inline_address():
    address_id = str(ObjectId())
    payload = base_payload(addressId=address_id)
    del payload["addressLine1"]

    request = parse_checkout_request(payload)

    assert request.address_id == ObjectId(address_id)
    assert request.primary_address is None


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"checkoutPayload": {}}, "Products are required in checkout payload"),
        ({"checkoutPayload": {"products": [{"productId": PRODUCT_ID}]}}, "Each product must have productId, quantity, and price"),
        ({"checkoutPayload": {"products": [{"productId": PRODUCT_ID, "quantity": 0, "price": 1}]}}, "Each product must have productId, quantity, and price"),
        ({"checkoutPayload": {"products": [{"productId": PRODUCT_ID, "quantity": 1.5, "price": 1}]}}, "Product quantity must be a whole number of at least 1"),
        ({"checkoutPayload": {"products": [{"productId": PRODUCT_ID, "quantity": 1, "price": -3}]}}, "Product price must be a non-negative number"),
        ({"checkoutPayload": {"products": [{"productId": "nope", "quantity": 1, "price": 3}]}}, "Invalid product identifier."),
        ({"paymentMethod": "card"}, "Payment method must be either 'cod' or 'gateway'"),
        ({"fullName": ""}, "Full name, phone number, and email are required"),
        ({"email": "not-an-email"}, "Please enter a valid email"),
        ({"city": ""}, "Address details are required when addressId is not provided"),
        ({"addressId": "123"}, "Invalid address identifier."),
    ],
)
def test_rejects_invalid_requests(overrides, message):
    with pytest.raises(ValidationError) as excinfo:
        parse_checkout_request(base_payload(**overrides))
    assert excinfo.value.message == message


def test_products_are_checked_before_payment_method():
    payload = base_payload(paymentMethod="card", checkoutPayload={"products": []})

    with pytest.raises(ValidationError) as excinfo:
        parse_checkout_request(payload)
    assert excinfo.value.message == "Products are required in checkout payload"


def test_parse_address_fields():
    fields = parse_address_fields(
        {"addressLine": " 1 Main St ", "city": "Leeds", "zipCode": "LS1", "country": "UK"}
    )
    assert fields == {
        "address_line": "1 Main St",
        "city": "Leeds",
        "zip_code": "LS1",
        "country": "UK",
        "state": "",
        "name": "Unnamed",
    }

    assert parse_address_fields({"city": "York"}, partial=True) == {"city": "York"}

    with pytest.raises(ValidationError):
        parse_address_fields({"city": "Leeds"})


def test_parse_order_status():
    assert parse_order_status({"orderStatus": "Shipped"}) == "shipped"
    assert parse_order_status({"orderStatus": "buy again"}) == BUY_AGAIN
    with pytest.raises(ValidationError):
        parse_order_status({})
    with pytest.raises(ValidationError):
        parse_order_status({"orderStatus": "returned"})
