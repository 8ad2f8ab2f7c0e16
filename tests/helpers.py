from marketplace.security import issue_token


def auth_headers(app, account_id, role):
    with app.app_context():
        token = issue_token(account_id, role)
    return {"Authorization": f"Bearer {token}"}


def checkout_payload(products, payment_method="cod", **overrides):
    payload = {
        "paymentMethod": payment_method,
        "fullName": "Ada Lovelace",
        "phoneNumber": "0123456789",
        "email": "ada@example.com",
        "addressLine1": "12 Analytical Row",
        "city": "London",
        "zipCode": "N1 9GU",
        "country": "UK",
        "checkoutPayload": {
            "products": [
                {"productId": str(product["_id"]), "quantity": 1, "price": product["price"]}
                for product in products
            ],
            "subtotal": sum(product["price"] for product in products),
            "shipping": 5.0,
            "tax": 0.0,
            "total": sum(product["price"] for product in products) + 5.0,
        },
    }
    payload.update(overrides)
    return payload
