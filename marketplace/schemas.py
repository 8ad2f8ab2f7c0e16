"""Request parsing for the checkout and account endpoints.

Each ``parse_*`` function turns a raw JSON body into a typed value or raises a
single ``ValidationError`` naming the first problem found.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from bson import ObjectId

from marketplace.errors import ValidationError
from marketplace.utils import normalize_email, parse_object_id, safe_float, safe_int

PAYMENT_METHODS = ("cod", "gateway")
ORDER_STATUSES = ("pending", "shipped", "delivered", "cancelled")
BUY_AGAIN = "buy again"

email_regex = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass
class LineItem:
    product_id: ObjectId
    quantity: int
    price: float

    def snapshot(self) -> Dict[str, object]:
        return {
            "product_id": str(self.product_id),
            "quantity": self.quantity,
            "price": self.price,
        }


@dataclass
class AddressInput:
    address_line: str
    city: str
    zip_code: str
    country: str
    state: str = ""
    name: str = "Unnamed"


@dataclass
class CheckoutRequest:
    payment_method: str
    full_name: str
    phone_number: str
    email: str
    items: List[LineItem]
    subtotal: Optional[float] = None
    shipping: float = 0.0
    tax: float = 0.0
    total: Optional[float] = None
    address_id: Optional[ObjectId] = None
    primary_address: Optional[AddressInput] = None
    secondary_address: Optional[AddressInput] = None

    @property
    def product_ids(self) -> List[str]:
        return [str(item.product_id) for item in self.items]

    def stored_payload(self) -> Dict[str, object]:
        """The checkout payload as kept on the provisional record."""
        return {
            "products": [item.snapshot() for item in self.items],
            "subtotal": self.subtotal,
            "shipping": self.shipping,
            "tax": self.tax,
            "total": self.total,
        }

    def order_summary(self, total_orders: int) -> Dict[str, object]:
        # Figures are echoed from the client payload, not recomputed.
        return {
            "totalOrders": total_orders,
            "subtotal": self.subtotal,
            "shipping": self.shipping,
            "tax": self.tax,
            "total": self.total,
        }


def _text(payload: Dict, *keys: str) -> str:
    for key in keys:
        value = payload.get(key)
        if value is not None:
            return str(value).strip()
    return ""


def parse_line_item(entry) -> LineItem:
    if not isinstance(entry, dict):
        raise ValidationError("Each product must have productId, quantity, and price")

    raw_product_id = entry.get("productId") or entry.get("product_id")
    raw_quantity = entry.get("quantity")
    raw_price = entry.get("price")
    if not raw_product_id or not raw_quantity or raw_price is None:
        raise ValidationError("Each product must have productId, quantity, and price")

    quantity = safe_int(raw_quantity)
    if quantity is None or quantity < 1:
        raise ValidationError("Product quantity must be a whole number of at least 1")

    price = safe_float(raw_price)
    if price is None or price < 0:
        raise ValidationError("Product price must be a non-negative number")

    return LineItem(
        product_id=parse_object_id(raw_product_id, "product identifier"),
        quantity=quantity,
        price=round(price, 2),
    )


def parse_checkout_request(payload) -> CheckoutRequest:
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    checkout_payload = payload.get("checkoutPayload") or payload.get("checkout_payload")
    if not isinstance(checkout_payload, dict):
        raise ValidationError("Products are required in checkout payload")
    raw_products = checkout_payload.get("products")
    if not isinstance(raw_products, list) or not raw_products:
        raise ValidationError("Products are required in checkout payload")
    items = [parse_line_item(entry) for entry in raw_products]

    payment_method = _text(payload, "paymentMethod", "payment_method").lower()
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError("Payment method must be either 'cod' or 'gateway'")

    full_name = _text(payload, "fullName", "full_name")
    phone_number = _text(payload, "phoneNumber", "phone_number")
    email = normalize_email(payload.get("email"))
    if not full_name or not phone_number or not email:
        raise ValidationError("Full name, phone number, and email are required")
    if not email_regex.match(email):
        raise ValidationError("Please enter a valid email")

    request = CheckoutRequest(
        payment_method=payment_method,
        full_name=full_name,
        phone_number=phone_number,
        email=email,
        items=items,
        subtotal=safe_float(checkout_payload.get("subtotal")),
        shipping=safe_float(checkout_payload.get("shipping"), 0.0) or 0.0,
        tax=safe_float(checkout_payload.get("tax"), 0.0) or 0.0,
        total=safe_float(checkout_payload.get("total")),
    )

    raw_address_id = payload.get("addressId") or payload.get("address_id")
    if raw_address_id:
        request.address_id = parse_object_id(raw_address_id, "address identifier")
        return request

    address_line = _text(payload, "addressLine1", "address_line1")
    city = _text(payload, "city")
    zip_code = _text(payload, "zipCode", "zip_code")
    country = _text(payload, "country")
    if not address_line or not city or not zip_code or not country:
        raise ValidationError("Address details are required when addressId is not provided")

    name = _text(payload, "name") or "Unnamed"
    state = _text(payload, "state")
    request.primary_address = AddressInput(
        address_line=address_line,
        city=city,
        zip_code=zip_code,
        country=country,
        state=state,
        name=name,
    )
    secondary_line = _text(payload, "addressLine2", "address_line2")
    if secondary_line:
        request.secondary_address = AddressInput(
            address_line=secondary_line,
            city=city,
            zip_code=zip_code,
            country=country,
            state=state,
            name=name,
        )
    return request


def parse_address_fields(payload, partial: bool = False) -> Dict[str, object]:
    """Map an address body onto stored field names.

    With ``partial`` only the supplied fields are returned (updates); otherwise
    ``addressLine``, ``city``, ``zipCode`` and ``country`` are required.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    aliases = {
        "address_line": ("addressLine", "address_line"),
        "city": ("city",),
        "zip_code": ("zipCode", "zip_code"),
        "country": ("country",),
        "state": ("state",),
        "name": ("name",),
    }
    fields: Dict[str, object] = {}
    for stored, keys in aliases.items():
        if any(key in payload for key in keys):
            fields[stored] = _text(payload, *keys)

    if not partial:
        missing = [
            key for key in ("address_line", "city", "zip_code", "country") if not fields.get(key)
        ]
        if missing:
            raise ValidationError("addressLine, city, zipCode and country are required")
        fields.setdefault("state", "")
        fields["name"] = fields.get("name") or "Unnamed"
    elif "name" in fields and not fields["name"]:
        fields["name"] = "Unnamed"

    return fields


def parse_order_status(payload) -> str:
    if not isinstance(payload, dict):
        raise ValidationError("Order ID and orderStatus are required.")
    value = _text(payload, "orderStatus", "order_status").lower()
    if not value:
        raise ValidationError("Order ID and orderStatus are required.")
    if value != BUY_AGAIN and value not in ORDER_STATUSES:
        raise ValidationError(
            "orderStatus must be one of: " + ", ".join(ORDER_STATUSES + (BUY_AGAIN,))
        )
    return value
