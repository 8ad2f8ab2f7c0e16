"""Read-side projections from stored documents to response bodies."""

from typing import Dict, Optional

from marketplace.utils import id_str, isoformat


def stock_status(quantity) -> str:
    quantity = quantity or 0
    if quantity == 0:
        return "out of stock"
    if quantity <= 10:
        return "low stock"
    return "active"


def serialize_address(address_document) -> Optional[Dict]:
    if not address_document:
        return None
    return {
        "_id": id_str(address_document.get("_id")),
        "customerId": id_str(address_document.get("customer_id")),
        "name": address_document.get("name") or "Unnamed",
        "addressLine": address_document.get("address_line") or "",
        "city": address_document.get("city") or "",
        "zipCode": address_document.get("zip_code") or "",
        "country": address_document.get("country") or "",
        "state": address_document.get("state") or "",
        "isDefault": bool(address_document.get("is_default")),
        "createdAt": isoformat(address_document.get("created_at")),
        "updatedAt": isoformat(address_document.get("updated_at")),
    }


def serialize_shipping_info(shipping_document) -> Optional[Dict]:
    if not shipping_document:
        return None
    return {
        "_id": id_str(shipping_document.get("_id")),
        "customerId": id_str(shipping_document.get("customer_id")),
        "fullName": shipping_document.get("full_name") or "",
        "phoneNumber": shipping_document.get("phone_number") or "",
        "email": shipping_document.get("email") or "",
        "addressId": id_str(shipping_document.get("address_id")),
        "optionalAddressId": id_str(shipping_document.get("optional_address_id")),
        "createdAt": isoformat(shipping_document.get("created_at")),
    }


def serialize_order(order_document, product_title: Optional[str] = None) -> Optional[Dict]:
    if not order_document:
        return None
    serialized = {
        "_id": id_str(order_document.get("_id")),
        "orderId": order_document.get("order_id"),
        "transactionId": order_document.get("transaction_id"),
        "customerId": id_str(order_document.get("customer_id")),
        "productId": id_str(order_document.get("product_id")),
        "quantity": order_document.get("quantity"),
        "price": order_document.get("price"),
        "paymentMethod": order_document.get("payment_method"),
        "shippingInfoId": id_str(order_document.get("shipping_info_id")),
        "paymentStatus": order_document.get("payment_status"),
        "orderStatus": order_document.get("order_status"),
        "status": order_document.get("order_status"),
        "createdAt": isoformat(order_document.get("created_at")),
        "updatedAt": isoformat(order_document.get("updated_at")),
    }
    if product_title is not None:
        serialized["productTitle"] = product_title
    return serialized


def serialize_product(product_document) -> Optional[Dict]:
    if not product_document:
        return None
    return {
        "_id": id_str(product_document.get("_id")),
        "sellerId": id_str(product_document.get("seller_id")),
        "title": product_document.get("title") or "",
        "description": product_document.get("description") or "",
        "category": product_document.get("category") or "",
        "brand": product_document.get("brand") or "",
        "model": product_document.get("model") or "",
        "price": product_document.get("price"),
        "salePrice": product_document.get("sale_price"),
        "quantity": product_document.get("quantity", 0),
        "stockStatus": stock_status(product_document.get("quantity")),
        "sku": product_document.get("sku"),
        "tags": list(product_document.get("tags") or []),
        "negotiable": bool(product_document.get("negotiable")),
        "createdAt": isoformat(product_document.get("created_at")),
    }


def serialize_customer(customer_document) -> Dict:
    if not customer_document:
        return {}
    first_name = customer_document.get("first_name") or ""
    last_name = customer_document.get("last_name") or ""
    return {
        "_id": id_str(customer_document.get("_id")),
        "firstName": first_name,
        "lastName": last_name,
        "name": f"{first_name} {last_name}".strip(),
        "email": customer_document.get("email") or "",
        "phone": customer_document.get("phone") or "",
        "bio": customer_document.get("bio") or "",
        "createdAt": isoformat(customer_document.get("created_at")),
    }


def serialize_seller(seller_document) -> Dict:
    if not seller_document:
        return {}
    return {
        "_id": id_str(seller_document.get("_id")),
        "name": seller_document.get("name") or "",
        "email": seller_document.get("email") or "",
        "phone": seller_document.get("phone") or "",
        "createdAt": isoformat(seller_document.get("created_at")),
    }


def serialize_cart(cart_document, products_by_id: Optional[Dict] = None) -> Optional[Dict]:
    if not cart_document:
        return None
    products_by_id = products_by_id or {}
    products = []
    for product_id in cart_document.get("product_ids") or []:
        product = products_by_id.get(str(product_id))
        if not product:
            continue
        products.append(
            {
                "_id": id_str(product.get("_id")),
                "title": product.get("title") or "",
                "price": product.get("price"),
                "stock": product.get("quantity", 0),
                "sellerId": id_str(product.get("seller_id")),
            }
        )
    return {
        "_id": id_str(cart_document.get("_id")),
        "title": cart_document.get("title") or "",
        "productIds": [str(pid) for pid in cart_document.get("product_ids") or []],
        "products": products,
        "createdAt": isoformat(cart_document.get("created_at")),
        "updatedAt": isoformat(cart_document.get("updated_at")),
    }


def serialize_activity(activity_document, is_new: bool) -> Dict:
    return {
        "_id": id_str(activity_document.get("_id")),
        "orderId": id_str(activity_document.get("order_id")),
        "activityType": activity_document.get("activity_type") or "",
        "activityStatus": activity_document.get("activity_status") or "",
        "createdAt": isoformat(activity_document.get("created_at")),
        "isNew": is_new,
    }


def serialize_seller_notification(notification_document, is_new: bool) -> Dict:
    return {
        "_id": id_str(notification_document.get("_id")),
        "orderId": id_str(notification_document.get("order_id")),
        "notificationType": notification_document.get("notification_type") or "",
        "description": notification_document.get("description") or "",
        "createdAt": isoformat(notification_document.get("created_at")),
        "isNew": is_new,
    }
