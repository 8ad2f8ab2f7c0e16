from flask import g, jsonify, request

from marketplace.security import role_required
from marketplace.utils import parse_object_id


def register_shop_routes(app, services):
    products = services["products"]
    carts = services["carts"]
    addresses = services["addresses"]

    # --- Products ---

    @app.route("/api/products/create", methods=["POST"])
    @role_required("seller")
    def create_product():
        payload = request.get_json(silent=True) or {}
        product = products.create(g.actor.id, payload)
        return jsonify({"success": True, "message": "Product created", "data": product}), 201

    @app.route("/api/products/get-all", methods=["GET"])
    @role_required("seller")
    def list_products():
        return jsonify({"success": True, "data": products.list_for_seller(g.actor.id)})

    @app.route("/api/products/<product_id>", methods=["GET"])
    @role_required()
    def get_product(product_id: str):
        product = products.get(parse_object_id(product_id, "product identifier"))
        return jsonify({"success": True, "data": product})

    # --- Carts ---

    @app.route("/api/carts/add", methods=["POST"])
    @role_required("customer")
    def add_to_cart():
        payload = request.get_json(silent=True) or {}
        cart = carts.add(g.actor.id, payload)
        return jsonify({"success": True, "message": "Cart updated", "data": cart}), 201

    @app.route("/api/carts/get-all", methods=["GET"])
    @role_required("customer")
    def list_carts():
        return jsonify({"success": True, "data": carts.list_for_customer(g.actor.id)})

    @app.route("/api/carts/<cart_id>", methods=["DELETE"])
    @role_required("customer")
    def delete_cart(cart_id: str):
        carts.delete(g.actor.id, parse_object_id(cart_id, "cart identifier"))
        return jsonify({"success": True, "message": "Cart deleted"})

    # --- Addresses ---

    @app.route("/api/addresses/add", methods=["POST"])
    @role_required("customer")
    def add_address():
        payload = request.get_json(silent=True) or {}
        address = addresses.add(g.actor.id, payload)
        return jsonify({"success": True, "message": "Address added", "data": address}), 201

    @app.route("/api/addresses/all", methods=["GET"])
    @role_required("customer")
    def list_addresses():
        return jsonify({"success": True, "data": addresses.list_for_customer(g.actor.id)})

    @app.route("/api/addresses/<address_id>", methods=["PATCH"])
    @role_required("customer")
    def update_address(address_id: str):
        payload = request.get_json(silent=True) or {}
        address = addresses.update(
            g.actor.id, parse_object_id(address_id, "address identifier"), payload
        )
        return jsonify({"success": True, "message": "Address updated", "data": address})

    @app.route("/api/addresses/<address_id>", methods=["DELETE"])
    @role_required("customer")
    def delete_address(address_id: str):
        addresses.delete(g.actor.id, parse_object_id(address_id, "address identifier"))
        return jsonify({"success": True, "message": "Address deleted"})

    @app.route("/api/addresses/default/<address_id>", methods=["PATCH"])
    @role_required("customer")
    def set_default_address(address_id: str):
        address = addresses.set_default(
            g.actor.id, parse_object_id(address_id, "address identifier")
        )
        return jsonify({"success": True, "message": "Default address updated", "data": address})
