from flask import g, jsonify, request

from marketplace.schemas import parse_order_status
from marketplace.security import role_required
from marketplace.serializers import serialize_order
from marketplace.utils import parse_object_id


def register_order_routes(app, services):
    checkout = services["checkout"]
    orders = services["orders"]

    @app.route("/api/orders/add-order", methods=["POST"])
    @role_required("customer")
    def add_order():
        payload = request.get_json(silent=True) or {}
        result = checkout.checkout(g.actor.id, payload)
        return jsonify(result.to_response()), 201

    @app.route("/api/orders/get-all", methods=["GET"])
    @role_required("customer")
    def customer_orders():
        return jsonify({"success": True, "data": orders.customer_orders(g.actor.id)})

    @app.route("/api/orders/payments", methods=["GET"])
    @role_required("customer")
    def customer_payments():
        return jsonify({"success": True, "data": orders.customer_payments(g.actor.id)})

    @app.route("/api/orders/seller", methods=["GET"])
    @role_required("seller")
    def seller_orders():
        return jsonify({"success": True, "data": orders.seller_orders(g.actor.id)})

    @app.route("/api/orders/seller/<order_id>", methods=["GET"])
    @role_required("seller")
    def seller_order_detail(order_id: str):
        detail = orders.seller_order_detail(g.actor.id, parse_object_id(order_id, "order identifier"))
        return jsonify({"success": True, "data": detail})

    @app.route("/api/orders/status-counts", methods=["GET"])
    @role_required("seller")
    def order_status_counts():
        return jsonify({"success": True, "data": orders.status_counts(g.actor.id)})

    @app.route("/api/orders/<order_id>/status", methods=["PUT"])
    @role_required("customer", "seller")
    def update_order_status(order_id: str):
        payload = request.get_json(silent=True) or {}
        order_status = parse_order_status(payload)
        order, created = orders.update_status(
            g.actor, parse_object_id(order_id, "order identifier"), order_status
        )
        message = "New order created successfully" if created else "Order status updated successfully"
        return jsonify({"success": True, "message": message, "data": serialize_order(order)}), (
            201 if created else 200
        )
