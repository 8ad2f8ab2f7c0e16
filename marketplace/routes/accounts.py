from flask import g, jsonify, request
from flask_jwt_extended import jwt_required

from marketplace.security import issue_token, load_actor, role_required
from marketplace.serializers import serialize_customer, serialize_seller
from marketplace.utils import parse_object_id


def register_account_routes(app, services):
    accounts = services["accounts"]
    notifications = services["notifications"]
    orders = services["orders"]

    def mark_seen():
        payload = request.get_json(silent=True) or {}
        notification_id = parse_object_id(
            payload.get("notificationId") or payload.get("lastSeenNotificationId"),
            "notification identifier",
        )
        data = notifications.mark_seen(g.actor, notification_id)
        return jsonify({"success": True, "data": data})

    # --- Customers ---

    @app.route("/api/customers/register", methods=["POST"])
    def register_customer():
        payload = request.get_json(silent=True) or {}
        customer = accounts.register_customer(payload)
        return (
            jsonify(
                {
                    "token": issue_token(customer["_id"], "customer"),
                    "customerId": str(customer["_id"]),
                    "firstName": customer["first_name"],
                    "lastName": customer["last_name"],
                }
            ),
            201,
        )

    @app.route("/api/customers/login", methods=["POST"])
    def login_customer():
        payload = request.get_json(silent=True) or {}
        customer = accounts.login("customer", payload)
        return jsonify(
            {
                "token": issue_token(customer["_id"], "customer"),
                "customer": serialize_customer(customer),
            }
        )

    @app.route("/api/customers/profile", methods=["GET"])
    @role_required("customer")
    def customer_profile():
        return jsonify(serialize_customer(accounts.profile("customer", g.actor.id)))

    @app.route("/api/customers/stats", methods=["GET"])
    @role_required("customer")
    def customer_stats():
        return jsonify({"success": True, "data": orders.customer_stats(g.actor.id)})

    @app.route("/api/customers/notifications", methods=["GET"])
    @role_required("customer")
    def customer_notifications():
        return jsonify({"success": True, "data": notifications.feed(g.actor)})

    @app.route("/api/customers/notifications/seen", methods=["POST"])
    @role_required("customer")
    def customer_notifications_seen():
        return mark_seen()

    # --- Sellers ---

    @app.route("/api/sellers/register", methods=["POST"])
    def register_seller():
        payload = request.get_json(silent=True) or {}
        seller = accounts.register_seller(payload)
        return (
            jsonify(
                {
                    "accessToken": issue_token(seller["_id"], "seller"),
                    "sellerId": str(seller["_id"]),
                }
            ),
            201,
        )

    @app.route("/api/sellers/login", methods=["POST"])
    def login_seller():
        payload = request.get_json(silent=True) or {}
        seller = accounts.login("seller", payload)
        return jsonify(
            {
                "accessToken": issue_token(seller["_id"], "seller"),
                "seller": serialize_seller(seller),
            }
        )

    @app.route("/api/sellers/profile", methods=["GET"])
    @role_required("seller")
    def seller_profile():
        return jsonify(serialize_seller(accounts.profile("seller", g.actor.id)))

    @app.route("/api/sellers/notifications", methods=["GET"])
    @role_required("seller")
    def seller_notifications():
        return jsonify({"success": True, "data": notifications.feed(g.actor)})

    @app.route("/api/sellers/notifications/seen", methods=["POST"])
    @role_required("seller")
    def seller_notifications_seen():
        return mark_seen()

    @app.route("/api/sellers/payments", methods=["GET"])
    @role_required("seller")
    def seller_payments():
        return jsonify({"success": True, "data": orders.seller_payments(g.actor.id)})

    # --- Auth check ---

    @app.route("/api/auth/auth-check", methods=["GET"])
    @jwt_required()
    def auth_check():
        actor = load_actor()
        return jsonify({"userType": actor.role, "userId": str(actor.id)})
