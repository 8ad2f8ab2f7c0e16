import logging
from typing import Dict, Optional

from flask import Flask, jsonify
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from flask_pymongo import PyMongo

from marketplace.accounts import AccountService
from marketplace.addresses import AddressService
from marketplace.carts import CartService
from marketplace.checkout import CheckoutService
from marketplace.config import allowed_origins, load_config
from marketplace.emails import OrderMailer
from marketplace.errors import AuthorizationError, error_response, register_error_handlers
from marketplace.gateway import SSLCommerzGateway
from marketplace.identifiers import IdentifierGenerator
from marketplace.notifications import NotificationService
from marketplace.orders import OrderService
from marketplace.payments import PaymentCallbackHandler
from marketplace.products import ProductService
from marketplace.routes import register_routes
from marketplace.storage import MongoStore


def build_services(app: Flask, store, gateway, mailer) -> Dict[str, object]:
    config = app.config
    identifiers = IdentifierGenerator(
        store.orders,
        order_digits=config["ORDER_ID_DIGITS"],
        transaction_digits=config["TRANSACTION_ID_DIGITS"],
        max_attempts=config["IDENTIFIER_MAX_ATTEMPTS"],
    )
    return {
        "store": store,
        "accounts": AccountService(store),
        "notifications": NotificationService(store),
        "products": ProductService(store),
        "carts": CartService(store),
        "addresses": AddressService(store),
        "orders": OrderService(store, identifiers),
        "checkout": CheckoutService(store, gateway, identifiers, mailer=mailer, config=config),
        "payments": PaymentCallbackHandler(store, config["FRONTEND_URL"], mailer=mailer),
    }


def create_app(config: Optional[Dict] = None, store=None, gateway=None, mailer=None) -> Flask:
    """Create and configure the Flask application.

    ``store``, ``gateway`` and ``mailer`` default to the MongoDB, SSLCommerz
    and Resend backed implementations built from the configuration.
    """
    app = Flask("marketplace")

    # --- Configuration ---
    app.config.update(load_config())
    if config:
        app.config.update(config)
    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")), logging.INFO))

    # --- Initialize extensions ---
    CORS(app, supports_credentials=True, origins=allowed_origins(app.config) or "*")

    jwt = JWTManager(app)

    @jwt.unauthorized_loader
    def missing_token(reason):
        return error_response(AuthorizationError("No token provided"))

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return error_response(AuthorizationError("Invalid token"))

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return error_response(AuthorizationError("Token expired"))

    if store is None:
        mongo = PyMongo(app)
        store = MongoStore(mongo.cx, mongo.db)
        store.ensure_indexes()

    if gateway is None:
        gateway = SSLCommerzGateway(
            app.config["SSLCOMMERZ_STORE_ID"],
            app.config["SSLCOMMERZ_STORE_PASSWORD"],
            is_live=app.config["SSLCOMMERZ_IS_LIVE"],
        )
    if mailer is None:
        mailer = OrderMailer(app.config["RESEND_ORDER_API_KEY"], app.config["ORDER_EMAIL_SENDER"])

    services = build_services(app, store, gateway, mailer)
    app.extensions["marketplace"] = services

    register_error_handlers(app)
    register_routes(app, services)

    @app.route("/health", methods=["GET"])
    def health():
        return jsonify({"status": "ok"})

    return app
