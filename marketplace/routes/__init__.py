from marketplace.routes.accounts import register_account_routes
from marketplace.routes.orders import register_order_routes
from marketplace.routes.payments import register_payment_routes
from marketplace.routes.shop import register_shop_routes


def register_routes(app, services):
    register_account_routes(app, services)
    register_shop_routes(app, services)
    register_order_routes(app, services)
    register_payment_routes(app, services)
