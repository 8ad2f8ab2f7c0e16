import logging

from flask import redirect, request

logger = logging.getLogger(__name__)


def register_payment_routes(app, services):
    callbacks = services["payments"]

    # The gateway posts the form back; browsers arriving by link use GET.
    @app.route("/api/payment/success", methods=["GET", "POST"])
    def payment_success():
        return redirect(callbacks.handle_success(request.values.get("tran_id")))

    @app.route("/api/payment/fail", methods=["GET", "POST"])
    def payment_fail():
        return redirect(callbacks.handle_failure(request.values.get("tran_id")))

    @app.route("/api/payment/cancel", methods=["GET", "POST"])
    def payment_cancel():
        return redirect(callbacks.handle_failure(request.values.get("tran_id")))

    @app.route("/api/payment/ipn", methods=["POST"])
    def payment_ipn():
        logger.info(
            "IPN received for %s: status=%s",
            request.values.get("tran_id"),
            request.values.get("status"),
        )
        return "OK", 200
