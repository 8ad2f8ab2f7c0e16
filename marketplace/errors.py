"""Error taxonomy shared by the services and the HTTP layer."""

import logging
from typing import Optional

from flask import jsonify

logger = logging.getLogger(__name__)


class MarketplaceError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, details=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.details = details


class ValidationError(MarketplaceError):
    status_code = 400
    default_message = "Invalid request"


class AuthorizationError(MarketplaceError):
    status_code = 401
    default_message = "Unauthorized request."


class ForbiddenError(MarketplaceError):
    status_code = 403
    default_message = "You are not authorized to perform this action."


class NotFoundError(MarketplaceError):
    status_code = 404
    default_message = "Resource not found"


class ConflictError(MarketplaceError):
    status_code = 409
    default_message = "Conflicting resource"


class TransactionError(MarketplaceError):
    status_code = 500
    default_message = "Failed to create order"


class ExternalServiceError(MarketplaceError):
    """The payment gateway refused or could not be reached.

    ``details`` carries the gateway's raw response payload when there is one.
    """

    status_code = 400
    default_message = "Failed to create payment session"


def error_response(error: MarketplaceError):
    body = {"success": False, "message": error.message}
    if error.details is not None:
        body["error"] = error.details
    return jsonify(body), error.status_code


def register_error_handlers(app):
    @app.errorhandler(MarketplaceError)
    def handle_marketplace_error(error: MarketplaceError):
        if error.status_code >= 500:
            logger.error("%s: %s", type(error).__name__, error.details or error.message)
        return error_response(error)
