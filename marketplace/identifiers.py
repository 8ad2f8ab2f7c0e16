"""Human-readable order and transaction identifiers.

``ORD-12345`` / ``TXN-1234567``: a fixed prefix and random decimal digits,
checked against the orders collection until an unused value turns up.
"""

import logging
import secrets

from marketplace.errors import ConflictError

logger = logging.getLogger(__name__)

ORDER_PREFIX = "ORD-"
TRANSACTION_PREFIX = "TXN-"
MAX_WIDENINGS = 3


def random_digits(width: int) -> str:
    return "".join(secrets.choice("0123456789") for _ in range(width))


class IdentifierGenerator:
    def __init__(self, orders, order_digits=5, transaction_digits=7, max_attempts=25):
        self.orders = orders
        self.order_digits = order_digits
        self.transaction_digits = transaction_digits
        self.max_attempts = max(1, max_attempts)

    def order_id(self, session=None) -> str:
        return self._unique("order_id", ORDER_PREFIX, self.order_digits, session)

    def transaction_id(self, session=None) -> str:
        return self._unique("transaction_id", TRANSACTION_PREFIX, self.transaction_digits, session)

    def _unique(self, field: str, prefix: str, width: int, session) -> str:
        # After max_attempts collisions at one width, move to a wider space.
        for extra in range(MAX_WIDENINGS + 1):
            current_width = width + extra
            for _ in range(self.max_attempts):
                candidate = f"{prefix}{random_digits(current_width)}"
                if not self.orders.exists(field, candidate, session=session):
                    return candidate
            logger.warning(
                "%s space exhausted at %d digits after %d attempts",
                field,
                current_width,
                self.max_attempts,
            )
        raise ConflictError(f"Could not allocate a unique {field.replace('_', ' ')}.")
