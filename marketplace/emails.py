import logging
from typing import Dict, List, Optional, Tuple

import resend

logger = logging.getLogger(__name__)


class OrderMailer:
    """Sends order receipts through Resend once a checkout is committed.

    Delivery is best effort: failures are logged and reported, never raised.
    """

    def __init__(self, api_key: str, sender: str):
        self.api_key = (api_key or "").strip()
        self.sender = sender

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def send_receipt(
        self, recipient_email: str, customer_name: str, orders: List[Dict], total=None
    ) -> Tuple[bool, Optional[str]]:
        if not self.enabled:
            return False, "Resend API key is not configured."
        if not recipient_email:
            return False, "Missing customer email for the order receipt."

        lines = [
            f"{order.get('order_id')} x{order.get('quantity')} ({float(order.get('price') or 0):.2f})"
            for order in orders
        ]
        text_body = (
            f"Hi {customer_name or 'there'},\n\n"
            "Thank you for your purchase! Your orders:\n"
            + "\n".join(lines)
            + (f"\n\nTotal: {float(total):.2f}" if total is not None else "")
            + "\n\nMarketplace Team"
        )
        payload: Dict[str, object] = {
            "from": f"Marketplace <{self.sender}>",
            "to": [recipient_email],
            "subject": "Thank you for your purchase",
            "text": text_body,
        }

        previous_api_key = getattr(resend, "api_key", None)
        resend.api_key = self.api_key
        try:
            response = resend.Emails.send(payload)
        except Exception as exc:
            logger.warning("Order receipt to %s failed: %s", recipient_email, exc)
            return False, str(exc)
        finally:
            resend.api_key = previous_api_key

        if not isinstance(response, dict) or not response.get("id"):
            logger.warning("Order receipt to %s rejected: %s", recipient_email, response)
            return False, str(response)
        return True, None
