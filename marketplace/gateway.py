"""SSLCommerz hosted-checkout client."""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

import requests

from marketplace.errors import ExternalServiceError

logger = logging.getLogger(__name__)

SANDBOX_HOST = "https://sandbox.sslcommerz.com"
LIVE_HOST = "https://securepay.sslcommerz.com"
SESSION_PATH = "/gwprocess/v4/api.php"


@dataclass
class GatewaySession:
    payment_url: str
    session_key: Optional[str]
    raw: Dict


class SSLCommerzGateway:
    def __init__(self, store_id: str, store_password: str, is_live: bool = False, timeout: float = 15.0):
        self.store_id = store_id
        self.store_password = store_password
        self.is_live = is_live
        self.timeout = timeout

    @property
    def base_url(self) -> str:
        return LIVE_HOST if self.is_live else SANDBOX_HOST

    def init(self, payment_details: Dict[str, object]) -> GatewaySession:
        """Open a payment session and return the hosted page to redirect to."""
        if not self.store_id or not self.store_password:
            raise ExternalServiceError("Payment gateway configuration is incomplete.")

        form = {
            **payment_details,
            "store_id": self.store_id,
            "store_passwd": self.store_password,
        }
        try:
            response = requests.post(
                f"{self.base_url}{SESSION_PATH}", data=form, timeout=self.timeout
            )
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.error("SSLCommerz session request failed: %s", exc)
            raise ExternalServiceError(details={"reason": str(exc)})

        if not isinstance(data, dict):
            data = {"response": data}

        gateway_url = data.get("GatewayPageURL")
        if not gateway_url:
            logger.error(
                "SSLCommerz refused session for %s: %s",
                payment_details.get("tran_id"),
                data.get("failedreason") or data.get("status"),
            )
            raise ExternalServiceError(details=data)

        return GatewaySession(payment_url=gateway_url, session_key=data.get("sessionkey"), raw=data)
