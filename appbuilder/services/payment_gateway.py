"""Razorpay REST API client.

Creates orders and checks the signature Razorpay's checkout returns once a
payment completes. The signature is a hex HMAC-SHA256 of
``"<order_id>|<payment_id>"`` keyed with the account's key secret.
"""

import hashlib
import hmac
import logging
from typing import Any

import httpx

from appbuilder.config import Settings
from appbuilder.errors import GatewayError

logger = logging.getLogger(__name__)


class RazorpayClient:
    """Client for the Razorpay orders API."""

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        base_url: str = "https://api.razorpay.com/v1",
        timeout: float = 15.0,
    ):
        """Initialize the client.

        Args:
            key_id: Razorpay key id
            key_secret: Razorpay key secret
            base_url: API base URL
            timeout: Request timeout in seconds
        """
        self.key_secret = key_secret
        self.base_url = base_url.rstrip("/")
        self.http = httpx.AsyncClient(timeout=timeout, auth=(key_id, key_secret))

    @classmethod
    def from_settings(cls, settings: Settings) -> "RazorpayClient":
        return cls(
            key_id=settings.razorpay_key_id,
            key_secret=settings.razorpay_key_secret,
            base_url=settings.razorpay_api_url,
            timeout=settings.gateway_timeout_seconds,
        )

    async def create_order(self, amount: int, currency: str, receipt: str) -> dict[str, Any]:
        """Create a payment order.

        Args:
            amount: Amount in minor units
            currency: ISO currency code
            receipt: Merchant receipt token

        Returns:
            Order object with id, amount, currency and receipt

        Raises:
            GatewayError: On timeout, transport failure or a non-2xx response
        """
        payload = {"amount": amount, "currency": currency, "receipt": receipt}

        try:
            response = await self.http.post(f"{self.base_url}/orders", json=payload)
            response.raise_for_status()
            order = response.json()
        except httpx.TimeoutException as e:
            logger.error(f"Razorpay order timeout for {receipt}")
            raise GatewayError("Payment gateway timed out") from e
        except httpx.HTTPStatusError as e:
            logger.error(f"Razorpay order failed for {receipt}: {e.response.status_code} {e.response.text}")
            raise GatewayError("Payment gateway rejected the order") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Razorpay order error for {receipt}: {e}")
            raise GatewayError() from e

        logger.info(f"Created Razorpay order {order.get('id')} ({receipt})")
        return order

    def expected_signature(self, order_id: str, payment_id: str) -> str:
        """Compute the signature Razorpay sends for an order/payment pair."""
        message = f"{order_id}|{payment_id}".encode()
        return hmac.new(self.key_secret.encode(), message, hashlib.sha256).hexdigest()

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """Check a payment signature in constant time.

        Always False without a key secret, since anyone can compute an
        HMAC under an empty key.
        """
        if not self.key_secret:
            logger.error("Razorpay key secret is not configured; rejecting payment signature")
            return False
        expected = self.expected_signature(order_id, payment_id)
        return hmac.compare_digest(expected.encode(), (signature or "").encode())

    async def close(self) -> None:
        await self.http.aclose()
