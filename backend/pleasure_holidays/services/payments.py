"""
Razorpay integration: order creation over HTTPS and payment signature checks
"""

import hashlib
import hmac
import logging

import httpx

from pleasure_holidays.core.errors import InternalError

logger = logging.getLogger(__name__)


def expected_signature(secret: str, order_id: str, payment_id: str) -> str:
    """HMAC-SHA256 hex digest of "order_id|payment_id" keyed by the gateway secret."""
    message = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_signature(secret: str, order_id: str, payment_id: str, signature: str) -> bool:
    """
    True only when the supplied signature matches the recomputed digest exactly.
    Comparison is constant-time.
    """
    if not secret or not signature:
        return False
    expected = expected_signature(secret, order_id, payment_id)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))


class PaymentGateway:
    """
    Thin client for the Razorpay Orders API.

    `transport` lets callers swap the network layer (tests pass an httpx.MockTransport).
    """

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        api_url: str = "https://api.razorpay.com/v1",
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 15.0,
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self.api_url = api_url.rstrip("/")
        self._transport = transport
        self._timeout = timeout

    def verify(self, order_id: str, payment_id: str, signature: str) -> bool:
        return verify_signature(self.key_secret, order_id, payment_id, signature)

    async def create_order(self, amount: int, currency: str, receipt: str, notes: dict | None = None) -> dict:
        """
        Create a gateway order for `amount` minor units.
        Returns the order as sent back by the gateway (id, amount, currency, status, ...).
        """
        payload = {
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
        }

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
                response = await client.post(
                    f"{self.api_url}/orders",
                    json=payload,
                    auth=(self.key_id, self.key_secret),
                )
        except httpx.HTTPError as e:
            logger.error(f"[payment] Order request for {receipt} failed: {e}")
            raise InternalError("Failed to create payment order", cause=e)

        if response.status_code >= 300:
            logger.error(f"[payment] Gateway rejected order for {receipt}: HTTP {response.status_code}")
            raise InternalError("Failed to create payment order")

        order = response.json()
        if not order.get("id"):
            logger.error(f"[payment] Gateway response for {receipt} carried no order id")
            raise InternalError("Failed to create payment order")

        logger.info(f"[payment] Created order {order['id']} for {receipt} ({amount} {currency})")
        return order
