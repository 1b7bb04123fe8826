"""
PayPal payment gateway.

Wraps the PayPal REST v1 payments API behind a single blocking call. The
OAuth token exchange and the HTTP details stay in here; callers get a
``PaymentResult`` back or a ``PaymentGatewayError``.
"""

import os
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

import httpx

from errors import PaymentGatewayError
from schemas import CartItem

logger = logging.getLogger(__name__)

PAYPAL_HOSTS = {
    "sandbox": "https://api-m.sandbox.paypal.com",
    "live": "https://api-m.paypal.com",
}

CURRENCY = "USD"


@dataclass
class PaymentResult:
    payment_id: str
    approval_url: Optional[str]


def build_payment_request(cart_items: List[CartItem], total_amount: float, return_url: str, cancel_url: str) -> dict:
    return {
        "intent": "sale",
        "payer": {"payment_method": "paypal"},
        "redirect_urls": {
            "return_url": return_url,
            "cancel_url": cancel_url,
        },
        "transactions": [
            {
                "item_list": {
                    "items": [
                        {
                            "name": item.title,
                            "sku": item.product_id,
                            "price": f"{item.price:.2f}",
                            "currency": CURRENCY,
                            "quantity": item.quantity,
                        }
                        for item in cart_items
                    ]
                },
                "amount": {
                    "currency": CURRENCY,
                    "total": f"{total_amount:.2f}",
                },
                "description": "Purchase from our store",
            }
        ],
    }


class PayPalGateway:
    def __init__(
        self,
        client_id: str,
        client_secret: str,
        mode: str = "sandbox",
        return_url: str = "http://localhost:5173/shop/paypal-return",
        cancel_url: str = "http://localhost:5173/shop/paypal-cancel",
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        if mode not in PAYPAL_HOSTS:
            raise ValueError(f"Unknown PayPal mode: {mode}")
        self.client_id = client_id
        self.client_secret = client_secret
        self.return_url = return_url
        self.cancel_url = cancel_url
        self.base_url = PAYPAL_HOSTS[mode]
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_env(cls) -> "PayPalGateway":
        return cls(
            client_id=os.getenv("PAYPAL_CLIENT_ID", ""),
            client_secret=os.getenv("PAYPAL_CLIENT_SECRET", ""),
            mode=os.getenv("PAYPAL_MODE", "sandbox"),
            return_url=os.getenv("PAYPAL_RETURN_URL", "http://localhost:5173/shop/paypal-return"),
            cancel_url=os.getenv("PAYPAL_CANCEL_URL", "http://localhost:5173/shop/paypal-cancel"),
            timeout=float(os.getenv("PAYPAL_TIMEOUT", "30")),
        )

    def _client(self) -> httpx.Client:
        return httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self.transport)

    def _access_token(self, client: httpx.Client) -> str:
        resp = client.post(
            "/v1/oauth2/token",
            data={"grant_type": "client_credentials"},
            auth=(self.client_id, self.client_secret),
        )
        resp.raise_for_status()
        return resp.json()["access_token"]

    def create_payment(self, cart_items: List[CartItem], total_amount: float) -> PaymentResult:
        """Create a sale payment and return its id and approval link."""
        payload = build_payment_request(cart_items, total_amount, self.return_url, self.cancel_url)
        try:
            with self._client() as client:
                token = self._access_token(client)
                resp = client.post(
                    "/v1/payments/payment",
                    json=payload,
                    headers={"Authorization": f"Bearer {token}"},
                )
                resp.raise_for_status()
                payment = resp.json()
        except httpx.HTTPStatusError as e:
            logger.error("PayPal rejected request %s: %s %s", e.request.url, e.response.status_code, e.response.text)
            raise PaymentGatewayError(f"Payment provider rejected the request ({e.response.status_code})") from e
        except httpx.HTTPError as e:
            logger.error("PayPal request failed: %s", e)
            raise PaymentGatewayError("Payment provider unreachable") from e
        except (KeyError, ValueError) as e:
            raise PaymentGatewayError("Malformed payment provider response") from e

        if "id" not in payment:
            raise PaymentGatewayError("Malformed payment provider response")
        approval_url = next(
            (link.get("href") for link in payment.get("links", []) if link.get("rel") == "approval_url"),
            None,
        )
        return PaymentResult(payment_id=payment["id"], approval_url=approval_url)


def get_payment_gateway() -> Callable[[], PayPalGateway]:
    """
    FastAPI dependency returning a gateway factory. Handlers call it only for
    PayPal orders; cash on delivery never builds a gateway.
    """
    return PayPalGateway.from_env
