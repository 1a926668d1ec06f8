"""Paystack payment initialization and amount helpers."""

from __future__ import annotations

import logging
import secrets
import time
from typing import Any

import httpx

logger = logging.getLogger(__name__)

PAYSTACK_API_URL = "https://api.paystack.co"
MIN_AMOUNTS = {"NGN": 10, "USD": 1}


def generate_payment_reference() -> str:
    """Unique merchant reference for a payment attempt."""
    return f"ref_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


def convert_to_smallest_unit(amount: float) -> int:
    """Naira to kobo (or dollars to cents)."""
    return int(round(amount * 100))


def validate_payment_amount(amount: float, currency: str) -> bool:
    minimum = MIN_AMOUNTS.get(currency)
    return minimum is not None and amount >= minimum


class PaystackError(Exception):
    """Paystack rejected or failed a request."""


class PaystackClient:
    """Minimal Paystack transaction API client."""

    def __init__(self, secret_key: str | None, client: httpx.Client | None = None):
        if not secret_key:
            raise ValueError("Paystack secret key required. Set INFERNO_PAYSTACK_SECRET_KEY.")
        self.secret_key = secret_key
        # Only a client built here is closed by close()
        self._owns_client = client is None
        self.client = client or httpx.Client(base_url=PAYSTACK_API_URL, timeout=30)

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def __enter__(self) -> PaystackClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def initialize_transaction(
        self,
        email: str,
        amount_in_kobo: int,
        currency: str,
        reference: str,
        callback_url: str,
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Initialize a transaction and return Paystack's `data` object.

        Raises:
            PaystackError: If Paystack reports a failure
        """
        try:
            response = self.client.post(
                "/transaction/initialize",
                headers={"Authorization": f"Bearer {self.secret_key}"},
                json={
                    "email": email,
                    "amount": amount_in_kobo,
                    "currency": currency,
                    "reference": reference,
                    "callback_url": callback_url,
                    "metadata": metadata or {},
                },
            )
        except httpx.HTTPError as e:
            raise PaystackError(f"Paystack request failed: {e}")
        try:
            body = response.json()
        except ValueError:
            raise PaystackError(f"Unexpected Paystack response ({response.status_code})")

        if not body.get("status"):
            logger.error("Paystack initialization failed: %s", body)
            raise PaystackError(body.get("message") or "Payment initialization failed")
        return body.get("data") or {}
