"""Test Paystack helpers and the transaction client."""

from __future__ import annotations

import json
import re

import httpx
import pytest

from inferno.sdk.paystack import (
    PAYSTACK_API_URL,
    PaystackClient,
    PaystackError,
    convert_to_smallest_unit,
    generate_payment_reference,
    validate_payment_amount,
)


def _client(handler) -> httpx.Client:
    return httpx.Client(base_url=PAYSTACK_API_URL, transport=httpx.MockTransport(handler))


def test_payment_reference_format() -> None:
    first = generate_payment_reference()

    assert re.fullmatch(r"ref_\d{13}_[0-9a-f]{8}", first)
    assert generate_payment_reference() != first


def test_amount_helpers() -> None:
    assert convert_to_smallest_unit(150.5) == 15050
    assert convert_to_smallest_unit(0.29) == 29
    assert validate_payment_amount(10, "NGN")
    assert not validate_payment_amount(9.99, "NGN")
    assert validate_payment_amount(1, "USD")
    assert not validate_payment_amount(100, "EUR")


def test_client_requires_secret() -> None:
    with pytest.raises(ValueError, match="secret key required"):
        PaystackClient(None)


def test_initialize_transaction() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={
            "status": True,
            "message": "Authorization URL created",
            "data": {"reference": "ref_1", "access_code": "ac_1", "authorization_url": "https://checkout.paystack.com/ac_1"},
        })

    client = PaystackClient("sk_test_123", client=_client(handler))
    data = client.initialize_transaction("a@example.com", 5000000, "NGN", "ref_1", "https://app/cb", {"cohortId": "c1"})

    assert data["access_code"] == "ac_1"
    request = seen[0]
    assert request.url.path == "/transaction/initialize"
    assert request.headers["Authorization"] == "Bearer sk_test_123"
    body = json.loads(request.content)
    assert body["amount"] == 5000000
    assert body["metadata"] == {"cohortId": "c1"}


def test_initialize_transaction_errors() -> None:
    rejected = PaystackClient("sk", client=_client(
        lambda r: httpx.Response(400, json={"status": False, "message": "Invalid key"})
    ))
    with pytest.raises(PaystackError, match="Invalid key"):
        rejected.initialize_transaction("a@example.com", 100, "NGN", "ref", "https://app/cb")

    garbled = PaystackClient("sk", client=_client(lambda r: httpx.Response(502, text="<html>")))
    with pytest.raises(PaystackError, match="Unexpected Paystack response"):
        garbled.initialize_transaction("a@example.com", 100, "NGN", "ref", "https://app/cb")

    def unreachable(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out")

    down = PaystackClient("sk", client=_client(unreachable))
    with pytest.raises(PaystackError, match="Paystack request failed"):
        down.initialize_transaction("a@example.com", 100, "NGN", "ref", "https://app/cb")


def test_close_only_closes_own_http_client() -> None:
    injected = _client(lambda request: httpx.Response(200, json={}))
    with PaystackClient("sk", client=injected):
        pass
    assert not injected.is_closed

    owned = PaystackClient("sk")
    owned.close()
    assert owned.client.is_closed
