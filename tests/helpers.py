"""Builders for receipts and event logs in the shape web3 returns them."""

from __future__ import annotations

from typing import Any

from eth_abi import encode as abi_encode

from inferno.sdk.auth import issue_access_token
from inferno.sdk.events import event_topic
from inferno.sdk.models import AuthUser


def make_log(event_abi: dict[str, Any], address: str, args: dict[str, Any], log_index: int = 0) -> dict[str, Any]:
    """Encode an event log with indexed args as topics and the rest as data."""
    indexed = [inp for inp in event_abi["inputs"] if inp.get("indexed")]
    plain = [inp for inp in event_abi["inputs"] if not inp.get("indexed")]

    topics = [event_topic(event_abi)]
    for inp in indexed:
        topics.append("0x" + abi_encode([inp["type"]], [args[inp["name"]]]).hex())
    data = abi_encode([inp["type"] for inp in plain], [args[inp["name"]] for inp in plain])
    return {"address": address, "topics": topics, "data": "0x" + data.hex(), "logIndex": log_index}


def make_receipt(
    sender: str,
    to: str | None,
    logs: list[dict[str, Any]] | None = None,
    status: int = 1,
    block_number: int = 100,
    tx_hash: str = "0x" + "ab" * 32,
) -> dict[str, Any]:
    return {
        "transactionHash": bytes.fromhex(tx_hash[2:]),
        "from": sender,
        "to": to,
        "status": status,
        "blockNumber": block_number,
        "logs": logs or [],
    }


def bearer(user_id: str, wallets: list[str], secret: str = "test-secret") -> dict[str, str]:
    """Authorization header for a user with the given linked wallets."""
    token = issue_access_token(AuthUser(id=user_id, wallets=wallets), secret)
    return {"Authorization": f"Bearer {token}"}
