"""Event log decoding for transaction receipts.

Matches receipt logs against ABI event entries by topic and decodes indexed
and data arguments with eth-abi, so receipts fetched by any Web3 provider
(or built by hand in tests) can be inspected the same way.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from eth_abi import decode as abi_decode
from web3 import Web3

from inferno.sdk.hashing import to_hex


@dataclass
class DecodedEvent:
    """Decoded receipt log."""

    name: str
    address: str
    args: dict[str, Any] = field(default_factory=dict)
    log_index: int | None = None


def event_signature(event_abi: dict[str, Any]) -> str:
    """Canonical signature, e.g. "Transfer(address,address,uint256)"."""
    types = ",".join(inp["type"] for inp in event_abi["inputs"])
    return f"{event_abi['name']}({types})"


def event_topic(event_abi: dict[str, Any]) -> str:
    """keccak256 of the event signature as 0x hex."""
    return to_hex(Web3.keccak(text=event_signature(event_abi)))


def decode_event_log(events: list[dict[str, Any]], log: Any) -> DecodedEvent | None:
    """Decode a receipt log against a list of event ABIs.

    Returns None when the log matches none of the events or cannot be decoded.
    """
    topics = [to_hex(t) for t in (_get(log, "topics") or [])]
    if not topics:
        return None

    for event_abi in events:
        if topics[0] != event_topic(event_abi):
            continue
        try:
            args = _decode_args(event_abi, topics[1:], _get(log, "data") or b"")
        except Exception:
            return None
        return DecodedEvent(
            name=event_abi["name"],
            address=to_hex(_get(log, "address") or ""),
            args=args,
            log_index=_get(log, "logIndex"),
        )
    return None


def find_event(events: list[dict[str, Any]], logs: list[Any], name: str, emitter: str | None = None) -> DecodedEvent | None:
    """First decoded event with the given name, optionally from a given contract."""
    for log in logs:
        if emitter and to_hex(_get(log, "address") or "") != emitter.lower():
            continue
        decoded = decode_event_log(events, log)
        if decoded and decoded.name == name:
            return decoded
    return None


def _decode_args(event_abi: dict[str, Any], indexed_topics: list[str], data: Any) -> dict[str, Any]:
    indexed = [inp for inp in event_abi["inputs"] if inp.get("indexed")]
    plain = [inp for inp in event_abi["inputs"] if not inp.get("indexed")]
    if len(indexed_topics) != len(indexed):
        raise ValueError("Indexed topic count mismatch")

    args: dict[str, Any] = {}
    for inp, topic in zip(indexed, indexed_topics):
        (value,) = abi_decode([inp["type"]], bytes.fromhex(topic[2:]))
        args[inp["name"]] = value

    raw = bytes.fromhex(to_hex(data)[2:]) if not isinstance(data, (bytes, bytearray)) else bytes(data)
    if plain:
        values = abi_decode([inp["type"] for inp in plain], raw)
        args.update({inp["name"]: value for inp, value in zip(plain, values)})
    return args


def _get(log: Any, key: str) -> Any:
    if isinstance(log, dict):
        return log.get(key)
    return getattr(log, key, None)
