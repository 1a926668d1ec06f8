"""Deterministic identifiers and hex normalization helpers.

Computes EAS schema UIDs the way the SchemaRegistry does and normalizes the
bytes32 / uint values carried in attestation payloads.
"""

from __future__ import annotations

import re
from typing import Any

from hexbytes import HexBytes
from web3 import Web3

from inferno.contracts.abi import ZERO_ADDRESS

_HEX32_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")
_HEX_RE = re.compile(r"^0x[0-9a-fA-F]*$")


def compute_schema_uid(schema_definition: str, resolver: str = ZERO_ADDRESS, revocable: bool = True) -> str:
    """Compute the EAS schema UID.

    keccak256(abi.encodePacked(schema, resolver, revocable)), identical to
    SchemaRegistry._getUID.

    Args:
        schema_definition: Comma separated "type name" field list
        resolver: Resolver contract address (zero address when unused)
        revocable: Whether attestations under the schema can be revoked

    Returns:
        0x-prefixed lowercase hex UID
    """
    if not schema_definition:
        raise ValueError("Schema definition cannot be empty")
    raw = Web3.solidity_keccak(
        ["string", "address", "bool"],
        [schema_definition, Web3.to_checksum_address(resolver), revocable],
    )
    return to_hex(raw)


def to_hex(value: Any) -> str:
    """Render bytes-like or hex string values as 0x-prefixed lowercase hex."""
    if isinstance(value, (bytes, bytearray, HexBytes)):
        return "0x" + bytes(value).hex()
    if isinstance(value, str):
        s = value.lower()
        return s if s.startswith("0x") else "0x" + s
    raise TypeError(f"Unsupported type for hex conversion: {type(value).__name__}")


def is_hex32(value: Any) -> bool:
    """True for 0x followed by exactly 64 hex characters."""
    return isinstance(value, str) and bool(_HEX32_RE.match(value))


def is_hex(value: Any) -> bool:
    """True for any 0x-prefixed hex string (including empty payload)."""
    return isinstance(value, str) and bool(_HEX_RE.match(value))


def is_valid_tx_hash(value: Any) -> bool:
    return is_hex32(value)


def normalize_bytes32(value: Any) -> str | None:
    """Normalize a bytes32 value to lowercase hex, or None if it is not one."""
    if isinstance(value, (bytes, bytearray, HexBytes)):
        value = to_hex(value)
    if not isinstance(value, str):
        return None
    candidate = value.strip().lower()
    return candidate if is_hex32(candidate) else None


def normalize_uint(value: Any) -> str | None:
    """Normalize an unsigned integer (int or decimal/hex string) to its decimal string."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value) if value >= 0 else None
    if isinstance(value, str):
        s = value.strip()
        try:
            parsed = int(s, 16) if s.lower().startswith("0x") else int(s)
        except ValueError:
            return None
        return str(parsed) if parsed >= 0 else None
    return None


def to_int(value: Any) -> int:
    """Coerce amounts from events or task config to int, defaulting to 0."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str) and value.strip():
        try:
            s = value.strip()
            return int(s, 16) if s.lower().startswith("0x") else int(s)
        except ValueError:
            return 0
    return 0
