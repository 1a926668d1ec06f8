"""Validation utilities for schemas and attestation payloads."""

from __future__ import annotations

import re
from typing import Any

from web3 import Web3

_IDENTIFIER_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")
_FIXED_ARRAY_RE = re.compile(r"^(.+)\[(\d+)\]$")
_SCHEMA_KEY_RE = re.compile(r"^[a-z][a-z0-9_]*$")

VALID_SOLIDITY_TYPES = frozenset({
    "address", "bool", "string", "bytes",
    "uint8", "uint16", "uint32", "uint64", "uint128", "uint256",
    "int8", "int16", "int32", "int64", "int128", "int256",
    "bytes1", "bytes2", "bytes4", "bytes8", "bytes16", "bytes32",
})


def is_valid_address(address: Any) -> bool:
    """Validate Ethereum address format."""
    if not isinstance(address, str):
        return False
    try:
        return Web3.is_address(address)
    except Exception:
        return False


def is_valid_solidity_type(type_: str) -> bool:
    """Validate a Solidity type, including dynamic and fixed arrays."""
    if type_ in VALID_SOLIDITY_TYPES:
        return True
    if type_.endswith("[]"):
        return is_valid_solidity_type(type_[:-2])
    match = _FIXED_ARRAY_RE.match(type_)
    if match:
        return is_valid_solidity_type(match.group(1))
    return False


def parse_schema_definition(definition: str) -> list[tuple[str, str]]:
    """Split a schema definition into (type, name) pairs.

    Raises:
        ValueError: If any field is not "<type> <name>"
    """
    fields: list[tuple[str, str]] = []
    for field in definition.split(","):
        parts = field.strip().split(" ")
        if len(parts) != 2 or not parts[0] or not parts[1]:
            raise ValueError(f"Invalid schema field: {field.strip()!r}")
        fields.append((parts[0], parts[1]))
    return fields


def is_valid_schema_definition(definition: str) -> bool:
    """Check the "type name,type name,..." schema format."""
    if not isinstance(definition, str) or not definition.strip():
        return False
    try:
        fields = parse_schema_definition(definition)
    except ValueError:
        return False
    return all(
        is_valid_solidity_type(type_) and _IDENTIFIER_RE.match(name)
        for type_, name in fields
    )


def is_valid_schema_key(key: Any) -> bool:
    return isinstance(key, str) and bool(_SCHEMA_KEY_RE.match(key))


def validate_attestation_data(schema_definition: str, data: dict[str, Any]) -> tuple[bool, list[str]]:
    """Validate attestation data against a schema definition.

    Missing fields are allowed; present fields must match their declared type.

    Returns:
        (valid, errors)
    """
    errors: list[str] = []
    try:
        fields = parse_schema_definition(schema_definition)
    except ValueError as e:
        return False, [f"Schema validation error: {e}"]

    for type_, name in fields:
        value = data.get(name)
        if value is None:
            continue
        error = _check_field(type_, name, value)
        if error:
            errors.append(error)
    return not errors, errors


def _check_field(type_: str, name: str, value: Any) -> str | None:
    if type_ == "address":
        if not is_valid_address(value):
            return f"Invalid address for field {name}: {value}"
    elif type_ == "bool":
        if not isinstance(value, bool):
            return f"Invalid boolean for field {name}: {value}"
    elif type_ == "string":
        if not isinstance(value, str):
            return f"Invalid string for field {name}: {value}"
    elif type_.startswith("uint"):
        if isinstance(value, bool) or not isinstance(value, int):
            return f"Invalid uint for field {name}: {value}"
        if value < 0:
            return f"Invalid uint for field {name}: must be a positive integer"
    return None
