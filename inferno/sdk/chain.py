"""Low-level EVM helpers shared by the relay components.

Signature parsing, transaction submission with the service wallet and
Unlock lock key checks.
"""

from __future__ import annotations

import logging
from typing import Any

from eth_account.signers.local import LocalAccount
from web3 import Web3

from inferno.contracts.abi import PUBLIC_LOCK_ABI

logger = logging.getLogger(__name__)

RECEIPT_TIMEOUT = 120


def parse_signature(signature: str) -> tuple[int, bytes, bytes]:
    """Split a 0x signature into (v, r, s).

    Accepts 65-byte rsv signatures and 64-byte EIP-2098 compact signatures.

    Raises:
        ValueError: If the signature is not valid hex of a supported length
    """
    if not isinstance(signature, str) or not signature.startswith("0x"):
        raise ValueError("Invalid signature format")
    try:
        raw = bytes.fromhex(signature[2:])
    except ValueError:
        raise ValueError("Invalid signature format")

    if len(raw) == 65:
        r, s, v = raw[:32], raw[32:64], raw[64]
        if v < 27:
            v += 27
        return v, r, s
    if len(raw) == 64:
        r, vs = raw[:32], int.from_bytes(raw[32:], "big")
        v = 27 + (vs >> 255)
        s = (vs & ((1 << 255) - 1)).to_bytes(32, "big")
        return v, r, s
    raise ValueError("Invalid signature format")


def send_contract_transaction(w3: Web3, account: LocalAccount, fn: Any, value: int = 0) -> Any:
    """Sign and send a contract function call, then wait for its receipt."""
    tx = fn.build_transaction({
        "from": account.address,
        "nonce": w3.eth.get_transaction_count(account.address),
        "chainId": w3.eth.chain_id,
        "value": value,
    })
    signed = account.sign_transaction(tx)
    tx_hash = w3.eth.send_raw_transaction(signed.raw_transaction)
    logger.debug("Submitted transaction %s", Web3.to_hex(tx_hash))
    return w3.eth.wait_for_transaction_receipt(tx_hash, timeout=RECEIPT_TIMEOUT)


def has_valid_key(w3: Web3, lock_address: str, user_address: str) -> bool:
    """Check whether the user holds a valid key on an Unlock lock."""
    lock = w3.eth.contract(address=Web3.to_checksum_address(lock_address), abi=PUBLIC_LOCK_ABI)
    return bool(lock.functions.getHasValidKey(Web3.to_checksum_address(user_address)).call())
