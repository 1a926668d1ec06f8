"""Vendor verification strategy.

Verifies DG token vendor tasks: buy/sell/light-up transactions are checked
against their receipts and emitted events, level-up against the user's
on-chain vendor stage.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from web3 import Web3

from inferno.contracts.abi import DG_TOKEN_VENDOR_ABI, events_of
from inferno.sdk.events import decode_event_log
from inferno.sdk.hashing import to_int
from inferno.sdk.models import VerificationResult
from inferno.sdk.quests.base import VerificationStrategy, receipt_field

logger = logging.getLogger(__name__)

EXPECTED_EVENTS = {
    "vendor_buy": "TokensPurchased",
    "vendor_sell": "TokensSold",
    "vendor_light_up": "Lit",
}
EVENT_USER_ARG = {
    "vendor_buy": "buyer",
    "vendor_sell": "seller",
    "vendor_light_up": "user",
}
VENDOR_TASK_TYPES = frozenset({*EXPECTED_EVENTS, "vendor_level_up"})


class VendorVerificationStrategy(VerificationStrategy):
    """Checks vendor transactions and stage on the DG token vendor contract."""

    def __init__(self, w3: Web3, vendor_address: str | None):
        self.w3 = w3
        self.vendor_address = vendor_address

    def verify(
        self,
        task_type: str,
        verification_data: dict[str, Any],
        user_id: str,
        user_address: str,
        task_config: dict[str, Any] | None = None,
    ) -> VerificationResult:
        tx_hash = verification_data.get("transactionHash")
        try:
            if not self.vendor_address:
                return VerificationResult.fail("INVALID_CONFIG", "Vendor contract not configured")
            if task_type in EXPECTED_EVENTS:
                if not tx_hash:
                    return VerificationResult.fail("TX_HASH_REQUIRED", "Transaction hash required")
                return self._verify_transaction(tx_hash, task_type, user_address, task_config)
            if task_type == "vendor_level_up":
                return self._verify_level(user_address, task_config)
            return VerificationResult.fail("INVALID_TASK_TYPE", "Unsupported vendor task type")
        except Exception as e:
            logger.error("Vendor verification error (%s, user=%s): %s", task_type, user_id, e)
            return VerificationResult.fail("VERIFICATION_ERROR", str(e) or "Unknown error")

    def _verify_transaction(
        self,
        tx_hash: str,
        task_type: str,
        user: str,
        task_config: dict[str, Any] | None,
    ) -> VerificationResult:
        try:
            receipt = self.w3.eth.get_transaction_receipt(tx_hash)
        except Exception as e:
            logger.warning("Transaction receipt lookup failed for %s: %s", tx_hash, e)
            return VerificationResult.fail("TX_FETCH_FAILED", str(e) or "Transaction not found")

        vendor = self.vendor_address.lower()
        if (receipt_field(receipt, "to") or "").lower() != vendor:
            return VerificationResult.fail("WRONG_CONTRACT", "Transaction not with Vendor contract")
        if (receipt_field(receipt, "from") or "").lower() != user.lower():
            return VerificationResult.fail("SENDER_MISMATCH", "Transaction sender mismatch")
        if receipt_field(receipt, "status") != 1:
            return VerificationResult.fail("TX_FAILED", "Transaction failed")

        event_name = EXPECTED_EVENTS[task_type]
        decoded = None
        for log in receipt_field(receipt, "logs") or []:
            if (receipt_field(log, "address") or "").lower() != vendor:
                continue
            candidate = decode_event_log(events_of(DG_TOKEN_VENDOR_ABI), log)
            if candidate and candidate.name == event_name:
                decoded = candidate
                break
        if not decoded:
            return VerificationResult.fail("EVENT_NOT_FOUND", "Expected vendor event not found")

        event_user = str(decoded.args.get(EVENT_USER_ARG[task_type], ""))
        if event_user.lower() != user.lower():
            return VerificationResult.fail("USER_MISMATCH", "Event user mismatch")

        amount = _event_amount(task_type, decoded.args, task_config)
        if task_type != "vendor_light_up":
            required = to_int((task_config or {}).get("required_amount"))
            if required > 0 and amount < required:
                return VerificationResult.fail("AMOUNT_TOO_LOW", "Amount below required minimum")

        logger.info("Vendor transaction verified %s (%s, %s)", tx_hash, task_type, event_name)
        block_number = receipt_field(receipt, "blockNumber")
        return VerificationResult(
            success=True,
            metadata={
                "txHash": tx_hash,
                "eventName": event_name,
                "amount": str(amount),
                "logIndex": decoded.log_index,
                "blockNumber": str(block_number) if block_number is not None else None,
                "verifiedAt": datetime.now(timezone.utc).isoformat(),
            },
        )

    def _verify_level(self, user: str, task_config: dict[str, Any] | None) -> VerificationResult:
        target = target_stage(task_config)
        stage = get_vendor_stage(self.w3, self.vendor_address, user)
        if stage >= target:
            logger.info("Vendor level verified for %s (stage %s >= %s)", user, stage, target)
            return VerificationResult(
                success=True,
                metadata={
                    "txHash": None,
                    "eventName": "StageUpgraded",
                    "amount": None,
                    "logIndex": None,
                    "blockNumber": None,
                    "verifiedAt": datetime.now(timezone.utc).isoformat(),
                },
            )
        return VerificationResult.fail("STAGE_TOO_LOW", f"Current stage {stage} < Target {target}")


def get_vendor_stage(w3: Web3, vendor_address: str, user: str) -> int:
    """Read the user's vendor stage (first field of getUserState)."""
    vendor = w3.eth.contract(address=Web3.to_checksum_address(vendor_address), abi=DG_TOKEN_VENDOR_ABI)
    state = vendor.functions.getUserState(Web3.to_checksum_address(user)).call()
    return int(state[0])


def target_stage(task_config: dict[str, Any] | None) -> int:
    raw = (task_config or {}).get("target_stage")
    if isinstance(raw, bool):
        return 1
    if isinstance(raw, (int, float)):
        return max(1, int(raw))
    if isinstance(raw, str) and raw.strip():
        try:
            return max(1, int(raw.strip()))
        except ValueError:
            return 1
    return 1


def _event_amount(task_type: str, args: dict[str, Any], task_config: dict[str, Any] | None) -> int:
    preferred = (task_config or {}).get("required_token")
    if preferred not in ("base", "swap"):
        preferred = "swap" if task_type == "vendor_sell" else "base"

    base, swap = args.get("baseTokenAmount"), args.get("swapTokenAmount")
    if task_type in ("vendor_buy", "vendor_sell"):
        first, second = (swap, base) if preferred == "swap" else (base, swap)
        return to_int(first if first is not None else second)
    return 0
