"""Lock key ownership verification strategy."""

from __future__ import annotations

import logging
from typing import Any

from web3 import Web3

from inferno.sdk.chain import has_valid_key
from inferno.sdk.models import VerificationResult
from inferno.sdk.quests.base import VerificationStrategy
from inferno.sdk.validator import is_valid_address

logger = logging.getLogger(__name__)


class LockKeyVerificationStrategy(VerificationStrategy):
    """Succeeds when the user holds a valid key on the configured lock."""

    def __init__(self, w3: Web3):
        self.w3 = w3

    def verify(
        self,
        task_type: str,
        verification_data: dict[str, Any],
        user_id: str,
        user_address: str,
        task_config: dict[str, Any] | None = None,
    ) -> VerificationResult:
        lock_address = (task_config or {}).get("lock_address")
        if not is_valid_address(lock_address):
            return VerificationResult.fail("INVALID_CONFIG", "Lock address not configured")
        if not is_valid_address(user_address):
            return VerificationResult.fail("WALLET_REQUIRED", "Wallet address required")

        try:
            valid = has_valid_key(self.w3, lock_address, user_address)
        except Exception as e:
            logger.error("Key check failed on %s for %s: %s", lock_address, user_address, e)
            return VerificationResult.fail("VERIFICATION_ERROR", str(e) or "Unknown error")

        if not valid:
            return VerificationResult.fail("KEY_NOT_FOUND", "No valid key found for this lock")
        return VerificationResult(success=True, metadata={"lockAddress": lock_address})
