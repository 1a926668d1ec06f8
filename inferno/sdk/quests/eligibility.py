"""Eligibility constraints for daily quest runs."""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Literal

from pydantic import BaseModel, Field
from web3 import Web3

from inferno.contracts.abi import ERC20_ABI
from inferno.sdk.chain import has_valid_key
from inferno.sdk.quests.vendor import get_vendor_stage
from inferno.sdk.validator import is_valid_address

logger = logging.getLogger(__name__)

VENDOR_STAGE_LABELS = {0: "Pleb", 1: "Hustler", 2: "OG"}

FailureType = Literal["wallet_required", "vendor_stage", "lock_key", "erc20_balance"]


class EligibilityFailure(BaseModel):
    type: FailureType
    message: str


class DailyQuestEligibility(BaseModel):
    """Whether a user may join a daily quest run, and why not."""

    eligible: bool = True
    failures: list[EligibilityFailure] = Field(default_factory=list)
    vendor_stage_current: int | None = None
    vendor_stage_required: int | None = None


class RequiredErc20(BaseModel):
    token: str
    min_balance: str


class EligibilityConfig(BaseModel):
    min_vendor_stage: int | None = None
    required_lock_address: str | None = None
    required_erc20: RequiredErc20 | None = None


def get_stage_label(stage: int) -> str:
    return VENDOR_STAGE_LABELS.get(stage, f"Stage {stage}")


def _parse_units(amount: str, decimals: int) -> int:
    try:
        return int(Decimal(amount) * (Decimal(10) ** decimals))
    except InvalidOperation:
        raise ValueError(f"Invalid token amount: {amount}")


def evaluate_daily_quest_eligibility(
    w3: Web3,
    user_wallets: list[str],
    wallet_address: str | None,
    eligibility: EligibilityConfig | dict[str, Any],
    vendor_address: str | None = None,
) -> DailyQuestEligibility:
    """Collect every failed constraint for a user.

    Lock keys are checked across all linked wallets; vendor stage and ERC20
    balance need the selected wallet.
    """
    if isinstance(eligibility, dict):
        eligibility = EligibilityConfig.model_validate(eligibility)
    result = DailyQuestEligibility()

    def fail(type_: FailureType, message: str) -> None:
        result.failures.append(EligibilityFailure(type=type_, message=message))

    lock = (eligibility.required_lock_address or "").strip()
    if lock:
        try:
            if not any(has_valid_key(w3, lock, wallet) for wallet in user_wallets):
                fail("lock_key", "Requires a key from a specific lock")
        except Exception as e:
            logger.error("Lock key eligibility check failed: %s", e)
            fail("lock_key", "Requires a key from a specific lock")

    needs_wallet = eligibility.min_vendor_stage is not None or eligibility.required_erc20 is not None
    if needs_wallet and not (wallet_address or "").strip():
        fail("wallet_required", "Wallet is required to participate")
        result.eligible = not result.failures
        return result

    if eligibility.min_vendor_stage is not None:
        required = eligibility.min_vendor_stage
        result.vendor_stage_required = required
        if not is_valid_address(vendor_address):
            fail("vendor_stage", "Vendor level check unavailable")
        else:
            try:
                stage = get_vendor_stage(w3, vendor_address, wallet_address)
                result.vendor_stage_current = stage
                if stage < required:
                    fail("vendor_stage", f"Requires {get_stage_label(required)} level or higher")
            except Exception as e:
                logger.error("Vendor stage eligibility check failed for %s: %s", wallet_address, e)
                fail("vendor_stage", "Vendor level check unavailable")

    erc20 = eligibility.required_erc20
    if erc20 is not None:
        if not erc20.min_balance or not is_valid_address(erc20.token):
            fail("erc20_balance", "Insufficient token balance")
        else:
            try:
                token = w3.eth.contract(address=Web3.to_checksum_address(erc20.token), abi=ERC20_ABI)
                decimals = int(token.functions.decimals().call())
                minimum = _parse_units(erc20.min_balance, decimals)
                balance = int(token.functions.balanceOf(Web3.to_checksum_address(wallet_address)).call())
                if balance < minimum:
                    fail("erc20_balance", "Insufficient token balance")
            except Exception as e:
                logger.error("ERC20 balance eligibility check failed for %s: %s", wallet_address, e)
                fail("erc20_balance", "Insufficient token balance")

    result.eligible = not result.failures
    return result
