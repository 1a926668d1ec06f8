"""Task type to verification strategy mapping."""

from __future__ import annotations

from collections.abc import Callable

from sqlmodel import Session
from web3 import Web3

from inferno.cli.config import InfernoConfig, create_web3
from inferno.sdk.quests.base import VerificationStrategy
from inferno.sdk.quests.checkin import DailyCheckinVerificationStrategy
from inferno.sdk.quests.deploy_lock import DeployLockVerificationStrategy
from inferno.sdk.quests.lock_key import LockKeyVerificationStrategy
from inferno.sdk.quests.submission import SubmissionVerificationStrategy
from inferno.sdk.quests.vendor import VendorVerificationStrategy

VENDOR_TYPES = frozenset({"vendor_buy", "vendor_sell", "vendor_light_up", "vendor_level_up"})
SUBMISSION_TYPES = frozenset({"submit_url", "submit_text", "submit_proof", "url_submission", "text_submission"})
LOCK_KEY_TYPES = frozenset({"contract_interaction", "lock_key"})

# Verified on-chain regardless of the task's verification_method
BLOCKCHAIN_TASK_TYPES = VENDOR_TYPES | {"deploy_lock"}


def is_blockchain_task(task_type: str) -> bool:
    return task_type in BLOCKCHAIN_TASK_TYPES


def get_verification_strategy(
    task_type: str,
    session: Session,
    config: InfernoConfig,
    web3_for_chain: Callable[[int], Web3] | None = None,
) -> VerificationStrategy | None:
    """Build the strategy for a task type, or None when the type has none."""
    web3_for_chain = web3_for_chain or (lambda chain_id: create_web3(config, chain_id))

    if task_type in VENDOR_TYPES:
        return VendorVerificationStrategy(web3_for_chain(config.chain_id), config.dg_vendor_address)
    if task_type == "deploy_lock":
        return DeployLockVerificationStrategy(web3_for_chain)
    if task_type == "daily_checkin":
        return DailyCheckinVerificationStrategy(session, config)
    if task_type in SUBMISSION_TYPES:
        return SubmissionVerificationStrategy()
    if task_type in LOCK_KEY_TYPES:
        return LockKeyVerificationStrategy(web3_for_chain(config.chain_id))
    return None
