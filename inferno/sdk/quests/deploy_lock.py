"""Deploy lock verification strategy.

Verifies Unlock Protocol lock deployments across the supported EVM networks
and reports the network reward multiplier.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any

from web3 import Web3

from inferno.contracts.abi import UNLOCK_FACTORY_ADDRESSES, UNLOCK_FACTORY_EVENTS, ZERO_ADDRESS
from inferno.sdk.events import decode_event_log
from inferno.sdk.hashing import is_hex32, to_hex
from inferno.sdk.models import VerificationResult
from inferno.sdk.quests.base import VerificationStrategy, receipt_field

logger = logging.getLogger(__name__)

SUPPORTED_DEPLOY_NETWORKS: dict[int, str] = {
    8453: "Base Mainnet",
    84532: "Base Sepolia",
    10: "Optimism",
    42161: "Arbitrum One",
    42220: "Celo",
}
MAX_NETWORKS = 6
MAX_REWARD_RATIO = 2.0
NEW_LOCK_TOPIC = "0x01017ed19df0c7f8acc436147b234b09664a9fb4797b4fa3fb9e599c2eb67be7"

ERROR_MESSAGES: dict[str, str] = {
    "TX_HASH_REQUIRED": "Please enter a transaction hash",
    "INVALID_TX_HASH": "Invalid transaction hash format. Must be 0x followed by 64 hex characters.",
    "TX_NOT_FOUND": "Transaction not found. Please verify the transaction hash and try again.",
    "TX_NOT_FOUND_MULTI_NETWORK": "Transaction not found on any allowed network. Did you deploy to the correct network?",
    "TX_FAILED": "This transaction failed on-chain. Please submit a successful deployment.",
    "SENDER_MISMATCH": "This transaction was not sent from your connected wallet.",
    "TX_TOO_OLD": "This deployment occurred before the quest started. Please deploy a new lock.",
    "LOCK_ADDRESS_NOT_FOUND": "Could not find lock deployment in this transaction. Is this an Unlock Protocol lock deployment?",
    "INVALID_FACTORY": "This transaction is not from an official Unlock Protocol factory. Please deploy using the official Unlock dashboard.",
    "MULTI_NETWORK_CONFLICT": "This transaction exists on multiple networks. Please submit a transaction that exists on only one network.",
    "TX_ALREADY_USED": "This transaction has already been used for a quest task.",
    "INVALID_CONFIG": "Quest configuration error. Please contact support.",
    "VERIFICATION_ERROR": "Verification failed. Please try again or contact support.",
}

Web3ForChain = Callable[[int], Web3]


def get_network_display_name(chain_id: int) -> str:
    return SUPPORTED_DEPLOY_NETWORKS.get(chain_id, f"Chain {chain_id}")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def validate_deploy_lock_config(config: Any) -> str | None:
    """Validate a deploy_lock task config; returns an error message or None."""
    if not config or not isinstance(config, dict):
        return "Task configuration missing"

    networks = config.get("allowed_networks")
    if not isinstance(networks, list) or not networks:
        return "No networks configured"
    if len(networks) > MAX_NETWORKS:
        return f"Maximum {MAX_NETWORKS} networks allowed"
    if not any(isinstance(n, dict) and n.get("enabled") is True for n in networks):
        return "No enabled networks"

    valid_ids = list(SUPPORTED_DEPLOY_NETWORKS)
    for net in networks:
        if (
            not isinstance(net, dict)
            or not isinstance(net.get("chain_id"), int)
            or isinstance(net.get("chain_id"), bool)
            or not _is_number(net.get("reward_ratio"))
            or not isinstance(net.get("enabled"), bool)
        ):
            return "Invalid network configuration structure"
        if net["chain_id"] not in valid_ids:
            return f"Invalid chain ID: {net['chain_id']}. Supported: {', '.join(str(i) for i in valid_ids)}"
        if net["reward_ratio"] <= 0 or net["reward_ratio"] > MAX_REWARD_RATIO:
            return (
                f"Invalid reward ratio for chain {net['chain_id']}: {net['reward_ratio']}. "
                "Must be > 0 and <= 2.0"
            )

    chain_ids = [n["chain_id"] for n in networks]
    if len(chain_ids) != len(set(chain_ids)):
        return "Duplicate chain IDs found in configuration"

    if "min_timestamp" in config and config["min_timestamp"] is not None:
        ts = config["min_timestamp"]
        if not _is_number(ts) or ts < 0:
            return "Invalid min_timestamp: must be a positive number (Unix timestamp)"
    return None


def reward_multiplier(config: dict[str, Any], chain_id: int) -> float:
    for net in config.get("allowed_networks", []):
        if net.get("chain_id") == chain_id:
            return net.get("reward_ratio") or 1.0
    return 1.0


def calculate_reward_amount(base_reward: int, chain_id: int, config: dict[str, Any]) -> int:
    """Floor of base reward times the network multiplier."""
    return math.floor(base_reward * reward_multiplier(config, chain_id))


def extract_lock_address(receipt: Any, deployer: str) -> str | None:
    """Lock address from the NewLock event, else the first non-deployer address topic."""
    logs = receipt_field(receipt, "logs") or []
    for log in logs:
        decoded = decode_event_log(UNLOCK_FACTORY_EVENTS, log)
        if decoded and decoded.name == "NewLock":
            return Web3.to_checksum_address(decoded.args["newLockAddress"])

    for log in logs:
        topics = [to_hex(t) for t in (receipt_field(log, "topics") or [])]
        for topic in topics[1:]:
            candidate = "0x" + topic[-40:]
            if candidate != ZERO_ADDRESS and candidate.lower() != deployer.lower():
                return Web3.to_checksum_address(candidate)
    return None


class DeployLockVerificationStrategy(VerificationStrategy):
    """Finds a lock deployment transaction on the configured networks and validates it."""

    def __init__(self, web3_for_chain: Web3ForChain):
        self.web3_for_chain = web3_for_chain

    def verify(
        self,
        task_type: str,
        verification_data: dict[str, Any],
        user_id: str,
        user_address: str,
        task_config: dict[str, Any] | None = None,
    ) -> VerificationResult:
        tx_hash = verification_data.get("transactionHash")
        if not tx_hash:
            return VerificationResult.fail("TX_HASH_REQUIRED", "Transaction hash required")
        if not is_hex32(tx_hash):
            return VerificationResult.fail("INVALID_TX_HASH", ERROR_MESSAGES["INVALID_TX_HASH"])

        config_error = validate_deploy_lock_config(task_config)
        if config_error:
            logger.error("Invalid deploy_lock configuration for user %s: %s", user_id, config_error)
            return VerificationResult.fail("INVALID_CONFIG", config_error)

        try:
            found = self._find_transaction_network(tx_hash, task_config["allowed_networks"])
            if isinstance(found, VerificationResult):
                return found
            chain_id, w3, receipt = found

            failure = self._validate_transaction(receipt, w3, user_address, task_config, chain_id)
            if failure:
                return failure

            factory = UNLOCK_FACTORY_ADDRESSES.get(chain_id)
            if not factory:
                return VerificationResult.fail("INVALID_CONFIG", f"Unlock Protocol not supported on chain {chain_id}")

            if not _has_factory_event(receipt, factory):
                logger.warning("NewLock event not from official Unlock factory (%s, chain %s)", tx_hash, chain_id)
                return VerificationResult.fail("INVALID_FACTORY", ERROR_MESSAGES["INVALID_FACTORY"])

            lock_address = extract_lock_address(receipt, user_address)
            if not lock_address:
                return VerificationResult.fail("LOCK_ADDRESS_NOT_FOUND", ERROR_MESSAGES["LOCK_ADDRESS_NOT_FOUND"])

            multiplier = reward_multiplier(task_config, chain_id)
            logger.info(
                "Lock deployment verified %s on %s (lock %s, multiplier %s)",
                tx_hash, get_network_display_name(chain_id), lock_address, multiplier,
            )
            block_number = receipt_field(receipt, "blockNumber")
            return VerificationResult(
                success=True,
                metadata={
                    "transactionHash": tx_hash,
                    "chainId": chain_id,
                    "lockAddress": lock_address,
                    "blockNumber": str(block_number) if block_number is not None else None,
                    "rewardMultiplier": multiplier,
                    "networkName": get_network_display_name(chain_id),
                    "verifiedAt": datetime.now(timezone.utc).isoformat(),
                },
            )
        except Exception as e:
            logger.error("Deploy lock verification error for user %s: %s", user_id, e)
            return VerificationResult.fail("VERIFICATION_ERROR", str(e) or "Unknown error")

    def _lookup(self, chain_id: int, tx_hash: str) -> tuple[int, Web3, Any]:
        w3 = self.web3_for_chain(chain_id)
        return chain_id, w3, w3.eth.get_transaction_receipt(tx_hash)

    def _find_transaction_network(
        self,
        tx_hash: str,
        networks: list[dict[str, Any]],
    ) -> tuple[int, Web3, Any] | VerificationResult:
        enabled = [n["chain_id"] for n in networks if n.get("enabled")]
        if not enabled:
            return VerificationResult.fail("INVALID_CONFIG", "No enabled networks in configuration")

        found: list[tuple[int, Web3, Any]] = []
        with ThreadPoolExecutor(max_workers=len(enabled)) as pool:
            futures = [pool.submit(self._lookup, chain_id, tx_hash) for chain_id in enabled]
            for chain_id, future in zip(enabled, futures):
                try:
                    found.append(future.result())
                except Exception as e:
                    logger.debug("Transaction %s not found on chain %s: %s", tx_hash, chain_id, e)

        if len(found) > 1:
            names = ", ".join(get_network_display_name(f[0]) for f in found)
            return VerificationResult.fail(
                "MULTI_NETWORK_CONFLICT",
                f"This transaction exists on multiple networks ({names}). "
                "Please submit a transaction that exists on only one network.",
            )
        if found:
            return found[0]

        names = ", ".join(get_network_display_name(c) for c in enabled)
        return VerificationResult.fail(
            "TX_NOT_FOUND_MULTI_NETWORK",
            f"Transaction not found on any allowed network: {names}",
        )

    def _validate_transaction(
        self,
        receipt: Any,
        w3: Web3,
        user_address: str,
        config: dict[str, Any],
        chain_id: int,
    ) -> VerificationResult | None:
        if receipt_field(receipt, "status") != 1:
            return VerificationResult.fail(
                "TX_FAILED",
                "Transaction failed on-chain. Please submit a successful deployment.",
            )
        if (receipt_field(receipt, "from") or "").lower() != user_address.lower():
            return VerificationResult.fail("SENDER_MISMATCH", ERROR_MESSAGES["SENDER_MISMATCH"])

        min_timestamp = config.get("min_timestamp")
        if min_timestamp:
            try:
                block = w3.eth.get_block(receipt_field(receipt, "blockNumber"))
                block_ts = int(receipt_field(block, "timestamp"))
            except Exception as e:
                # RPC failures must not block valid deployments
                logger.warning("Skipping timestamp check on chain %s, block fetch failed: %s", chain_id, e)
                return None
            if block_ts < min_timestamp:
                return VerificationResult.fail("TX_TOO_OLD", ERROR_MESSAGES["TX_TOO_OLD"])
        return None


def _has_factory_event(receipt: Any, factory: str) -> bool:
    for log in receipt_field(receipt, "logs") or []:
        topics = receipt_field(log, "topics") or []
        if not topics or to_hex(topics[0]) != NEW_LOCK_TOPIC:
            continue
        if (receipt_field(log, "address") or "").lower() == factory.lower():
            return True
    return False
