"""EIP-712 typed data for DG token withdrawals.

Users sign a Withdrawal(user, amount, deadline) message against the DG token
contract of the target chain; the relay verifies the signature and pays out
from the service wallet.
"""

from __future__ import annotations

import logging
from typing import Any

from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_account.signers.local import LocalAccount
from web3 import Web3

from inferno.cli.config import InfernoConfig
from inferno.contracts.abi import ERC20_ABI
from inferno.sdk.chain import has_valid_key, send_contract_transaction
from inferno.sdk.hashing import to_hex
from inferno.sdk.models import SignatureVerification, TransferResult, WithdrawalMessage

logger = logging.getLogger(__name__)

DOMAIN_NAME = "P2E INFERNO DG PULLOUT"
DOMAIN_VERSION = "1"
DG_DECIMALS = 18

WITHDRAWAL_TYPES: dict[str, list[dict[str, str]]] = {
    "EIP712Domain": [
        {"name": "name", "type": "string"},
        {"name": "version", "type": "string"},
        {"name": "chainId", "type": "uint256"},
        {"name": "verifyingContract", "type": "address"},
    ],
    "Withdrawal": [
        {"name": "user", "type": "address"},
        {"name": "amount", "type": "uint256"},
        {"name": "deadline", "type": "uint256"},
    ],
}


def dg_to_wei(amount_dg: int) -> int:
    """Convert whole DG to token base units."""
    return int(amount_dg) * 10**DG_DECIMALS


def get_withdrawal_domain(config: InfernoConfig, chain_id: int) -> dict[str, Any]:
    """EIP-712 domain for the DG token on a chain.

    Raises:
        ValueError: If no DG token contract is configured for the chain
    """
    contract = config.dg_contracts_by_chain().get(chain_id)
    if not contract:
        raise ValueError(f"DG token contract not configured for chainId {chain_id}")
    return {
        "name": DOMAIN_NAME,
        "version": DOMAIN_VERSION,
        "chainId": chain_id,
        "verifyingContract": contract,
    }


def build_typed_data(domain: dict[str, Any], message: WithdrawalMessage) -> dict[str, Any]:
    return {
        "types": WITHDRAWAL_TYPES,
        "primaryType": "Withdrawal",
        "domain": domain,
        "message": {
            "user": Web3.to_checksum_address(message.user),
            "amount": message.amount,
            "deadline": message.deadline,
        },
    }


def sign_withdrawal(config: InfernoConfig, message: WithdrawalMessage, chain_id: int, private_key: str) -> str:
    """Sign a withdrawal message with a user key (client side helper)."""
    typed = build_typed_data(get_withdrawal_domain(config, chain_id), message)
    signed = Account.sign_message(encode_typed_data(full_message=typed), private_key)
    return to_hex(signed.signature)


def verify_withdrawal_signature(
    config: InfernoConfig,
    message: WithdrawalMessage,
    signature: str,
    chain_id: int,
) -> SignatureVerification:
    """Check that `message.user` signed the withdrawal.

    Never raises; failures are reported in the result.
    """
    try:
        typed = build_typed_data(get_withdrawal_domain(config, chain_id), message)
        recovered = Account.recover_message(encode_typed_data(full_message=typed), signature=signature)
    except Exception as e:
        logger.error("Withdrawal signature verification failed: %s", e)
        return SignatureVerification(valid=False, error=str(e) or "Verification failed")

    if recovered.lower() != message.user.lower():
        logger.warning("Invalid withdrawal signature for %s (recovered %s)", message.user, recovered)
        return SignatureVerification(valid=False, error="Invalid signature")
    return SignatureVerification(valid=True, recovered_address=message.user)


def transfer_dg_tokens(
    w3: Web3 | None,
    account: LocalAccount | None,
    recipient: str,
    amount: int,
    token_address: str,
) -> TransferResult:
    """Transfer DG tokens (base units) from the service wallet."""
    if w3 is None:
        return TransferResult(success=False, error="Server wallet not configured")
    if account is None:
        return TransferResult(success=False, error="Wallet account not available")

    try:
        token = w3.eth.contract(address=Web3.to_checksum_address(token_address), abi=ERC20_ABI)
        fn = token.functions.transfer(Web3.to_checksum_address(recipient), amount)
        receipt = send_contract_transaction(w3, account, fn)
        if receipt["status"] != 1:
            return TransferResult(success=False, error="Transaction reverted on-chain")
        return TransferResult(
            success=True,
            transaction_hash=to_hex(receipt["transactionHash"]),
            block_number=receipt["blockNumber"],
        )
    except Exception as e:
        logger.error("DG transfer to %s failed: %s", recipient, e)
        return TransferResult(success=False, error=str(e) or "Unknown error")


def has_valid_dg_nation_key(w3: Web3, wallet: str, lock_address: str) -> bool:
    """Whether the wallet holds a DG Nation membership key; False on read errors."""
    try:
        return has_valid_key(w3, lock_address, wallet)
    except Exception as e:
        logger.error("DG Nation key check failed for %s: %s", wallet, e)
        return False
