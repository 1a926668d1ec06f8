"""Core EAS client functionality.

Provides a high-level interface to the Ethereum Attestation Service contracts.
Handles delegated attestation submission, schema registration and lookups.
"""

from __future__ import annotations

import logging
from typing import Any

from eth_account.signers.local import LocalAccount
from web3 import Web3

from inferno.contracts.abi import EAS_ABI, SCHEMA_REGISTRY_ABI, ZERO_ADDRESS, events_of
from inferno.sdk.chain import parse_signature, send_contract_transaction
from inferno.sdk.events import find_event
from inferno.sdk.hashing import compute_schema_uid, to_hex
from inferno.sdk.models import DelegatedAttestationParams, OnchainAttestation

logger = logging.getLogger(__name__)


class EASClient:
    """High-level client for the Ethereum Attestation Service."""

    def __init__(self, w3: Web3, contract_address: str, registry_address: str | None = None):
        """Initialize EAS client.

        Args:
            w3: Web3 client connected to the target chain
            contract_address: EAS contract address
            registry_address: SchemaRegistry address (for schema registration)
        """
        if w3 is None:
            raise ValueError("Web3 client is required")
        if not contract_address:
            raise ValueError("EAS contract address is required")

        self.w3 = w3
        self.contract_address = Web3.to_checksum_address(contract_address)
        self.registry_address = Web3.to_checksum_address(registry_address) if registry_address else None
        self.account: LocalAccount | None = None

    def set_signer(self, account: LocalAccount) -> None:
        """Set the wallet that pays for submitted transactions."""
        self.account = account

    def _contract(self) -> Any:
        return self.w3.eth.contract(address=self.contract_address, abi=EAS_ABI)

    def _require_signer(self) -> LocalAccount:
        if not self.account:
            raise ValueError("Signer not set. Call set_signer() first.")
        return self.account

    def attest_by_delegation(self, params: DelegatedAttestationParams, attester: str) -> tuple[str, str]:
        """Submit a delegated attestation signed by `attester`.

        Returns:
            (attestation UID, transaction hash)
        """
        account = self._require_signer()
        v, r, s = parse_signature(params.signature)

        request = (
            bytes.fromhex(params.schema_uid[2:]),
            (
                Web3.to_checksum_address(params.recipient),
                params.expiration_time,
                params.revocable,
                bytes.fromhex(params.ref_uid[2:]),
                bytes.fromhex(params.data[2:]),
                0,
            ),
            (v, r, s),
            Web3.to_checksum_address(attester),
            params.deadline,
        )
        fn = self._contract().functions.attestByDelegation(request)
        receipt = send_contract_transaction(self.w3, account, fn)
        tx_hash = to_hex(receipt["transactionHash"])

        if receipt["status"] != 1:
            raise RuntimeError(f"Attestation transaction reverted: {tx_hash}")

        event = find_event(events_of(EAS_ABI), receipt["logs"], "Attested", emitter=self.contract_address)
        if not event:
            raise RuntimeError("Attested event not found in transaction receipt")

        uid = to_hex(event.args["uid"])
        logger.info("Delegated attestation %s created in %s", uid, tx_hash)
        return uid, tx_hash

    def register_schema(self, definition: str, resolver: str = ZERO_ADDRESS, revocable: bool = True) -> str:
        """Register a schema on the SchemaRegistry and return its UID."""
        if not self.registry_address:
            raise ValueError("Schema registry address not set")
        if not definition:
            raise ValueError("Schema definition required")
        account = self._require_signer()

        registry = self.w3.eth.contract(address=self.registry_address, abi=SCHEMA_REGISTRY_ABI)
        fn = registry.functions.register(definition, Web3.to_checksum_address(resolver), revocable)
        receipt = send_contract_transaction(self.w3, account, fn)
        if receipt["status"] != 1:
            raise RuntimeError(f"Schema registration reverted: {to_hex(receipt['transactionHash'])}")

        # The registry derives the UID deterministically from its inputs
        return compute_schema_uid(definition, resolver, revocable)

    def get_attestation(self, uid: str) -> OnchainAttestation | None:
        """Read an attestation from the EAS contract; None if it does not exist."""
        if not uid:
            raise ValueError("Attestation UID required")

        raw = self._contract().functions.getAttestation(bytes.fromhex(uid[2:])).call()
        attestation = OnchainAttestation(
            uid=to_hex(raw[0]),
            schema_uid=to_hex(raw[1]),
            time=raw[2],
            expiration_time=raw[3],
            revocation_time=raw[4],
            ref_uid=to_hex(raw[5]),
            recipient=raw[6],
            attester=raw[7],
            revocable=raw[8],
            data=to_hex(raw[9]),
        )
        if int(attestation.uid, 16) == 0:
            return None
        return attestation
