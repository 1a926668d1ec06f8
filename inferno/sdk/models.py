"""Pydantic models for relay data structures.

Transient values exchanged with clients and between relay components:
delegated attestation signatures, relay outcomes, network configuration,
verification results and EIP-712 withdrawal messages.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from inferno.contracts.abi import ZERO_BYTES32


class SchemaCategory(str, Enum):
    """Attestation schema categories."""
    ATTENDANCE = "attendance"
    SOCIAL = "social"
    VERIFICATION = "verification"
    REVIEW = "review"
    ACHIEVEMENT = "achievement"


class DelegatedAttestationSignature(BaseModel):
    """Client-signed authorization for a delegated attestation."""

    model_config = ConfigDict(populate_by_name=True)

    signature: str = Field(..., description="0x rsv signature (65 bytes) or compact (64 bytes)")
    deadline: int = Field(..., description="Unix timestamp after which the signature is void")
    attester: str | None = Field(default=None, description="Signing wallet")
    recipient: str = Field(..., description="Attestation recipient")
    schema_uid: str | None = Field(default=None, alias="schemaUid")
    data: str = Field(..., description="0x ABI-encoded attestation payload")
    expiration_time: int = Field(default=0, alias="expirationTime")
    revocable: bool = Field(default=False)
    ref_uid: str = Field(default=ZERO_BYTES32, alias="refUID")
    chain_id: int = Field(..., alias="chainId")


class GaslessAttestationResult(BaseModel):
    """Outcome of a relayed attestation."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    uid: str | None = None
    tx_hash: str | None = Field(default=None, alias="txHash")
    error: str | None = None


class DelegatedAttestationParams(BaseModel):
    """Validated inputs for an on-chain delegated attestation."""

    schema_uid: str
    recipient: str
    data: str
    signature: str
    deadline: int
    chain_id: int
    expiration_time: int = 0
    revocable: bool = False
    ref_uid: str = ZERO_BYTES32


class EasNetworkConfig(BaseModel):
    """EAS deployment details for one network."""

    name: str
    chain_id: int
    display_name: str
    is_testnet: bool = False
    enabled: bool = True
    eas_contract_address: str
    schema_registry_address: str
    eip712_proxy_address: str | None = None
    eas_scan_base_url: str | None = None
    explorer_base_url: str | None = None
    rpc_url: str | None = None
    source: str | None = None


class OnchainAttestation(BaseModel):
    """Attestation record as stored by the EAS contract."""

    uid: str
    schema_uid: str
    time: int
    expiration_time: int
    revocation_time: int
    ref_uid: str
    recipient: str
    attester: str
    revocable: bool
    data: str

    @property
    def is_revoked(self) -> bool:
        return self.revocation_time > 0


class SchemaRegistration(BaseModel):
    """Admin payload for registering an attestation schema."""

    schema_uid: str = Field(..., description="On-chain UID or template placeholder")
    name: str
    description: str = ""
    schema_definition: str
    category: SchemaCategory = SchemaCategory.ACHIEVEMENT
    revocable: bool = False
    network: str | None = None
    schema_key: str | None = None


class VerificationResult(BaseModel):
    """Outcome of a quest task verification."""

    success: bool
    code: str | None = None
    error: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def fail(cls, code: str, error: str) -> VerificationResult:
        return cls(success=False, code=code, error=error)


class WithdrawalMessage(BaseModel):
    """EIP-712 Withdrawal struct."""

    user: str
    amount: int = Field(..., description="Amount in wei")
    deadline: int


class SignatureVerification(BaseModel):
    """Result of a typed-data signature check."""

    valid: bool
    recovered_address: str | None = None
    error: str | None = None


class AuthUser(BaseModel):
    """Authenticated caller and the wallets linked to their account."""

    id: str
    wallets: list[str] = Field(default_factory=list)
    email: str | None = None


class TelegramResult(BaseModel):
    """Result of a Telegram Bot API call."""

    ok: bool
    error: str | None = None


class BroadcastSummary(BaseModel):
    """Counts for a batched notification broadcast."""

    sent: int = 0
    failed: int = 0
    started_at: datetime | None = None


class TransferResult(BaseModel):
    """Outcome of an ERC20 transfer from the service wallet."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    transaction_hash: str | None = Field(default=None, alias="transactionHash")
    block_number: int | None = Field(default=None, alias="blockNumber")
    error: str | None = None


class WithdrawalInitiation(BaseModel):
    """Result of reserving XP for a withdrawal."""

    success: bool
    withdrawal_id: int | None = None
    idempotent: bool = False
    xp_deducted: int | None = None
    error: str | None = None


class MultiplierTier(BaseModel):
    """Streak range sharing an XP multiplier."""

    name: str
    min_streak: int
    max_streak: int | None = None
    multiplier: float


class XPBreakdown(BaseModel):
    """How the XP for a daily check-in adds up."""

    model_config = ConfigDict(populate_by_name=True)

    base_xp: int = Field(..., alias="baseXP")
    streak_bonus: int = Field(..., alias="streakBonus")
    multiplier: float
    total_xp: int = Field(..., alias="totalXP")


class CheckinPreview(BaseModel):
    """What the next check-in would earn."""

    current_streak: int
    next_streak: int
    next_multiplier: float
    tier: MultiplierTier | None = None
    breakdown: XPBreakdown
