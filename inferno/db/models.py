"""SQLModel tables for relay persistence."""

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import JSON, Column, DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    """Timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


# ---------- EAS ----------
class AttestationSchema(SQLModel, table=True):
    __tablename__ = "attestation_schemas"
    __table_args__ = (UniqueConstraint("schema_uid", "network"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    schema_uid: str = Field(index=True)
    name: str
    description: str = ""
    schema_definition: str
    category: str = "achievement"
    revocable: bool = False
    network: str = Field(default="base-sepolia", index=True)
    schema_key: Optional[str] = Field(default=None, index=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class Attestation(SQLModel, table=True):
    __tablename__ = "attestations"

    id: Optional[int] = Field(default=None, primary_key=True)
    attestation_uid: str = Field(unique=True)
    schema_uid: str = Field(index=True)
    network: str = "base-sepolia"
    attester: str
    recipient: str = Field(index=True)
    data: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    is_revoked: bool = False
    revocation_time: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    expiration_time: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class EasNetwork(SQLModel, table=True):
    __tablename__ = "eas_networks"

    name: str = Field(primary_key=True)
    chain_id: int = Field(unique=True)
    display_name: str
    is_testnet: bool = False
    enabled: bool = True
    eas_contract_address: str
    schema_registry_address: str
    eip712_proxy_address: Optional[str] = None
    eas_scan_base_url: Optional[str] = None
    explorer_base_url: Optional[str] = None
    rpc_url: Optional[str] = None


class EasSchemaKey(SQLModel, table=True):
    __tablename__ = "eas_schema_keys"

    key: str = Field(primary_key=True)
    label: str
    description: Optional[str] = None
    active: bool = True
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


# ---------- Quests ----------
class Quest(SQLModel, table=True):
    __tablename__ = "quests"

    id: str = Field(primary_key=True)
    title: str
    lock_address: Optional[str] = None
    prerequisite_quest_id: Optional[str] = None
    is_active: bool = True


class QuestTask(SQLModel, table=True):
    __tablename__ = "quest_tasks"

    id: str = Field(primary_key=True)
    quest_id: str = Field(index=True)
    title: str
    task_type: str
    verification_method: str = "automatic"
    task_config: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    requires_admin_review: bool = False
    input_required: bool = False
    reward_amount: int = 0


class UserTaskCompletion(SQLModel, table=True):
    __tablename__ = "user_task_completions"
    __table_args__ = (UniqueConstraint("user_id", "task_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    quest_id: str
    task_id: str
    verification_data: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    submission_status: str = "pending"
    reward_claimed: bool = False
    reward_attestation_uid: Optional[str] = None
    completed_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class QuestVerifiedTransaction(SQLModel, table=True):
    __tablename__ = "quest_verified_transactions"
    __table_args__ = (UniqueConstraint("transaction_hash", "chain_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    transaction_hash: str
    chain_id: int
    user_id: str
    task_id: str
    task_type: str
    verified_amount: Optional[str] = None
    event_name: Optional[str] = None
    block_number: Optional[int] = None
    log_index: Optional[int] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class UserQuestProgress(SQLModel, table=True):
    __tablename__ = "user_quest_progress"
    __table_args__ = (UniqueConstraint("user_id", "quest_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str
    quest_id: str
    is_completed: bool = False
    reward_claimed: bool = False
    key_claim_tx_hash: Optional[str] = None
    key_claim_token_id: Optional[str] = None
    key_claim_attestation_uid: Optional[str] = None


# ---------- Users, withdrawals ----------
class UserProfile(SQLModel, table=True):
    __tablename__ = "user_profiles"

    id: str = Field(primary_key=True)
    email: Optional[str] = None
    wallet_address: Optional[str] = None
    experience_points: int = 0
    telegram_chat_id: Optional[int] = None
    telegram_notifications_enabled: bool = False


class UserActivity(SQLModel, table=True):
    __tablename__ = "user_activities"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_profile_id: str = Field(index=True)
    activity_type: str = Field(index=True)
    activity_data: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    points_earned: int = 0
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class DGTokenWithdrawal(SQLModel, table=True):
    __tablename__ = "dg_token_withdrawals"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    wallet_address: str
    amount_dg: int
    xp_balance_before: int
    signature: str = Field(unique=True)
    deadline: int
    status: str = "pending"
    transaction_hash: Optional[str] = None
    error_message: Optional[str] = None
    attestation_uid: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    completed_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))


# ---------- Bootcamp payments ----------
class Cohort(SQLModel, table=True):
    __tablename__ = "cohorts"

    id: str = Field(primary_key=True)
    bootcamp_program_id: str = Field(index=True)
    name: str
    naira_amount: Optional[float] = None
    usdt_amount: Optional[float] = None


class Application(SQLModel, table=True):
    __tablename__ = "applications"

    id: str = Field(primary_key=True)
    user_email: str
    user_profile_id: Optional[str] = None
    cohort_id: str
    payment_status: str = "pending"


class BootcampEnrollment(SQLModel, table=True):
    __tablename__ = "bootcamp_enrollments"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_profile_id: str = Field(index=True)
    cohort_id: str
    enrollment_status: str = "enrolled"


class PaymentTransaction(SQLModel, table=True):
    __tablename__ = "payment_transactions"

    id: Optional[int] = Field(default=None, primary_key=True)
    application_id: str
    payment_reference: str = Field(unique=True)
    paystack_access_code: Optional[str] = None
    amount: float
    currency: str
    amount_in_kobo: int
    status: str = "pending"
    payment_method: str = "paystack"
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
