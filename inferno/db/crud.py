"""Database operations behind the quest, withdrawal and payment endpoints."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from inferno.db.models import (
    Application,
    BootcampEnrollment,
    Cohort,
    DGTokenWithdrawal,
    PaymentTransaction,
    QuestTask,
    QuestVerifiedTransaction,
    UserProfile,
    UserQuestProgress,
    UserTaskCompletion,
    utcnow,
)
from inferno.sdk.hashing import to_int
from inferno.sdk.models import WithdrawalInitiation

logger = logging.getLogger(__name__)


# ---------- Profiles ----------
def get_profile(session: Session, user_id: str) -> UserProfile | None:
    return session.get(UserProfile, user_id)


def get_profile_by_email(session: Session, email: str) -> UserProfile | None:
    return session.exec(select(UserProfile).where(UserProfile.email == email)).first()


def award_xp(session: Session, user_id: str, amount: int) -> UserProfile | None:
    profile = session.get(UserProfile, user_id)
    if profile is None:
        return None
    profile.experience_points += amount
    session.add(profile)
    session.commit()
    session.refresh(profile)
    return profile


# ---------- Quest tasks ----------
def get_task(session: Session, quest_id: str, task_id: str) -> QuestTask | None:
    task = session.get(QuestTask, task_id)
    if task is None or task.quest_id != quest_id:
        return None
    return task


def get_completion(session: Session, user_id: str, task_id: str) -> UserTaskCompletion | None:
    q = select(UserTaskCompletion).where(
        UserTaskCompletion.user_id == user_id,
        UserTaskCompletion.task_id == task_id,
    )
    return session.exec(q).first()


def is_transaction_used(session: Session, tx_hash: str, chain_id: int | None = None) -> bool:
    """Whether any user already completed a task with this transaction."""
    q = select(QuestVerifiedTransaction).where(
        func.lower(QuestVerifiedTransaction.transaction_hash) == tx_hash.lower()
    )
    if chain_id is not None:
        q = q.where(QuestVerifiedTransaction.chain_id == chain_id)
    return session.exec(q).first() is not None


def record_task_completion(
    session: Session,
    *,
    user_id: str,
    task: QuestTask,
    verification_data: dict[str, Any],
    submission_status: str,
    tx_hash: str | None = None,
    chain_id: int | None = None,
    metadata: dict[str, Any] | None = None,
) -> UserTaskCompletion:
    """Insert the completion and, for on-chain tasks, its replay guard row.

    Raises:
        ValueError: If the transaction or the completion already exists
    """
    metadata = metadata or {}
    completion = UserTaskCompletion(
        user_id=user_id,
        quest_id=task.quest_id,
        task_id=task.id,
        verification_data=verification_data,
        submission_status=submission_status,
    )
    session.add(completion)
    if tx_hash and chain_id is not None:
        session.add(QuestVerifiedTransaction(
            transaction_hash=tx_hash.lower(),
            chain_id=chain_id,
            user_id=user_id,
            task_id=task.id,
            task_type=task.task_type,
            verified_amount=str(metadata["amount"]) if metadata.get("amount") is not None else None,
            event_name=metadata.get("eventName"),
            block_number=to_int(metadata["blockNumber"]) if metadata.get("blockNumber") is not None else None,
            log_index=metadata.get("logIndex"),
        ))
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ValueError("Transaction already used" if tx_hash else "Task already completed")
    session.refresh(completion)
    return completion


def get_quest_progress(session: Session, user_id: str, quest_id: str) -> UserQuestProgress | None:
    q = select(UserQuestProgress).where(
        UserQuestProgress.user_id == user_id,
        UserQuestProgress.quest_id == quest_id,
    )
    return session.exec(q).first()


# ---------- Withdrawals ----------
def get_withdrawal_by_signature(session: Session, signature: str) -> DGTokenWithdrawal | None:
    return session.exec(select(DGTokenWithdrawal).where(DGTokenWithdrawal.signature == signature)).first()


def withdrawn_last_24h(session: Session, user_id: str) -> int:
    """Sum of completed withdrawals in the rolling 24 hour window."""
    since = utcnow() - timedelta(hours=24)
    q = select(func.coalesce(func.sum(DGTokenWithdrawal.amount_dg), 0)).where(
        DGTokenWithdrawal.user_id == user_id,
        DGTokenWithdrawal.status == "completed",
        DGTokenWithdrawal.created_at >= since,
    )
    return int(session.exec(q).one())


def initiate_withdrawal(
    session: Session,
    *,
    user_id: str,
    wallet_address: str,
    amount_dg: int,
    signature: str,
    deadline: int,
    min_amount: int,
    max_daily_amount: int,
) -> WithdrawalInitiation:
    """Check limits, deduct XP and insert a pending withdrawal in one transaction.

    A repeated signature returns the existing withdrawal with idempotent=True.
    """
    existing = get_withdrawal_by_signature(session, signature)
    if existing is not None:
        return WithdrawalInitiation(success=True, withdrawal_id=existing.id, idempotent=True)

    profile = session.get(UserProfile, user_id)
    if profile is None:
        return WithdrawalInitiation(success=False, error="User profile not found")
    if amount_dg < min_amount:
        return WithdrawalInitiation(success=False, error=f"Minimum withdrawal is {min_amount} DG")
    if profile.experience_points < amount_dg:
        return WithdrawalInitiation(
            success=False,
            error=f"Insufficient balance. You have {profile.experience_points} DG available",
        )
    remaining = max_daily_amount - withdrawn_last_24h(session, user_id)
    if amount_dg > remaining:
        return WithdrawalInitiation(
            success=False,
            error=f"Daily limit exceeded. You can withdraw up to {max(remaining, 0)} DG more today",
        )

    balance_before = profile.experience_points
    profile.experience_points -= amount_dg
    withdrawal = DGTokenWithdrawal(
        user_id=user_id,
        wallet_address=wallet_address,
        amount_dg=amount_dg,
        xp_balance_before=balance_before,
        signature=signature,
        deadline=deadline,
    )
    session.add(profile)
    session.add(withdrawal)
    try:
        session.commit()
    except IntegrityError:
        # Concurrent request with the same signature won the insert
        session.rollback()
        existing = get_withdrawal_by_signature(session, signature)
        if existing is None:
            raise
        return WithdrawalInitiation(success=True, withdrawal_id=existing.id, idempotent=True)

    session.refresh(withdrawal)
    return WithdrawalInitiation(success=True, withdrawal_id=withdrawal.id, xp_deducted=amount_dg)


def complete_withdrawal(session: Session, withdrawal_id: int, tx_hash: str) -> DGTokenWithdrawal | None:
    withdrawal = session.get(DGTokenWithdrawal, withdrawal_id)
    if withdrawal is None:
        return None
    withdrawal.status = "completed"
    withdrawal.transaction_hash = tx_hash
    withdrawal.completed_at = utcnow()
    session.add(withdrawal)
    session.commit()
    session.refresh(withdrawal)
    return withdrawal


def rollback_withdrawal(session: Session, withdrawal_id: int, error_message: str) -> DGTokenWithdrawal | None:
    """Mark the withdrawal failed and restore the deducted XP."""
    withdrawal = session.get(DGTokenWithdrawal, withdrawal_id)
    if withdrawal is None:
        return None
    profile = session.get(UserProfile, withdrawal.user_id)
    if profile is not None:
        profile.experience_points += withdrawal.amount_dg
        session.add(profile)
    withdrawal.status = "failed"
    withdrawal.error_message = error_message
    withdrawal.completed_at = utcnow()
    session.add(withdrawal)
    session.commit()
    session.refresh(withdrawal)
    logger.warning("Withdrawal %s rolled back: %s", withdrawal_id, error_message)
    return withdrawal


# ---------- Payments ----------
def get_application(session: Session, application_id: str) -> Application | None:
    return session.get(Application, application_id)


def get_cohort(session: Session, cohort_id: str) -> Cohort | None:
    return session.get(Cohort, cohort_id)


def is_enrolled_in_program(session: Session, user_profile_id: str, bootcamp_program_id: str) -> bool:
    """Whether the user is enrolled in any cohort of the bootcamp program."""
    q = (
        select(BootcampEnrollment)
        .join(Cohort, Cohort.id == BootcampEnrollment.cohort_id)
        .where(
            BootcampEnrollment.user_profile_id == user_profile_id,
            Cohort.bootcamp_program_id == bootcamp_program_id,
        )
    )
    return session.exec(q).first() is not None


def create_payment_transaction(
    session: Session,
    *,
    application: Application,
    reference: str,
    access_code: str | None,
    amount: float,
    currency: str,
    amount_in_kobo: int,
) -> PaymentTransaction:
    """Persist a pending payment and mark the application pending."""
    payment = PaymentTransaction(
        application_id=application.id,
        payment_reference=reference,
        paystack_access_code=access_code,
        amount=amount,
        currency=currency,
        amount_in_kobo=amount_in_kobo,
    )
    application.payment_status = "pending"
    session.add(payment)
    session.add(application)
    session.commit()
    session.refresh(payment)
    return payment
