"""Daily check-in verification strategy."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func
from sqlmodel import Session, select

from inferno.cli.config import InfernoConfig
from inferno.db.models import Attestation
from inferno.sdk.checkin import start_of_utc_day
from inferno.sdk.models import VerificationResult
from inferno.sdk.quests.base import VerificationStrategy
from inferno.sdk.registry import resolve_schema_uid

logger = logging.getLogger(__name__)

CHECKIN_SCHEMA_KEY = "daily_checkin"


class DailyCheckinVerificationStrategy(VerificationStrategy):
    """Succeeds when the wallet has a non-revoked check-in attestation today (UTC)."""

    def __init__(self, session: Session, config: InfernoConfig):
        self.session = session
        self.config = config

    def verify(
        self,
        task_type: str,
        verification_data: dict[str, Any],
        user_id: str,
        user_address: str,
        task_config: dict[str, Any] | None = None,
    ) -> VerificationResult:
        schema_uid = resolve_schema_uid(self.session, self.config, CHECKIN_SCHEMA_KEY)
        if not schema_uid or not user_address:
            return VerificationResult.fail("CHECKIN_NOT_FOUND", "No check-in found for today")

        q = select(Attestation).where(
            Attestation.schema_uid == schema_uid,
            func.lower(Attestation.recipient) == user_address.lower(),
            Attestation.is_revoked == False,  # noqa: E712
            Attestation.created_at >= start_of_utc_day(),
        )
        attestation = self.session.exec(q).first()
        if not attestation:
            logger.debug("No check-in attestation today for %s", user_address)
            return VerificationResult.fail("CHECKIN_NOT_FOUND", "No check-in found for today")

        return VerificationResult(
            success=True,
            metadata={
                "attestationUid": attestation.attestation_uid,
                "checkinAt": attestation.created_at.isoformat(),
            },
        )
