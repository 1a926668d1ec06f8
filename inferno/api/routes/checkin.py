"""Daily check-in endpoint."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlmodel import Session

from inferno.api.deps import get_config, get_current_user, get_session, get_web3_factory
from inferno.cli.config import InfernoConfig
from inferno.db import crud
from inferno.db.models import utcnow
from inferno.sdk import checkin
from inferno.sdk.auth import validate_wallet_ownership
from inferno.sdk.errors import WalletValidationError
from inferno.sdk.gasless import build_attestation_record, handle_gasless_attestation
from inferno.sdk.models import AuthUser, DelegatedAttestationSignature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["checkin"])

CHECKIN_SCHEMA_KEY = "daily_checkin"


class CheckinRequest(BaseModel):
    activity_data: dict[str, Any] = Field(default_factory=dict, alias="activityData")
    attestation_signature: DelegatedAttestationSignature | None = Field(default=None, alias="attestationSignature")


@router.post("/checkin")
def daily_checkin(
    body: CheckinRequest,
    user: AuthUser = Depends(get_current_user),
    session: Session = Depends(get_session),
    config: InfernoConfig = Depends(get_config),
    web3_factory=Depends(get_web3_factory),
    x_active_wallet: str | None = Header(default=None),
):
    """Check in for today: relay the check-in attestation, then award streak XP.

    The wallet is the signature recipient when a signature is sent, else the
    X-Active-Wallet header. Both must be linked to the user.
    """
    if crud.get_profile(session, user.id) is None:
        raise HTTPException(status_code=404, detail="Profile not found")

    signature = body.attestation_signature
    wallet_hint = signature.recipient if signature is not None else x_active_wallet
    if not wallet_hint:
        raise HTTPException(status_code=400, detail="X-Active-Wallet is required")
    try:
        wallet = validate_wallet_ownership(user, wallet_hint, "checkin")
    except WalletValidationError as e:
        raise HTTPException(status_code=403, detail=str(e))

    if checkin.has_checked_in_today(session, user.id):
        return JSONResponse(status_code=409, content={
            "success": False,
            "error": "Already checked in today",
            "xpEarned": 0,
            "newStreak": checkin.calculate_streak(session, user.id),
            "attestationUid": None,
        })

    preview = checkin.get_checkin_preview(session, user.id)

    attestation = handle_gasless_attestation(
        session,
        config,
        signature=signature,
        schema_key=CHECKIN_SCHEMA_KEY,
        recipient=wallet,
        web3_factory=web3_factory,
    )
    if not attestation.success:
        if signature is None:
            raise HTTPException(status_code=400, detail="attestationSignature is required to check-in")
        raise HTTPException(status_code=500, detail=attestation.error or "Attestation failed")

    greeting = body.activity_data.get("greeting")
    breakdown = preview.breakdown.model_dump(by_alias=True)
    activity_data = {
        **body.activity_data,
        "greeting": greeting if isinstance(greeting, str) and greeting else "GM",
        "streak": preview.next_streak,
        "attestationUid": attestation.uid,
        "xpBreakdown": breakdown,
        "multiplier": preview.next_multiplier,
        "tier": preview.tier.name if preview.tier else None,
        "timestamp": utcnow().isoformat(),
        "activityType": checkin.CHECKIN_ACTIVITY,
    }
    record = build_attestation_record(
        session, config, schema_key=CHECKIN_SCHEMA_KEY, signature=signature, result=attestation
    )
    checkin.perform_daily_checkin(
        session, user.id, preview.breakdown.total_xp, activity_data, attestation=record
    )

    return {
        "success": True,
        "xpEarned": preview.breakdown.total_xp,
        "newStreak": preview.next_streak,
        "breakdown": breakdown,
        "attestationUid": attestation.uid,
    }
