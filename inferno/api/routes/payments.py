"""Bootcamp payment initialization through Paystack."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlmodel import Session

from inferno.api.deps import get_config, get_session
from inferno.cli.config import InfernoConfig
from inferno.db import crud
from inferno.sdk.paystack import (
    PaystackClient,
    PaystackError,
    convert_to_smallest_unit,
    generate_payment_reference,
    validate_payment_amount,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payment", tags=["payments"])


class InitializePaymentRequest(BaseModel):
    application_id: str | None = Field(default=None, alias="applicationId")
    amount: float | None = None
    currency: str | None = None
    email: str | None = None


def get_paystack_client(request: Request, config: InfernoConfig = Depends(get_config)) -> PaystackClient:
    """App-wide Paystack client, built on first use and closed on shutdown."""
    client = getattr(request.app.state, "paystack_client", None)
    if client is None:
        client = PaystackClient(config.paystack_secret_key)
        request.app.state.paystack_client = client
    return client


@router.post("/initialize")
def initialize_payment(
    body: InitializePaymentRequest,
    request: Request,
    session: Session = Depends(get_session),
    config: InfernoConfig = Depends(get_config),
):
    """Start a Paystack checkout for a bootcamp application."""
    if not body.application_id or not body.amount or not body.currency or not body.email:
        raise HTTPException(status_code=400, detail="Missing required fields: applicationId, amount, currency, email")
    if body.currency != "NGN":
        raise HTTPException(status_code=400, detail="Paystack only supports NGN payments. Use blockchain payment for USD.")
    if not validate_payment_amount(body.amount, body.currency):
        raise HTTPException(status_code=400, detail="Invalid amount. Minimum is ₦10")

    application = crud.get_application(session, body.application_id)
    if application is None:
        raise HTTPException(status_code=404, detail="Application not found")
    cohort = crud.get_cohort(session, application.cohort_id)
    if cohort is None:
        raise HTTPException(status_code=404, detail="Cohort not found")
    if cohort.naira_amount is None or body.amount != cohort.naira_amount:
        raise HTTPException(status_code=400, detail=f"Invalid amount. Expected ₦{cohort.naira_amount}")
    if application.payment_status == "completed":
        raise HTTPException(status_code=400, detail="Payment already completed for this application")

    profile_id = application.user_profile_id
    if not profile_id:
        profile = crud.get_profile_by_email(session, application.user_email)
        profile_id = profile.id if profile else None
    if profile_id and crud.is_enrolled_in_program(session, profile_id, cohort.bootcamp_program_id):
        raise HTTPException(
            status_code=409,
            detail="You are already enrolled in this bootcamp. No additional payment is required.",
        )

    try:
        paystack = get_paystack_client(request, config)
        amount_in_kobo = convert_to_smallest_unit(body.amount)
        reference = generate_payment_reference()
        data = paystack.initialize_transaction(
            email=body.email,
            amount_in_kobo=amount_in_kobo,
            currency=body.currency,
            reference=reference,
            callback_url=f"{config.app_url.rstrip('/')}/payment/callback",
            metadata={
                "applicationId": application.id,
                "custom_fields": [
                    {"display_name": "Application ID", "variable_name": "application_id", "value": application.id},
                    {"display_name": "Cohort", "variable_name": "cohort", "value": cohort.name},
                ],
            },
        )
    except (ValueError, PaystackError) as e:
        logger.error("Payment initialization failed for %s: %s", application.id, e)
        return JSONResponse(status_code=400, content={"error": "Payment initialization failed", "details": str(e)})

    reference = data.get("reference") or reference
    crud.create_payment_transaction(
        session,
        application=application,
        reference=reference,
        access_code=data.get("access_code"),
        amount=body.amount,
        currency=body.currency,
        amount_in_kobo=amount_in_kobo,
    )
    logger.info("Payment %s initialized for application %s", reference, application.id)
    return {
        "success": True,
        "data": {
            "reference": reference,
            "access_code": data.get("access_code"),
            "authorization_url": data.get("authorization_url"),
        },
    }
