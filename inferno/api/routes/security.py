"""Content Security Policy violation report intake."""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from inferno.db.models import utcnow
from inferno.sdk.ratelimit import FixedWindowRateLimiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/security", tags=["security"])

ACCEPTED_CONTENT_TYPES = ("application/csp-report", "application/json")
MAX_FIELD_LENGTH = 2048


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)[:MAX_FIELD_LENGTH]


def _int_or_none(value: Any) -> int | None:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def sanitize_report(report: dict[str, Any], user_agent: str | None, ip: str) -> dict[str, Any]:
    return {
        "documentUri": _clean(report.get("document-uri")),
        "violatedDirective": _clean(report.get("violated-directive")),
        "blockedUri": _clean(report.get("blocked-uri")),
        "lineNumber": _int_or_none(report.get("line-number")),
        "columnNumber": _int_or_none(report.get("column-number")),
        "sourceFile": _clean(report.get("source-file")),
        "statusCode": _int_or_none(report.get("status-code")),
        "userAgent": _clean(user_agent),
        "timestamp": utcnow().isoformat(),
        "ip": ip,
    }


def _reject(status: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status, content={"status": code, "message": message})


@router.post("/csp-report")
async def csp_report(request: Request):
    limiter: FixedWindowRateLimiter = request.app.state.csp_limiter
    ip = client_ip(request)
    if not limiter.hit(ip):
        return JSONResponse(
            status_code=429,
            content={"status": "rate_limited", "message": "Too many requests", "retry_after": limiter.retry_after},
            headers={"Retry-After": str(limiter.retry_after)},
        )

    content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
    if content_type not in ACCEPTED_CONTENT_TYPES:
        return _reject(415, "invalid_content_type", "Content-Type must be application/csp-report or application/json")

    try:
        payload = json.loads(await request.body())
    except (ValueError, UnicodeDecodeError):
        return _reject(400, "parse_error", "Invalid JSON body")

    report = payload.get("csp-report", payload) if isinstance(payload, dict) else None
    if not isinstance(report, dict):
        return _reject(400, "invalid_report", "Report must be a JSON object")
    if not report.get("document-uri") or not report.get("violated-directive"):
        return _reject(400, "incomplete_report", "Missing required fields: document-uri and violated-directive")

    sanitized = sanitize_report(report, request.headers.get("user-agent"), ip)
    report_id = str(uuid.uuid4())
    logger.warning("CSP_VIOLATION %s", json.dumps({"reportId": report_id, **sanitized}))
    return JSONResponse(
        status_code=202,
        content={"status": "accepted", "message": "CSP violation report received", "report_id": report_id},
    )
