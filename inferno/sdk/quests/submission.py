"""Verification for tasks where the user submits a URL, text or proof."""

from __future__ import annotations

from typing import Any
from urllib.parse import urlparse

from inferno.sdk.models import VerificationResult
from inferno.sdk.quests.base import VerificationStrategy

URL_TASK_TYPES = frozenset({"submit_url", "url_submission", "submit_proof"})
TEXT_TASK_TYPES = frozenset({"submit_text", "text_submission"})
DEFAULT_MAX_LENGTH = 5000


def is_http_url(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    parsed = urlparse(value.strip())
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _max_length(config: dict[str, Any]) -> int:
    """Configured text limit; malformed or non-positive values fall back to the default."""
    try:
        value = int(config.get("max_length") or DEFAULT_MAX_LENGTH)
    except (TypeError, ValueError):
        return DEFAULT_MAX_LENGTH
    return value if value > 0 else DEFAULT_MAX_LENGTH


class SubmissionVerificationStrategy(VerificationStrategy):
    """Validates the submitted content; admin-reviewed tasks are flagged for review."""

    def verify(
        self,
        task_type: str,
        verification_data: dict[str, Any],
        user_id: str,
        user_address: str,
        task_config: dict[str, Any] | None = None,
    ) -> VerificationResult:
        config = task_config or {}
        submission = verification_data.get("submission", verification_data.get("url", verification_data.get("text")))

        if task_type in URL_TASK_TYPES:
            if not is_http_url(submission):
                return VerificationResult.fail("INVALID_URL", "A valid http(s) URL is required")
            content = submission.strip()
        elif task_type in TEXT_TASK_TYPES:
            if not isinstance(submission, str) or not submission.strip():
                return VerificationResult.fail("TEXT_REQUIRED", "Submission text is required")
            max_length = _max_length(config)
            content = submission.strip()
            if len(content) > max_length:
                return VerificationResult.fail(
                    "TEXT_TOO_LONG",
                    f"Submission exceeds maximum length of {max_length} characters",
                )
        else:
            return VerificationResult.fail("INVALID_TASK_TYPE", "Unsupported submission task type")

        return VerificationResult(
            success=True,
            metadata={
                "submission": content,
                "requires_review": bool(config.get("requires_admin_review")),
            },
        )
