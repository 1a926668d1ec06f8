"""Telegram Bot API notifications.

Sending never raises: delivery failures are returned as TelegramResult
values so notification problems cannot break the action that triggered them.
"""

from __future__ import annotations

import html
import logging
import time
from collections.abc import Callable

import httpx
from sqlmodel import Session, select

from inferno.cli.config import InfernoConfig
from inferno.db.models import UserProfile, utcnow
from inferno.sdk.models import BroadcastSummary, TelegramResult

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"
BATCH_SIZE = 25
BATCH_DELAY_SECONDS = 1.0
BROADCAST_LIMIT = 10000

NOTIFICATION_EMOJIS = {
    "task_completed": "✅",
    "milestone_completed": "\U0001F3C6",
    "enrollment_created": "\U0001F4DA",
    "application_status": "\U0001F4DD",
    "task_reviewed": "\U0001F4EC",
    "quest_created": "\U0001F3AF",
}
DEFAULT_EMOJI = "\U0001F514"


def format_notification_message(
    title: str,
    message: str,
    link: str | None,
    notification_type: str,
    app_url: str = "",
) -> str:
    """Render an HTML notification with a type emoji and optional app link."""
    emoji = NOTIFICATION_EMOJIS.get(notification_type, DEFAULT_EMOJI)
    text = f"{emoji} <b>{html.escape(title)}</b>\n\n{html.escape(message)}"
    if link:
        url = link if link.startswith("http") else f"{app_url.rstrip('/')}{link}"
        text += f'\n\n<a href="{html.escape(url)}">View in app</a>'
    return text


def send_telegram_message(
    config: InfernoConfig,
    chat_id: int,
    text: str,
    client: httpx.Client | None = None,
) -> TelegramResult:
    """Send an HTML message to one chat."""
    if not config.telegram_bot_token:
        return TelegramResult(ok=False, error="Bot token not configured")

    url = f"{TELEGRAM_API_URL}/bot{config.telegram_bot_token}/sendMessage"
    payload = {
        "chat_id": chat_id,
        "text": text,
        "parse_mode": "HTML",
        "disable_web_page_preview": False,
    }
    try:
        if client is None:
            with httpx.Client(timeout=10) as own_client:
                response = own_client.post(url, json=payload)
        else:
            response = client.post(url, json=payload)
    except httpx.HTTPError as e:
        logger.error("Telegram send to %s failed: %s", chat_id, e)
        return TelegramResult(ok=False, error=str(e))

    if response.status_code >= 400:
        logger.warning("Telegram API error %s for chat %s: %s", response.status_code, chat_id, response.text)
        return TelegramResult(ok=False, error=f"Telegram API: {response.status_code}")
    return TelegramResult(ok=True)


def broadcast_telegram_notification(
    session: Session,
    config: InfernoConfig,
    title: str,
    message: str,
    link: str | None,
    notification_type: str = "quest_created",
    client: httpx.Client | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> BroadcastSummary:
    """Send a notification to every opted-in user, in rate-limited batches."""
    summary = BroadcastSummary(started_at=utcnow())
    q = (
        select(UserProfile.telegram_chat_id)
        .where(
            UserProfile.telegram_notifications_enabled == True,  # noqa: E712
            UserProfile.telegram_chat_id.is_not(None),
        )
        .limit(BROADCAST_LIMIT)
    )
    try:
        chat_ids = list(session.exec(q).all())
    except Exception as e:
        logger.error("Failed to load Telegram recipients: %s", e)
        return summary

    if not chat_ids:
        return summary

    text = format_notification_message(title, message, link, notification_type, config.app_url)
    for start in range(0, len(chat_ids), BATCH_SIZE):
        if start:
            sleep(BATCH_DELAY_SECONDS)
        for chat_id in chat_ids[start:start + BATCH_SIZE]:
            result = send_telegram_message(config, chat_id, text, client=client)
            if result.ok:
                summary.sent += 1
            else:
                summary.failed += 1

    logger.info("Telegram broadcast finished: %s sent, %s failed", summary.sent, summary.failed)
    return summary
