"""Daily check-in streaks and XP.

A check-in is a ``daily_checkin`` row in ``user_activities``. The streak is
the run of consecutive UTC days with a check-in, ending today or yesterday.
XP grows with the streak and is scaled by the multiplier tier the streak
falls in.
"""

from __future__ import annotations

import logging
import math
from datetime import date, datetime, time, timedelta, timezone

from sqlmodel import Session, select

from inferno.db.models import Attestation, UserActivity, UserProfile
from inferno.sdk.models import CheckinPreview, MultiplierTier, XPBreakdown

logger = logging.getLogger(__name__)

CHECKIN_ACTIVITY = "daily_checkin"

BASE_XP = 10
WEEKLY_BONUS = 5
DAILY_BONUS = 1
MINIMUM_XP = 5
MAXIMUM_XP = 1000

MULTIPLIER_TIERS = [
    MultiplierTier(name="Beginner", min_streak=0, max_streak=6, multiplier=1.0),
    MultiplierTier(name="Consistent", min_streak=7, max_streak=29, multiplier=1.5),
    MultiplierTier(name="Dedicated", min_streak=30, max_streak=99, multiplier=2.0),
    MultiplierTier(name="Master", min_streak=100, max_streak=364, multiplier=2.5),
    MultiplierTier(name="Legend", min_streak=365, multiplier=3.0),
]


def start_of_utc_day(now: datetime | None = None) -> datetime:
    """Midnight UTC of the given (or current) day. Naive input is taken as UTC."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return datetime.combine(now.date(), time.min, tzinfo=timezone.utc)


def _utc_date(value: datetime) -> date:
    # SQLite hands back naive values; everything is stored as UTC
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.date()


def get_current_tier(streak: int) -> MultiplierTier | None:
    for tier in MULTIPLIER_TIERS:
        if streak >= tier.min_streak and (tier.max_streak is None or streak <= tier.max_streak):
            return tier
    return None


def calculate_multiplier(streak: int) -> float:
    tier = get_current_tier(streak)
    return tier.multiplier if tier else 1.0


def calculate_xp_breakdown(streak: int, multiplier: float) -> XPBreakdown:
    """Base XP plus a weekly and a daily streak bonus, scaled and clamped."""
    streak_bonus = (streak // 7) * WEEKLY_BONUS + max(0, streak - 1) * DAILY_BONUS
    total = math.floor((BASE_XP + streak_bonus) * multiplier)
    total = max(MINIMUM_XP, min(MAXIMUM_XP, total))
    return XPBreakdown(base_xp=BASE_XP, streak_bonus=streak_bonus, multiplier=multiplier, total_xp=total)


def checkin_dates(session: Session, user_id: str) -> set[date]:
    q = select(UserActivity.created_at).where(
        UserActivity.user_profile_id == user_id,
        UserActivity.activity_type == CHECKIN_ACTIVITY,
    )
    return {_utc_date(created_at) for created_at in session.exec(q).all()}


def calculate_streak(session: Session, user_id: str, today: date | None = None) -> int:
    """Consecutive check-in days ending today, or yesterday if today is still open."""
    days = checkin_dates(session, user_id)
    day = today or datetime.now(timezone.utc).date()
    if day not in days:
        day -= timedelta(days=1)
    streak = 0
    while day in days:
        streak += 1
        day -= timedelta(days=1)
    return streak


def has_checked_in_today(session: Session, user_id: str) -> bool:
    q = select(UserActivity.id).where(
        UserActivity.user_profile_id == user_id,
        UserActivity.activity_type == CHECKIN_ACTIVITY,
        UserActivity.created_at >= start_of_utc_day(),
    )
    return session.exec(q).first() is not None


def get_checkin_preview(session: Session, user_id: str) -> CheckinPreview:
    current = calculate_streak(session, user_id)
    next_streak = current + 1
    multiplier = calculate_multiplier(next_streak)
    return CheckinPreview(
        current_streak=current,
        next_streak=next_streak,
        next_multiplier=multiplier,
        tier=get_current_tier(next_streak),
        breakdown=calculate_xp_breakdown(next_streak, multiplier),
    )


def perform_daily_checkin(
    session: Session,
    user_id: str,
    xp_amount: int,
    activity_data: dict,
    attestation: Attestation | None = None,
) -> UserProfile | None:
    """Record the check-in activity, award its XP and store its attestation in one commit.

    Returns the updated profile, or None when the profile does not exist.
    """
    profile = session.get(UserProfile, user_id)
    if profile is None:
        return None
    profile.experience_points += xp_amount
    session.add(profile)
    session.add(UserActivity(
        user_profile_id=user_id,
        activity_type=CHECKIN_ACTIVITY,
        activity_data=activity_data,
        points_earned=xp_amount,
    ))
    if attestation is not None:
        session.add(attestation)
    session.commit()
    session.refresh(profile)
    logger.info("User %s checked in for %s XP", user_id, xp_amount)
    return profile
