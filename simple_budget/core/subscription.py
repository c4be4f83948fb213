"""Subscription status classification from the paid flag and trial window."""

import math
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional

SECONDS_PER_DAY = timedelta(days=1).total_seconds()


class SubscriptionStatus(str, Enum):
    PAID = "paid"
    TRIAL = "trial"
    EXPIRED = "expired"
    NONE = "none"


def _utc_naive(value: datetime) -> datetime:
    # Stored timestamps are naive UTC; aware values are converted to match
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _now(now: Optional[datetime]) -> datetime:
    return _utc_naive(now) if now is not None else datetime.utcnow()


def days_left(trial_end: Optional[datetime], now: Optional[datetime] = None) -> int:
    """Whole days until ``trial_end``, rounded up and never negative."""
    if trial_end is None:
        return 0
    remaining = (_utc_naive(trial_end) - _now(now)).total_seconds()
    return max(0, math.ceil(remaining / SECONDS_PER_DAY))


def is_expired(trial_end: Optional[datetime], is_paid: bool, now: Optional[datetime] = None) -> bool:
    if is_paid or trial_end is None:
        return False
    return days_left(trial_end, now) <= 0


def is_in_trial(trial_end: Optional[datetime], is_paid: bool, now: Optional[datetime] = None) -> bool:
    if is_paid or trial_end is None:
        return False
    return days_left(trial_end, now) > 0


def classify(
    is_paid: bool,
    trial_end: Optional[datetime],
    now: Optional[datetime] = None,
) -> SubscriptionStatus:
    """Checked in order: paid, expired, trial, none."""
    if is_paid:
        return SubscriptionStatus.PAID
    if is_expired(trial_end, is_paid, now):
        return SubscriptionStatus.EXPIRED
    if is_in_trial(trial_end, is_paid, now):
        return SubscriptionStatus.TRIAL
    return SubscriptionStatus.NONE


def subscription_status(user: Any, now: Optional[datetime] = None) -> SubscriptionStatus:
    """Classify a user record; a missing user counts as unpaid with no trial."""
    if user is None:
        return SubscriptionStatus.NONE
    return classify(
        bool(getattr(user, "is_paid", False)),
        getattr(user, "trial_end", None),
        now,
    )


def has_active_subscription(status: SubscriptionStatus) -> bool:
    return status in (SubscriptionStatus.PAID, SubscriptionStatus.TRIAL)
