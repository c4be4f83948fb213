"""Trial/paid subscription classification tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from simple_budget.core.subscription import (
    SubscriptionStatus,
    classify,
    days_left,
    has_active_subscription,
    is_expired,
    is_in_trial,
    subscription_status,
)

NOW = datetime(2026, 10, 18, 12, 0, 0)


def test_days_left_counts_whole_days_up():
    assert days_left(NOW + timedelta(days=5), NOW) == 5
    assert days_left(NOW + timedelta(days=4, hours=1), NOW) == 5
    assert days_left(NOW + timedelta(seconds=1), NOW) == 1


def test_days_left_with_real_clock():
    assert days_left(datetime.utcnow() + timedelta(days=5)) >= 5


def test_days_left_never_negative():
    assert days_left(NOW - timedelta(days=3), NOW) == 0
    assert days_left(None, NOW) == 0


def test_days_left_accepts_aware_datetimes():
    aware_end = datetime(2026, 10, 20, 12, 0, tzinfo=timezone.utc)
    assert days_left(aware_end, NOW) == 2


def test_is_expired():
    past = NOW - timedelta(days=1)
    assert is_expired(past, False, NOW) is True
    assert is_expired(past, True, NOW) is False
    assert is_expired(None, False, NOW) is False


def test_is_in_trial():
    future = NOW + timedelta(days=2)
    assert is_in_trial(future, False, NOW) is True
    assert is_in_trial(future, True, NOW) is False
    assert is_in_trial(None, False, NOW) is False


@pytest.mark.parametrize(
    "is_paid, trial_end, expected",
    [
        (True, None, SubscriptionStatus.PAID),
        (True, NOW - timedelta(days=1), SubscriptionStatus.PAID),
        (True, NOW + timedelta(days=1), SubscriptionStatus.PAID),
        (False, NOW + timedelta(days=1), SubscriptionStatus.TRIAL),
        (False, NOW - timedelta(days=1), SubscriptionStatus.EXPIRED),
        (False, None, SubscriptionStatus.NONE),
    ],
)
def test_classify(is_paid, trial_end, expected):
    assert classify(is_paid, trial_end, NOW) is expected


def test_trial_ending_now_is_expired():
    assert days_left(NOW, NOW) == 0
    assert classify(False, NOW, NOW) is SubscriptionStatus.EXPIRED


def test_subscription_status_from_user_record():
    assert subscription_status(None) is SubscriptionStatus.NONE
    assert subscription_status(SimpleNamespace()) is SubscriptionStatus.NONE
    user = SimpleNamespace(is_paid=False, trial_end=NOW + timedelta(days=3))
    assert subscription_status(user, NOW) is SubscriptionStatus.TRIAL
    assert subscription_status(SimpleNamespace(is_paid=None, trial_end=None)) is SubscriptionStatus.NONE


def test_active_subscription_statuses():
    assert has_active_subscription(SubscriptionStatus.PAID)
    assert has_active_subscription(SubscriptionStatus.TRIAL)
    assert not has_active_subscription(SubscriptionStatus.EXPIRED)
    assert not has_active_subscription(SubscriptionStatus.NONE)
