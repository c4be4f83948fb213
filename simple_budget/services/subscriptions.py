from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from sqlmodel import Session

from ..core.plans import Plan, resolve_plan
from ..core.subscription import SubscriptionStatus, subscription_status
from ..database import commit_with_retry
from ..logging_config import get_logger
from ..models.user import User

logger = get_logger(__name__)

# Pro plan granted by an admin without a trial window; never downgraded automatically
MANUAL_PRO_ONLY = "manual_pro_only"


class SubscriptionAction(str, Enum):
    ACTIVATE_PAID = "activate_paid"
    ACTIVATE_TRIAL = "activate_trial"
    DEACTIVATE = "deactivate"
    EXTEND_TRIAL = "extend_trial"
    SET_PRO_PLAN = "set_pro_plan"
    SET_FREE_PLAN = "set_free_plan"


def start_trial(user: User, days: int, now: Optional[datetime] = None) -> None:
    """Grant pro features for ``days`` from ``now``. The caller commits."""
    now = now or datetime.utcnow()
    user.is_paid = False
    user.plan = Plan.PRO.value
    user.trial_start = now
    user.trial_end = now + timedelta(days=days)
    user.updated_at = now


def downgrade_expired_trial(session: Session, user: User, now: Optional[datetime] = None) -> bool:
    """Drop a pro plan that was only granted by a trial which has ended.

    Returns True when the user was downgraded.
    """
    if resolve_plan(user.plan) is not Plan.PRO:
        return False
    if user.subscription_type == MANUAL_PRO_ONLY:
        return False
    if subscription_status(user, now) is not SubscriptionStatus.EXPIRED:
        return False

    user.plan = Plan.FREE.value
    user.updated_at = datetime.utcnow()
    commit_with_retry(session, user)
    logger.info(
        "Trial expired, plan downgraded to free",
        extra={"user_id": str(user.id), "trial_end": user.trial_end},
    )
    return True


def apply_action(
    session: Session,
    user: User,
    action: SubscriptionAction,
    *,
    trial_days: int,
    days: Optional[int] = None,
    subscription_type: Optional[str] = None,
) -> str:
    """Apply a manual subscription change and return a message for the admin."""
    now = datetime.utcnow()

    if action is SubscriptionAction.ACTIVATE_PAID:
        user.is_paid = True
        user.plan = Plan.PRO.value
        user.trial_start = None
        user.trial_end = None
        user.subscription_type = subscription_type or "manual_paid"
        message = "User subscription activated (Pro plan)"
    elif action is SubscriptionAction.ACTIVATE_TRIAL:
        start_trial(user, trial_days, now)
        user.subscription_type = "manual_trial"
        message = "User trial activated (Pro plan)"
    elif action is SubscriptionAction.DEACTIVATE:
        user.is_paid = False
        user.plan = Plan.FREE.value
        user.trial_start = None
        user.trial_end = None
        user.subscription_type = None
        message = "User subscription deactivated (Free plan)"
    elif action is SubscriptionAction.EXTEND_TRIAL:
        extend_by = trial_days if days is None else days
        # trial_start is kept; only the end moves
        user.is_paid = False
        user.plan = Plan.PRO.value
        user.trial_end = now + timedelta(days=extend_by)
        user.subscription_type = "manual_trial_extended"
        message = f"Trial extended by {extend_by} days (Pro plan)"
    elif action is SubscriptionAction.SET_PRO_PLAN:
        user.plan = Plan.PRO.value
        user.subscription_type = MANUAL_PRO_ONLY
        message = "User set to Pro plan"
    else:
        user.plan = Plan.FREE.value
        user.is_paid = False
        user.trial_start = None
        user.trial_end = None
        user.subscription_type = "manual_free_only"
        message = "User set to Free plan"

    user.updated_at = now
    commit_with_retry(session, user)
    logger.info(
        "Subscription changed",
        extra={"user_id": str(user.id), "action": action.value, "plan": user.plan},
    )
    return message
