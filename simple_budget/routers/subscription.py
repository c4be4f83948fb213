from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import EmailStr
from sqlmodel import Field, Session, SQLModel, select

from ..config import Settings
from ..core.plans import Plan, effective_plan
from ..core.security import get_current_user, get_settings, require_admin
from ..core.subscription import SubscriptionStatus, days_left, subscription_status
from ..database import get_session
from ..models.user import User
from ..services.subscriptions import SubscriptionAction, apply_action

router = APIRouter(tags=["subscription"])


class SubscriptionOut(SQLModel):
    status: SubscriptionStatus
    plan: Plan
    is_paid: bool
    trial_start: Optional[datetime] = None
    trial_end: Optional[datetime] = None
    days_left: int
    subscription_type: Optional[str] = None


class AdminSubscriptionOut(SQLModel):
    email: str
    is_paid: bool
    plan: str
    trial_start: Optional[datetime] = None
    trial_end: Optional[datetime] = None
    subscription_type: Optional[str] = None


class AdminSubscriptionIn(SQLModel):
    email: EmailStr
    action: str
    subscription_type: Optional[str] = Field(default=None, max_length=50)
    days: Optional[int] = Field(default=None, ge=1, le=365)


class AdminActionOut(SQLModel):
    success: bool
    message: str


def _find_user(session: Session, email: str) -> User:
    user = session.exec(select(User).where(User.email == email.strip().lower())).first()
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.get(
    "/subscription",
    response_model=SubscriptionOut,
    status_code=status.HTTP_200_OK,
)
def get_subscription(current_user: User = Depends(get_current_user)):
    """Subscription status for trial banners and upgrade prompts."""
    return SubscriptionOut(
        status=subscription_status(current_user),
        plan=effective_plan(current_user),
        is_paid=current_user.is_paid,
        trial_start=current_user.trial_start,
        trial_end=current_user.trial_end,
        days_left=days_left(current_user.trial_end),
        subscription_type=current_user.subscription_type,
    )


@router.get(
    "/admin/subscriptions",
    response_model=AdminSubscriptionOut,
    tags=["admin"],
)
def admin_get_subscription(
    email: str,
    session: Session = Depends(get_session),
    _admin: User = Depends(require_admin),
):
    user = _find_user(session, email)
    return AdminSubscriptionOut(
        email=user.email,
        is_paid=user.is_paid or False,
        plan=user.plan or Plan.FREE.value,
        trial_start=user.trial_start,
        trial_end=user.trial_end,
        subscription_type=user.subscription_type,
    )


@router.post(
    "/admin/subscriptions",
    response_model=AdminActionOut,
    tags=["admin"],
)
def admin_update_subscription(
    payload: AdminSubscriptionIn,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
    _admin: User = Depends(require_admin),
):
    try:
        action = SubscriptionAction(payload.action)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid action")

    user = _find_user(session, payload.email)
    message = apply_action(
        session,
        user,
        action,
        trial_days=settings.trial_days,
        days=payload.days,
        subscription_type=payload.subscription_type,
    )
    return AdminActionOut(success=True, message=message)
