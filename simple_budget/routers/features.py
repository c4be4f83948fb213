from typing import Dict, List

from fastapi import APIRouter, Depends, status
from sqlmodel import Session, SQLModel

from ..config import Settings
from ..core.flags import Platform
from ..core.plans import Feature, Plan, effective_plan, pro_only_features
from ..core.security import get_current_user, get_settings
from ..core.subscription import SubscriptionStatus, subscription_status
from ..database import get_session
from ..models.user import User
from ..services.flags import evaluate_flags, feature_enabled

router = APIRouter(
    prefix="/features",
    tags=["features"],
)


class FeaturesOut(SQLModel):
    plan: Plan
    status: SubscriptionStatus
    platform: Platform
    features: Dict[str, bool]
    available: List[Feature]
    pro_only: List[Feature]
    flags: Dict[str, bool]


class FeatureAccessOut(SQLModel):
    feature: Feature
    has_access: bool


@router.get(
    "",
    response_model=FeaturesOut,
    status_code=status.HTTP_200_OK,
)
def list_features(
    platform: Platform = Platform.WEB,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
    current_user: User = Depends(get_current_user),
):
    """Every feature key with whether the current user may use it on ``platform``.

    ``flags`` covers every stored flag, including keys outside the feature registry.
    """
    enabled = {
        f: feature_enabled(session, current_user, f, settings.admin_emails, platform)
        for f in Feature
    }
    return FeaturesOut(
        plan=effective_plan(current_user),
        status=subscription_status(current_user),
        platform=platform,
        features={f.value: on for f, on in enabled.items()},
        available=[f for f, on in enabled.items() if on],
        pro_only=pro_only_features(),
        flags=evaluate_flags(session, current_user, settings.admin_emails, platform),
    )


@router.get(
    "/{feature}",
    response_model=FeatureAccessOut,
    status_code=status.HTTP_200_OK,
)
def check_feature(
    feature: Feature,
    platform: Platform = Platform.WEB,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
    current_user: User = Depends(get_current_user),
):
    return FeatureAccessOut(
        feature=feature,
        has_access=feature_enabled(session, current_user, feature, settings.admin_emails, platform),
    )
