from typing import Dict, Iterable, List, Optional

from sqlmodel import Session, select

from ..core.flags import Platform, UserType, flag_applies, user_types
from ..core.plans import Feature, has_access
from ..models.feature_flag import FeatureFlag
from ..models.user import User


def get_flag(session: Session, key: str) -> Optional[FeatureFlag]:
    return session.exec(select(FeatureFlag).where(FeatureFlag.key == key)).first()


def list_flags(
    session: Session,
    enabled: Optional[bool] = None,
    platform: Optional[Platform] = None,
    user_type: Optional[UserType] = None,
) -> List[FeatureFlag]:
    stmt = select(FeatureFlag)
    if enabled is not None:
        stmt = stmt.where(FeatureFlag.enabled == enabled)
    flags = list(session.exec(stmt.order_by(FeatureFlag.created_at.desc())).all())
    # JSON list columns are filtered here rather than in SQL
    if platform is not None:
        flags = [f for f in flags if platform.value in f.platforms]
    if user_type is not None:
        flags = [f for f in flags if user_type.value in f.user_types]
    return flags


def evaluate_flags(
    session: Session,
    user: User,
    admin_emails: Iterable[str],
    platform: Optional[Platform] = None,
) -> Dict[str, bool]:
    """Every stored flag key with whether it is on for ``user``."""
    types = user_types(user, admin_emails)
    return {
        flag.key: flag_applies(flag, str(user.id), types, platform)
        for flag in list_flags(session)
    }


def feature_enabled(
    session: Session,
    user: User,
    feature: Feature,
    admin_emails: Iterable[str],
    platform: Optional[Platform] = None,
) -> bool:
    """Plan access, further narrowed by a stored flag with the same key if one exists."""
    if not has_access(user, feature):
        return False
    flag = get_flag(session, feature.value)
    if flag is None:
        return True
    return flag_applies(flag, str(user.id), user_types(user, admin_emails), platform)
