import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Field, Session, SQLModel

from ..core.flags import KEY_PATTERN, Platform, UserType, normalize_key
from ..core.security import require_admin
from ..database import commit_with_retry, get_session
from ..logging_config import get_logger
from ..models.feature_flag import FeatureFlag
from ..models.user import User
from ..services import flags as flag_service

logger = get_logger(__name__)

router = APIRouter(
    prefix="/admin/features",
    tags=["admin"],
)


class FeatureFlagCreate(SQLModel):
    key: str = Field(min_length=1, max_length=100)
    name: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1, max_length=500)
    enabled: bool = False
    platforms: List[Platform] = Field(min_length=1)
    user_types: List[UserType] = Field(min_length=1)
    rollout_percentage: int = Field(default=100, ge=0, le=100)
    target_users: List[str] = Field(default_factory=list)
    exclude_users: List[str] = Field(default_factory=list)
    config: Dict[str, Any] = Field(default_factory=dict)


class FeatureFlagUpdate(SQLModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, min_length=1, max_length=500)
    enabled: Optional[bool] = None
    platforms: Optional[List[Platform]] = Field(default=None, min_length=1)
    user_types: Optional[List[UserType]] = Field(default=None, min_length=1)
    rollout_percentage: Optional[int] = Field(default=None, ge=0, le=100)
    target_users: Optional[List[str]] = None
    exclude_users: Optional[List[str]] = None
    config: Optional[Dict[str, Any]] = None


class FeatureFlagRead(SQLModel):
    id: uuid.UUID
    key: str
    name: str
    description: str
    enabled: bool
    platforms: List[str]
    user_types: List[str]
    rollout_percentage: int
    target_users: List[str]
    exclude_users: List[str]
    config: Dict[str, Any]
    created_by: str
    last_modified_by: str
    created_at: datetime
    updated_at: datetime


def _get_flag(session: Session, key: str) -> FeatureFlag:
    flag = flag_service.get_flag(session, normalize_key(key))
    if flag is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Feature not found")
    return flag


def _values(items) -> List[str]:
    # Enum members to their stored values, without duplicates
    return list(dict.fromkeys(getattr(i, "value", i) for i in items))


@router.get(
    "",
    response_model=List[FeatureFlagRead],
)
def list_feature_flags(
    enabled: Optional[bool] = None,
    platform: Optional[Platform] = None,
    user_type: Optional[UserType] = None,
    session: Session = Depends(get_session),
    _admin: User = Depends(require_admin),
):
    return flag_service.list_flags(session, enabled=enabled, platform=platform, user_type=user_type)


@router.post(
    "",
    response_model=FeatureFlagRead,
    status_code=status.HTTP_201_CREATED,
)
def create_feature_flag(
    payload: FeatureFlagCreate,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    key = normalize_key(payload.key)
    if not KEY_PATTERN.match(key):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid feature key")
    if flag_service.get_flag(session, key) is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Feature with this key already exists",
        )

    now = datetime.utcnow()
    flag = FeatureFlag(
        id=uuid.uuid4(),
        key=key,
        name=payload.name.strip(),
        description=payload.description.strip(),
        enabled=payload.enabled,
        platforms=_values(payload.platforms),
        user_types=_values(payload.user_types),
        rollout_percentage=payload.rollout_percentage,
        target_users=_values(payload.target_users),
        exclude_users=_values(payload.exclude_users),
        config=payload.config,
        created_by=admin.email,
        last_modified_by=admin.email,
        created_at=now,
        updated_at=now,
    )
    commit_with_retry(session, flag)
    logger.info("Feature flag created", extra={"key": key, "admin": admin.email})
    return flag


@router.get(
    "/{key}",
    response_model=FeatureFlagRead,
)
def get_feature_flag(
    key: str,
    session: Session = Depends(get_session),
    _admin: User = Depends(require_admin),
):
    return _get_flag(session, key)


@router.patch(
    "/{key}",
    response_model=FeatureFlagRead,
)
def update_feature_flag(
    key: str,
    payload: FeatureFlagUpdate,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    flag = _get_flag(session, key)
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")

    for field, value in changes.items():
        if value is None:
            continue
        if field in {"platforms", "user_types", "target_users", "exclude_users"}:
            value = _values(value)
        setattr(flag, field, value)
    flag.last_modified_by = admin.email
    flag.updated_at = datetime.utcnow()
    commit_with_retry(session, flag)
    logger.info(
        "Feature flag updated",
        extra={"key": flag.key, "admin": admin.email, "fields": sorted(changes)},
    )
    return flag


@router.delete(
    "/{key}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_feature_flag(
    key: str,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    flag = _get_flag(session, key)
    flag_key = flag.key
    session.delete(flag)
    session.commit()
    logger.info("Feature flag deleted", extra={"key": flag_key, "admin": admin.email})
    return None
