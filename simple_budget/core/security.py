import hashlib
import hmac
import os
import uuid
from typing import Callable, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose.exceptions import ExpiredSignatureError, JWTError
from sqlmodel import Session, select

from ..config import Settings
from ..database import get_session
from ..logging_config import get_logger
from ..models.user import User
from ..services.flags import feature_enabled
from ..services.subscriptions import downgrade_expired_trial
from .jwt import decode_access_token
from .plans import Feature, has_access
from .subscription import has_active_subscription, subscription_status

logger = get_logger(__name__)

ALGORITHM = "pbkdf2_sha256"
ITERATIONS = 100_000
SALT_BYTES = 16
ACCESS_TOKEN_COOKIE = "access_token"


def _pbkdf2_hash(password: str, salt: bytes) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, ITERATIONS)


def hash_password(password: str) -> str:
    salt = os.urandom(SALT_BYTES)
    digest = _pbkdf2_hash(password, salt)
    return f"{ALGORITHM}${salt.hex()}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        algorithm, salt_hex, hash_hex = stored.strip().split("$")
        salt = bytes.fromhex(salt_hex)
        expected = bytes.fromhex(hash_hex)
    except ValueError:
        return False
    if algorithm != ALGORITHM:
        return False
    return hmac.compare_digest(_pbkdf2_hash(password, salt), expected)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


# auto_error=False so the cookie set by /auth/login can be used instead
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)


def _raise_invalid(detail: str):
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> User:
    token = token or request.cookies.get(ACCESS_TOKEN_COOKIE)
    if not token:
        _raise_invalid("Not authenticated")

    try:
        payload = decode_access_token(token, settings)
    except ExpiredSignatureError:
        _raise_invalid("Token expired")
    except JWTError:
        logger.info("Rejected invalid token")
        _raise_invalid("Invalid token")

    sub = payload.get("sub")
    if sub is None:
        _raise_invalid("Invalid token: missing subject")
    try:
        user_id = uuid.UUID(str(sub))
    except ValueError:
        _raise_invalid("Invalid token: bad subject format")

    user = session.exec(
        select(User).where(User.id == user_id, User.deleted_at.is_(None))
    ).first()
    if user is None:
        _raise_invalid("User not found")

    downgrade_expired_trial(session, user)
    return user


def require_active_subscription(current_user: User = Depends(get_current_user)) -> User:
    """Paid and trial users may write; expired or never-started subscriptions may only read."""
    status_ = subscription_status(current_user)
    if not has_active_subscription(status_):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Subscription required (status: {status_.value})",
        )
    return current_user


def require_feature(feature: Feature) -> Callable[..., User]:
    def dependency(
        current_user: User = Depends(get_current_user),
        session: Session = Depends(get_session),
        settings: Settings = Depends(get_settings),
    ) -> User:
        if not has_access(current_user, feature):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Upgrade to Pro to use {feature.value}",
            )
        if not feature_enabled(session, current_user, feature, settings.admin_emails):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Feature {feature.value} is not available",
            )
        return current_user

    return dependency


def require_admin(
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
) -> User:
    if current_user.email.lower() not in settings.admin_emails:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. You are not authorized to perform this action.",
        )
    return current_user
