import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import EmailStr
from sqlmodel import Field, Session, SQLModel, select

from ..config import Settings
from ..core.jwt import create_access_token
from ..core.security import (
    ACCESS_TOKEN_COOKIE,
    get_current_user,
    get_settings,
    hash_password,
    verify_password,
)
from ..database import commit_with_retry, get_session
from ..logging_config import get_logger
from ..models.user import User
from ..services.subscriptions import start_trial

logger = get_logger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["auth"],
)

SUPPORTED_CURRENCIES = {"CAD", "USD", "COP"}


class RegisterIn(SQLModel):
    email: EmailStr
    password: str = Field(min_length=6)
    default_currency: str = Field(default="CAD", min_length=3, max_length=3)


class UserRead(SQLModel):
    id: uuid.UUID
    email: str
    default_currency: str
    plan: str
    is_paid: bool
    trial_end: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class LoginIn(SQLModel):
    email: EmailStr
    password: str


class TokenOut(SQLModel):
    access_token: str
    token_type: str


def _reject_whitespace(password: str) -> None:
    if any(c.isspace() for c in password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Password must not contain whitespace",
        )


def _authenticate(session: Session, email: str, password: str) -> User:
    _reject_whitespace(password)
    email_norm = email.strip().lower()
    user = session.exec(
        select(User).where(User.email == email_norm, User.deleted_at.is_(None))
    ).first()
    if user is None or not verify_password(password, user.hashed_password):
        logger.info("Failed login", extra={"email": email_norm})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    return user


@router.post(
    "/register",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
)
def register_user(
    payload: RegisterIn,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    """Create an account; new accounts start with a pro trial of ``trial_days``."""
    _reject_whitespace(payload.password)
    email_norm = payload.email.strip().lower()
    existing = session.exec(select(User).where(User.email == email_norm)).first()
    if existing is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        )

    currency = (payload.default_currency or "CAD").strip().upper()
    if currency not in SUPPORTED_CURRENCIES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid default_currency",
        )

    now = datetime.utcnow()
    user = User(
        id=uuid.uuid4(),
        email=email_norm,
        hashed_password=hash_password(payload.password),
        default_currency=currency,
        subscription_type="trial",
        created_at=now,
        updated_at=now,
    )
    start_trial(user, settings.trial_days, now)

    commit_with_retry(session, user)
    logger.info(
        "User registered",
        extra={"user_id": str(user.id), "trial_end": user.trial_end},
    )
    return user


@router.post(
    "/login",
    response_model=UserRead,
    status_code=status.HTTP_200_OK,
)
def login(
    payload: LoginIn,
    response: Response,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    user = _authenticate(session, payload.email, payload.password)
    token = create_access_token({"sub": str(user.id), "email": user.email}, settings)

    # Token lives in an HttpOnly cookie so it is never exposed to JS.
    # Cross-site production deployments need SameSite=None and Secure.
    response.set_cookie(
        key=ACCESS_TOKEN_COOKIE,
        value=token,
        httponly=True,
        secure=settings.is_production,
        samesite="none" if settings.is_production else "lax",
        max_age=settings.access_token_expire_minutes * 60,
        path="/",
    )
    return user


@router.get(
    "/me",
    response_model=UserRead,
    status_code=status.HTTP_200_OK,
)
def me(current_user: User = Depends(get_current_user)):
    return current_user


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
)
def logout(response: Response):
    response.delete_cookie(key=ACCESS_TOKEN_COOKIE, path="/")
    return None


@router.post(
    "/token",
    response_model=TokenOut,
    status_code=status.HTTP_200_OK,
)
def token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    # Bearer tokens for the mobile client; OAuth2 calls the email field "username"
    user = _authenticate(session, form_data.username, form_data.password)
    access_token = create_access_token({"sub": str(user.id), "email": user.email}, settings)
    return TokenOut(access_token=access_token, token_type="bearer")
