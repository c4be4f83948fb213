from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Field, Session, SQLModel

from ..core.security import get_current_user
from ..database import commit_with_retry, get_session
from ..logging_config import get_logger
from ..models.user import User
from .auth import SUPPORTED_CURRENCIES

logger = get_logger(__name__)

router = APIRouter(
    prefix="/users",
    tags=["users"],
)


class CurrencyIn(SQLModel):
    currency: str = Field(min_length=3, max_length=3)


class CurrencyOut(SQLModel):
    currency: str


@router.get(
    "/currency",
    response_model=CurrencyOut,
)
def get_currency(current_user: User = Depends(get_current_user)):
    return CurrencyOut(currency=current_user.default_currency)


@router.put(
    "/currency",
    response_model=CurrencyOut,
)
def update_currency(
    payload: CurrencyIn,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """Change the currency new budgets are created in; existing budgets keep theirs."""
    currency = payload.currency.strip().upper()
    if currency not in SUPPORTED_CURRENCIES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid currency",
        )
    current_user.default_currency = currency
    current_user.updated_at = datetime.utcnow()
    commit_with_retry(session, current_user)
    logger.info("Default currency changed", extra={"user_id": str(current_user.id), "currency": currency})
    return CurrencyOut(currency=current_user.default_currency)
