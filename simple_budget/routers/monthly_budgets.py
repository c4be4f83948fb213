import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session, SQLModel

from ..core.plans import Feature
from ..core.security import require_active_subscription, require_feature
from ..database import get_session
from ..models.monthly_budget import MonthlyBudget
from ..models.user import User
from ..services import budgets as budget_service

router = APIRouter(
    prefix="/monthly-budgets",
    tags=["history"],
)


class MonthlyBudgetRead(SQLModel):
    id: uuid.UUID
    budget_id: Optional[uuid.UUID] = None
    name: str
    month: int
    year: int
    currency: str
    categories: List[Dict[str, Any]]
    total_budgeted: float
    total_spent: float
    expenses_count: int
    created_at: datetime


def _owned_snapshot(session: Session, monthly_budget_id: uuid.UUID, user: User) -> MonthlyBudget:
    snapshot = session.get(MonthlyBudget, monthly_budget_id)
    if snapshot is None or snapshot.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Monthly budget not found")
    return snapshot


@router.get(
    "",
    response_model=List[MonthlyBudgetRead],
)
def list_monthly_budgets(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_feature(Feature.BUDGET_HISTORY)),
):
    """Snapshots saved by ``/budgets/reset``, newest first."""
    return budget_service.monthly_budgets(session, current_user.id)


@router.get(
    "/{monthly_budget_id}",
    response_model=MonthlyBudgetRead,
)
def get_monthly_budget(
    monthly_budget_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_feature(Feature.BUDGET_HISTORY)),
):
    return _owned_snapshot(session, monthly_budget_id, current_user)


@router.delete(
    "/{monthly_budget_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_monthly_budget(
    monthly_budget_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_active_subscription),
):
    snapshot = _owned_snapshot(session, monthly_budget_id, current_user)
    session.delete(snapshot)
    session.commit()
    return None
