import csv
import io
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlmodel import Field, Session, SQLModel, select

from ..core.plans import Feature
from ..core.security import get_current_user, require_active_subscription, require_feature
from ..database import commit_with_retry, get_session
from ..models.budget import Budget
from ..models.category import Category
from ..models.user import User
from ..services import budgets as budget_service
from .categories import CategoryRead


router = APIRouter(
    prefix="/budgets",
    tags=["budgets"],
)


class BudgetCreate(SQLModel):
    name: str = Field(default="My budget", min_length=1, max_length=100)
    month: int = Field(ge=1, le=12)
    year: int = Field(ge=2000, le=2100)
    total_amount: float = Field(ge=0)


class BudgetUpdate(SQLModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    # Sets a new pool size; categories are reconciled against it
    total_amount: Optional[float] = Field(default=None, ge=0)


class BudgetRead(SQLModel):
    id: uuid.UUID
    user_id: uuid.UUID
    name: str
    month: int
    year: int
    currency: str
    total_budgeted: float
    total_available: float
    created_at: datetime
    updated_at: datetime


class SyncOut(SQLModel):
    message: str
    budget: BudgetRead
    categories: List[CategoryRead]
    total_budgeted: float


class ResetOut(SQLModel):
    message: str
    monthly_budget_id: uuid.UUID
    saved_data: Dict[str, Any]


def get_owned_budget(session: Session, budget_id: uuid.UUID, user: User) -> Budget:
    b = session.get(Budget, budget_id)
    if not b or b.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Budget not found")
    return b


def _require_current_budget(session: Session, user: User) -> Budget:
    budget = budget_service.current_budget(session, user.id)
    if budget is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Budget not found")
    return budget


@router.get(
    "",
    response_model=List[BudgetRead],
    status_code=status.HTTP_200_OK,
)
def list_budgets(
    year: Optional[int] = None,
    month: Optional[int] = None,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    stmt = select(Budget).where(Budget.user_id == current_user.id)
    if year is not None:
        stmt = stmt.where(Budget.year == year)
    if month is not None:
        if not 1 <= month <= 12:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid month")
        stmt = stmt.where(Budget.month == month)
    stmt = stmt.order_by(Budget.year.desc(), Budget.month.desc())
    return list(session.exec(stmt).all())


@router.post(
    "",
    response_model=BudgetRead,
    status_code=status.HTTP_201_CREATED,
)
def create_budget(
    payload: BudgetCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_active_subscription),
):
    now = datetime.utcnow()
    b = Budget(
        id=uuid.uuid4(),
        user_id=current_user.id,
        name=payload.name,
        month=payload.month,
        year=payload.year,
        currency=current_user.default_currency,
        total_budgeted=0,
        total_available=payload.total_amount,
        created_at=now,
        updated_at=now,
    )
    commit_with_retry(session, b)
    return b


@router.post(
    "/sync",
    response_model=SyncOut,
    status_code=status.HTTP_200_OK,
)
def sync_budget(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """Recompute the current budget's totals from its categories."""
    budget = _require_current_budget(session, current_user)
    totals = budget_service.reconcile_budget(session, budget)
    return SyncOut(
        message="Budget totals synced successfully",
        budget=BudgetRead.model_validate(budget),
        categories=[
            CategoryRead.model_validate(c)
            for c in budget_service.budget_categories(session, budget.id)
        ],
        total_budgeted=totals.total_budgeted,
    )


@router.post(
    "/reset",
    response_model=ResetOut,
    status_code=status.HTTP_200_OK,
)
def reset_budget(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_active_subscription),
):
    budget = _require_current_budget(session, current_user)
    snapshot = budget_service.reset_budget(session, budget)
    return ResetOut(
        message="Budget reset successfully",
        monthly_budget_id=snapshot.id,
        saved_data={
            "month": snapshot.month,
            "year": snapshot.year,
            "categories": snapshot.categories,
            "total_budgeted": snapshot.total_budgeted,
            "total_spent": snapshot.total_spent,
            "expenses_count": snapshot.expenses_count,
        },
    )


@router.get(
    "/{budget_id}",
    response_model=BudgetRead,
)
def get_budget(
    budget_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return get_owned_budget(session, budget_id, current_user)


@router.patch(
    "/{budget_id}",
    response_model=BudgetRead,
)
def update_budget(
    budget_id: uuid.UUID,
    payload: BudgetUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_active_subscription),
):
    b = get_owned_budget(session, budget_id, current_user)
    if payload.name is None and payload.total_amount is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")

    if payload.name is not None:
        b.name = payload.name
        b.updated_at = datetime.utcnow()
        commit_with_retry(session, b)
    if payload.total_amount is not None:
        budget_service.reconcile_budget(session, b, total_amount=payload.total_amount)
    return b


@router.delete(
    "/{budget_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_budget(
    budget_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_active_subscription),
):
    b = get_owned_budget(session, budget_id, current_user)
    budget_service.delete_budget(session, b)
    return None


@router.get("/{budget_id}/export")
def export_budget(
    budget_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_feature(Feature.BUDGET_EXPORT)),
):
    """CSV of the budget's categories followed by a totals row."""
    b = get_owned_budget(session, budget_id, current_user)
    categories = session.exec(
        select(Category).where(Category.budget_id == b.id).order_by(Category.name.asc())
    ).all()

    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(["category", "budgeted", "spent", "remaining"])
    for c in categories:
        writer.writerow([c.name, f"{c.budgeted:.2f}", f"{c.spent:.2f}", f"{c.budgeted - c.spent:.2f}"])
    writer.writerow(["TOTAL", f"{b.total_budgeted:.2f}", f"{sum(c.spent for c in categories):.2f}", ""])
    writer.writerow(["AVAILABLE", f"{b.total_available:.2f}", "", ""])

    filename = f"budget_{b.year}_{b.month:02d}.csv"
    return Response(
        content=buffer.getvalue(),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
