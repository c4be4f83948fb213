import uuid
from datetime import datetime, date
from enum import Enum
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import SQLModel, Field, Session, select

from ..core.security import get_current_user, require_active_subscription
from ..database import commit_with_retry, get_session
from ..models.budget import Budget
from ..models.category import Category
from ..models.expense import Expense
from ..models.user import User
from ..services import budgets as budget_service

router = APIRouter(
    prefix="/expenses",
    tags=["expenses"],
)

# ─────────────────────────────
#   SCHEMAS
# ─────────────────────────────


class ExpenseType(str, Enum):
    EXPENSE = "expense"
    INCOME = "income"


class ExpenseBase(SQLModel):
    amount: float = Field(gt=0)
    description: str = Field(min_length=1, max_length=255)
    type: ExpenseType = ExpenseType.EXPENSE
    category_id: Optional[uuid.UUID] = None
    expense_date: Optional[date] = None


class ExpenseCreate(ExpenseBase):
    budget_id: Optional[uuid.UUID] = None


class ExpenseUpdate(SQLModel):
    amount: Optional[float] = Field(default=None, gt=0)
    description: Optional[str] = Field(default=None, min_length=1, max_length=255)
    type: Optional[ExpenseType] = None
    category_id: Optional[uuid.UUID] = None
    expense_date: Optional[date] = None


class ExpenseRead(SQLModel):
    id: uuid.UUID
    user_id: uuid.UUID
    budget_id: uuid.UUID
    category_id: Optional[uuid.UUID] = None
    amount: float
    currency: str
    description: str
    type: str
    expense_date: date
    created_at: datetime
    updated_at: datetime


# ─────────────────────────────
#   HELPERS
# ─────────────────────────────


def _get_owned_expense(session: Session, expense_id: uuid.UUID, user: User) -> Expense:
    expense = session.get(Expense, expense_id)
    if not expense or expense.deleted_at is not None or expense.user_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Expense not found",
        )
    return expense


def _check_category(session: Session, category_id: Optional[uuid.UUID], budget_id: uuid.UUID) -> None:
    if category_id is None:
        return
    category = session.get(Category, category_id)
    if category is None or category.budget_id != budget_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Category does not belong to this budget",
        )


def _check_date(value: Optional[date]) -> None:
    if value is not None and value > date.today():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="expense_date cannot be in the future",
        )


# ─────────────────────────────
#   ENDPOINTS
# ─────────────────────────────


@router.post(
    "",
    response_model=ExpenseRead,
    status_code=status.HTTP_201_CREATED,
)
def create_expense(
    expense_in: ExpenseCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_active_subscription),
):
    """Record an expense (or income) on a budget, defaulting to the current budget.

    The category's ``spent`` is recomputed, with income netted against expenses.
    """
    if expense_in.budget_id is not None:
        budget = session.get(Budget, expense_in.budget_id)
        if budget is None or budget.user_id != current_user.id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Budget not found")
    else:
        budget = budget_service.current_budget(session, current_user.id)
        if budget is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Budget not found")
    _check_category(session, expense_in.category_id, budget.id)
    _check_date(expense_in.expense_date)

    now = datetime.utcnow()
    expense = Expense(
        id=uuid.uuid4(),
        user_id=current_user.id,
        budget_id=budget.id,
        category_id=expense_in.category_id,
        amount=expense_in.amount,
        currency=budget.currency,
        description=expense_in.description,
        type=expense_in.type.value,
        expense_date=expense_in.expense_date or date.today(),
        created_at=now,
        updated_at=now,
    )
    commit_with_retry(session, expense)
    budget_service.refresh_category_spent(session, expense.category_id)
    return expense


@router.get(
    "",
    response_model=List[ExpenseRead],
)
def list_expenses(
    budget_id: Optional[uuid.UUID] = None,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """List the user's expenses, newest first, excluding soft-deleted ones."""
    statement = select(Expense).where(Expense.deleted_at.is_(None))
    statement = statement.where(Expense.user_id == current_user.id)
    if budget_id is not None:
        statement = statement.where(Expense.budget_id == budget_id)
    statement = statement.order_by(Expense.expense_date.desc(), Expense.created_at.desc())
    return session.exec(statement).all()


@router.get(
    "/{expense_id}",
    response_model=ExpenseRead,
)
def get_expense(
    expense_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return _get_owned_expense(session, expense_id, current_user)


@router.patch(
    "/{expense_id}",
    response_model=ExpenseRead,
)
def update_expense(
    expense_id: uuid.UUID,
    expense_in: ExpenseUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_active_subscription),
):
    expense = _get_owned_expense(session, expense_id, current_user)

    changes = expense_in.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No fields to update",
        )
    if "category_id" in changes:
        _check_category(session, changes["category_id"], expense.budget_id)
    _check_date(changes.get("expense_date"))

    old_category_id = expense.category_id
    for field, value in changes.items():
        if field == "type" and value is not None:
            value = ExpenseType(value).value
        if value is None and field != "category_id":
            continue
        setattr(expense, field, value)

    expense.updated_at = datetime.utcnow()
    commit_with_retry(session, expense)
    budget_service.refresh_category_spent(session, old_category_id)
    if expense.category_id != old_category_id:
        budget_service.refresh_category_spent(session, expense.category_id)
    return expense


@router.delete(
    "/{expense_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_expense(
    expense_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_active_subscription),
):
    """Soft delete: mark ``deleted_at`` and release the amount from its category."""
    expense = _get_owned_expense(session, expense_id, current_user)

    expense.deleted_at = datetime.utcnow()
    expense.updated_at = expense.deleted_at
    commit_with_retry(session, expense)
    budget_service.refresh_category_spent(session, expense.category_id)
    return None
