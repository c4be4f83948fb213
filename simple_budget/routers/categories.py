import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Field, Session, SQLModel, select

from ..core.security import get_current_user, require_active_subscription
from ..database import commit_with_retry, get_session
from ..models.budget import Budget
from ..models.category import Category
from ..models.expense import Expense
from ..models.user import User
from ..services import budgets as budget_service

router = APIRouter(
    prefix="/categories",
    tags=["categories"],
)


class CategoryCreate(SQLModel):
    budget_id: uuid.UUID
    name: str = Field(min_length=1, max_length=50)
    # Negative amounts are rejected with a 400 in the handler
    budgeted: float


class CategoryUpdate(SQLModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    budgeted: Optional[float] = None


class CategoryRead(SQLModel):
    id: uuid.UUID
    budget_id: uuid.UUID
    name: str
    budgeted: float
    spent: float
    created_at: datetime
    updated_at: datetime


def _owned_budget(session: Session, budget_id: uuid.UUID, user: User) -> Budget:
    budget = session.get(Budget, budget_id)
    if not budget or budget.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Budget not found")
    return budget


def _owned_category(session: Session, category_id: uuid.UUID, user: User) -> Category:
    category = session.get(Category, category_id)
    if category is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
    budget = session.get(Budget, category.budget_id)
    if budget is None or budget.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
    return category


def _check_budgeted(value: float) -> None:
    if value < 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Budgeted amount cannot be negative",
        )


@router.get(
    "",
    response_model=List[CategoryRead],
)
def list_categories(
    budget_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    budget = _owned_budget(session, budget_id, current_user)
    return budget_service.budget_categories(session, budget.id)


@router.post(
    "",
    response_model=CategoryRead,
    status_code=status.HTTP_201_CREATED,
)
def create_category(
    payload: CategoryCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_active_subscription),
):
    """Add a category and move its allocation out of the budget's available pool."""
    _check_budgeted(payload.budgeted)
    budget = _owned_budget(session, payload.budget_id, current_user)

    now = datetime.utcnow()
    category = Category(
        id=uuid.uuid4(),
        budget_id=budget.id,
        name=payload.name.strip(),
        budgeted=payload.budgeted,
        spent=0,
        created_at=now,
        updated_at=now,
    )
    commit_with_retry(session, category)
    budget_service.reconcile_budget(session, budget)
    return category


@router.patch(
    "/{category_id}",
    response_model=CategoryRead,
)
def update_category(
    category_id: uuid.UUID,
    payload: CategoryUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_active_subscription),
):
    category = _owned_category(session, category_id, current_user)
    if payload.name is None and payload.budgeted is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")

    if payload.name is not None:
        category.name = payload.name.strip()
    if payload.budgeted is not None:
        _check_budgeted(payload.budgeted)
        category.budgeted = payload.budgeted
    category.updated_at = datetime.utcnow()
    commit_with_retry(session, category)

    if payload.budgeted is not None:
        budget_service.reconcile_budget(session, session.get(Budget, category.budget_id))
    return category


@router.delete(
    "/{category_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_category(
    category_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_active_subscription),
):
    category = _owned_category(session, category_id, current_user)
    budget = session.get(Budget, category.budget_id)
    # Expenses stay on the budget, uncategorized
    for expense in session.exec(select(Expense).where(Expense.category_id == category.id)).all():
        expense.category_id = None
        session.add(expense)
    session.delete(category)
    session.commit()
    budget_service.reconcile_budget(session, budget)
    return None
