import uuid
from datetime import datetime
from typing import List, Optional

from sqlmodel import Session, select

from ..core.totals import BudgetTotals, reconcile, sum_budgeted, total_budget_amount
from ..database import commit_with_retry
from ..logging_config import get_logger
from ..models.budget import Budget
from ..models.category import Category
from ..models.expense import Expense
from ..models.monthly_budget import MonthlyBudget

logger = get_logger(__name__)


def budget_categories(session: Session, budget_id: uuid.UUID) -> List[Category]:
    stmt = (
        select(Category)
        .where(Category.budget_id == budget_id)
        .order_by(Category.created_at.desc())
    )
    return list(session.exec(stmt).all())


def current_budget(session: Session, user_id: uuid.UUID) -> Optional[Budget]:
    """The user's most recent budget by period, then creation time."""
    stmt = (
        select(Budget)
        .where(Budget.user_id == user_id)
        .order_by(Budget.year.desc(), Budget.month.desc(), Budget.created_at.desc())
    )
    return session.exec(stmt).first()


def reconcile_budget(
    session: Session,
    budget: Budget,
    total_amount: Optional[float] = None,
) -> BudgetTotals:
    """Recompute and persist a budget's totals from its categories.

    The pool stays at its current size unless ``total_amount`` sets a new one.
    """
    pool = total_budget_amount(budget) if total_amount is None else total_amount
    totals = reconcile(budget_categories(session, budget.id), pool)

    budget.total_budgeted = totals.total_budgeted
    budget.total_available = totals.total_available
    budget.updated_at = datetime.utcnow()
    commit_with_retry(session, budget)

    logger.info(
        "Budget totals reconciled",
        extra={
            "budget_id": str(budget.id),
            "pool": pool,
            "total_budgeted": totals.total_budgeted,
            "total_available": totals.total_available,
        },
    )
    return totals


def _spent_delta(expense: Expense) -> float:
    return expense.amount if expense.type == "expense" else -expense.amount


def refresh_category_spent(session: Session, category_id: Optional[uuid.UUID]) -> None:
    """Recompute a category's ``spent`` from its live expenses.

    Income is netted against expenses; the result is floored at 0.
    """
    if category_id is None:
        return
    category = session.get(Category, category_id)
    if category is None:
        return
    expenses = session.exec(
        select(Expense).where(
            Expense.category_id == category_id,
            Expense.deleted_at.is_(None),
        )
    ).all()
    category.spent = max(0.0, sum((_spent_delta(e) for e in expenses), 0.0))
    category.updated_at = datetime.utcnow()
    commit_with_retry(session, category)


def reset_budget(session: Session, budget: Budget) -> MonthlyBudget:
    """Start the budget over: zero every ``spent``, drop its expenses, keep allocations.

    What the budget looked like before the reset is stored as a
    ``MonthlyBudget`` snapshot, which is returned.
    """
    categories = budget_categories(session, budget.id)
    expenses = list(
        session.exec(
            select(Expense).where(
                Expense.budget_id == budget.id,
                Expense.deleted_at.is_(None),
            )
        ).all()
    )
    # Net of income, so a month with more income than spending reports a negative total
    total_spent = sum((_spent_delta(e) for e in expenses), 0.0)
    snapshot = MonthlyBudget(
        id=uuid.uuid4(),
        user_id=budget.user_id,
        budget_id=budget.id,
        name=budget.name,
        month=budget.month,
        year=budget.year,
        currency=budget.currency,
        categories=[
            {"name": c.name, "budgeted": c.budgeted, "spent": c.spent} for c in categories
        ],
        total_budgeted=sum_budgeted(categories),
        total_spent=total_spent,
        expenses_count=len(expenses),
        created_at=datetime.utcnow(),
    )

    now = datetime.utcnow()
    for category in categories:
        category.spent = 0
        category.updated_at = now
        session.add(category)
    for expense in expenses:
        session.delete(expense)
    session.add(snapshot)
    session.commit()

    reconcile_budget(session, budget)
    logger.info(
        "Budget reset",
        extra={
            "budget_id": str(budget.id),
            "monthly_budget_id": str(snapshot.id),
            "expenses_deleted": len(expenses),
        },
    )
    return snapshot


def monthly_budgets(session: Session, user_id: uuid.UUID) -> List[MonthlyBudget]:
    stmt = (
        select(MonthlyBudget)
        .where(MonthlyBudget.user_id == user_id)
        .order_by(MonthlyBudget.created_at.desc())
    )
    return list(session.exec(stmt).all())


def delete_budget(session: Session, budget: Budget) -> None:
    for expense in session.exec(select(Expense).where(Expense.budget_id == budget.id)).all():
        session.delete(expense)
    for category in budget_categories(session, budget.id):
        session.delete(category)
    session.delete(budget)
    session.commit()
    logger.info("Budget deleted", extra={"budget_id": str(budget.id)})
