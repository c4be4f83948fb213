"""Budget totals reconciliation.

A budget's pool (``total_budgeted + total_available``) stays fixed while its
categories change; only the split between the two parts is recomputed. The
available part never goes below zero: over-allocation is absorbed, not
reported.
"""

from collections.abc import Mapping
from typing import Any, Iterable, NamedTuple, Optional


class BudgetTotals(NamedTuple):
    total_budgeted: float
    total_available: float


def _coalesce(value: Optional[float]) -> float:
    return 0.0 if value is None else value


def budgeted_amount(category: Any) -> float:
    """Amount allocated to a category, 0 when the category carries none."""
    if category is None:
        return 0.0
    if isinstance(category, Mapping):
        return _coalesce(category.get("budgeted"))
    return _coalesce(getattr(category, "budgeted", None))


def sum_budgeted(categories: Iterable[Any]) -> float:
    return sum((budgeted_amount(c) for c in categories), 0.0)


def total_budget_amount(budget: Any) -> float:
    """The pool size recorded on a budget at its last reconciliation."""
    return _coalesce(getattr(budget, "total_budgeted", None)) + _coalesce(
        getattr(budget, "total_available", None)
    )


def reconcile(categories: Iterable[Any], total_budget_amount: float) -> BudgetTotals:
    """Split ``total_budget_amount`` into budgeted and available parts.

    NaN inputs propagate into the result unchanged.
    """
    total_budgeted = sum_budgeted(categories)
    total_available = total_budget_amount - total_budgeted
    if total_available < 0:
        total_available = 0.0
    return BudgetTotals(total_budgeted=total_budgeted, total_available=total_available)
