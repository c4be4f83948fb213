"""Budget totals reconciliation tests."""

from __future__ import annotations

import math
from types import SimpleNamespace

from simple_budget.core.totals import (
    BudgetTotals,
    budgeted_amount,
    reconcile,
    sum_budgeted,
    total_budget_amount,
)


def test_sums_category_budgeted():
    cats = [{"budgeted": 100}, {"budgeted": 50}, {"budgeted": 0}]
    assert sum_budgeted(cats) == 150
    assert reconcile(cats, 500).total_budgeted == 150


def test_empty_categories():
    assert reconcile([], 250) == BudgetTotals(total_budgeted=0, total_available=250)
    assert reconcile([], -10).total_available == 0


def test_available_is_remaining_pool():
    totals = reconcile([{"budgeted": 450}], 500)
    assert totals.total_available == 50
    assert totals.total_budgeted + totals.total_available == 500


def test_over_allocation_clamps_available_to_zero():
    totals = reconcile([{"budgeted": 200}, {"budgeted": 150}], 300)
    assert totals.total_budgeted == 350
    assert totals.total_available == 0


def test_exact_allocation_leaves_nothing():
    assert reconcile([{"budgeted": 300}], 300).total_available == 0


def test_missing_budgeted_counts_as_zero():
    cats = [
        {"budgeted": None},
        {},
        SimpleNamespace(budgeted=None),
        SimpleNamespace(name="no amount"),
        SimpleNamespace(budgeted=25.5),
        None,
    ]
    assert budgeted_amount({}) == 0
    assert budgeted_amount(None) == 0
    assert reconcile(cats, 100) == BudgetTotals(25.5, 74.5)


def test_reconcile_is_idempotent():
    cats = [SimpleNamespace(budgeted=120), SimpleNamespace(budgeted=80)]
    assert reconcile(cats, 1000) == reconcile(cats, 1000)


def test_non_negative_for_many_inputs():
    for amounts, pool in [([1, 2, 3], 0), ([0.1] * 10, 1), ([999], 1000), ([5, 5], 7)]:
        totals = reconcile([{"budgeted": a} for a in amounts], pool)
        assert totals.total_available >= 0
        assert totals.total_budgeted == sum(amounts)


def test_nan_propagates():
    totals = reconcile([{"budgeted": float("nan")}], 100)
    assert math.isnan(totals.total_budgeted)
    assert math.isnan(totals.total_available)


def test_total_budget_amount_from_budget_record():
    assert total_budget_amount(SimpleNamespace(total_budgeted=450, total_available=50)) == 500
    assert total_budget_amount(SimpleNamespace(total_budgeted=None, total_available=20)) == 20


def test_totals_are_floats_even_when_clamped():
    totals = reconcile([{"budgeted": 400}], 300)
    assert totals == BudgetTotals(400, 0)
    assert isinstance(totals.total_budgeted, float)
    assert isinstance(totals.total_available, float)
    assert isinstance(reconcile([], 0).total_available, float)
