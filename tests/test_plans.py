"""Feature registry and plan access tests."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from simple_budget.core.plans import (
    FEATURES,
    Feature,
    FeatureSpec,
    Plan,
    RegistryError,
    available_features,
    effective_plan,
    has_access,
    pro_only_features,
    resolve_plan,
    validate_registry,
)

FREE_USER = SimpleNamespace(plan="free")
PRO_USER = SimpleNamespace(plan="pro")


def test_effective_plan_defaults_to_free():
    assert effective_plan(PRO_USER) is Plan.PRO
    assert effective_plan(FREE_USER) is Plan.FREE
    assert effective_plan(None) is Plan.FREE
    assert effective_plan(SimpleNamespace(plan=None)) is Plan.FREE
    assert resolve_plan("enterprise") is Plan.FREE


@pytest.mark.parametrize("feature", list(Feature))
def test_no_user_has_no_access(feature):
    assert has_access(None, feature) is False


def test_shared_feature_open_to_both_plans():
    assert FEATURES[Feature.BUDGET_TRACKING].plans == {Plan.FREE, Plan.PRO}
    assert has_access(FREE_USER, Feature.BUDGET_TRACKING)
    assert has_access(PRO_USER, Feature.BUDGET_TRACKING)


def test_pro_only_feature():
    assert FEATURES[Feature.TRANSACTION_TEXT_INPUT].plans == {Plan.PRO}
    assert has_access(FREE_USER, Feature.TRANSACTION_TEXT_INPUT) is False
    assert has_access(PRO_USER, Feature.TRANSACTION_TEXT_INPUT) is True
    assert Feature.TRANSACTION_TEXT_INPUT in pro_only_features()


def test_user_without_plan_is_treated_as_free():
    assert has_access(SimpleNamespace(), Feature.EXPENSE_TRACKING)
    assert not has_access(SimpleNamespace(), Feature.BUDGET_EXPORT)


def test_available_features():
    assert available_features(None) == []
    free = available_features(FREE_USER)
    pro = available_features(PRO_USER)
    assert len(free) > 0
    assert len(pro) > len(free)
    assert set(pro) == set(Feature)


def test_pro_only_features_subset_of_pro_and_disjoint_from_free():
    pro_only = set(pro_only_features())
    assert pro_only
    assert pro_only <= set(available_features(PRO_USER))
    assert not pro_only & set(available_features(FREE_USER))
    for key in pro_only:
        assert Plan.FREE not in FEATURES[key].plans


def test_registry_rejects_empty_plan_set():
    broken = dict(FEATURES)
    broken[Feature.BUDGET_EXPORT] = FeatureSpec("Export", "", frozenset())
    with pytest.raises(RegistryError):
        validate_registry(broken)


def test_registry_rejects_missing_feature():
    broken = {k: v for k, v in FEATURES.items() if k is not Feature.SPENDING_INSIGHTS}
    with pytest.raises(RegistryError, match="spending_insights"):
        validate_registry(broken)


def test_registry_rejects_unknown_key():
    broken = dict(FEATURES)
    broken["dark_mode"] = FeatureSpec("Dark mode", "", frozenset({Plan.FREE}))
    with pytest.raises(RegistryError):
        validate_registry(broken)
