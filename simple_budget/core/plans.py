"""Plan-gated feature access.

``FEATURES`` is the single source of truth for which plan may use which
feature. It is checked when this module is imported, so a feature without an
entry (or with no plans) stops the application from starting.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, FrozenSet, List, Mapping, Optional


class RegistryError(Exception):
    """Raised when the feature registry is inconsistent."""


class Plan(str, Enum):
    FREE = "free"
    PRO = "pro"


class Feature(str, Enum):
    BUDGET_TRACKING = "budget_tracking"
    EXPENSE_TRACKING = "expense_tracking"
    CATEGORY_MANAGEMENT = "category_management"
    BUDGET_HISTORY = "budget_history"
    TRANSACTION_TEXT_INPUT = "transaction_text_input"
    AI_BUDGET_CREATION = "ai_budget_creation"
    BUDGET_EXPORT = "budget_export"
    SPENDING_INSIGHTS = "spending_insights"


@dataclass(frozen=True)
class FeatureSpec:
    name: str
    description: str
    plans: FrozenSet[Plan]


_ALL_PLANS = frozenset({Plan.FREE, Plan.PRO})
_PRO_ONLY = frozenset({Plan.PRO})

FEATURES: Mapping[Feature, FeatureSpec] = {
    Feature.BUDGET_TRACKING: FeatureSpec(
        "Budget tracking", "Create a monthly budget and follow what is left.", _ALL_PLANS
    ),
    Feature.EXPENSE_TRACKING: FeatureSpec(
        "Expense tracking", "Record expenses and income against categories.", _ALL_PLANS
    ),
    Feature.CATEGORY_MANAGEMENT: FeatureSpec(
        "Categories", "Add, edit and remove budget categories.", _ALL_PLANS
    ),
    Feature.BUDGET_HISTORY: FeatureSpec(
        "History", "Review budgets from previous months.", _ALL_PLANS
    ),
    Feature.TRANSACTION_TEXT_INPUT: FeatureSpec(
        "Text transactions", "Describe a transaction in plain text and let it be parsed.", _PRO_ONLY
    ),
    Feature.AI_BUDGET_CREATION: FeatureSpec(
        "AI budget creation", "Generate a categorized budget from a short description.", _PRO_ONLY
    ),
    Feature.BUDGET_EXPORT: FeatureSpec(
        "Export", "Download a budget and its categories.", _PRO_ONLY
    ),
    Feature.SPENDING_INSIGHTS: FeatureSpec(
        "Insights", "Spending trends across past budgets.", _PRO_ONLY
    ),
}


def validate_registry(registry: Mapping[Feature, FeatureSpec]) -> None:
    missing = [f.value for f in Feature if f not in registry]
    if missing:
        raise RegistryError(f"Features without a registry entry: {', '.join(missing)}")
    for key, spec in registry.items():
        if not isinstance(key, Feature):
            raise RegistryError(f"Unknown feature key: {key!r}")
        if not spec.plans:
            raise RegistryError(f"Feature {key.value} has no plans")
        for plan in spec.plans:
            if not isinstance(plan, Plan):
                raise RegistryError(f"Feature {key.value} lists unknown plan {plan!r}")


validate_registry(FEATURES)


def resolve_plan(value: Optional[str]) -> Plan:
    """Stored plan value to ``Plan``; missing or unknown values are free."""
    if value is None:
        return Plan.FREE
    try:
        return Plan(value)
    except ValueError:
        return Plan.FREE


def effective_plan(user: Any) -> Plan:
    return resolve_plan(getattr(user, "plan", None))


def has_access(user: Any, feature: Feature) -> bool:
    # No user means no access, even to free features
    if user is None:
        return False
    return effective_plan(user) in FEATURES[feature].plans


def available_features(user: Any) -> List[Feature]:
    if user is None:
        return []
    plan = effective_plan(user)
    return [key for key, spec in FEATURES.items() if plan in spec.plans]


def pro_only_features() -> List[Feature]:
    return [
        key
        for key, spec in FEATURES.items()
        if Plan.PRO in spec.plans and Plan.FREE not in spec.plans
    ]
