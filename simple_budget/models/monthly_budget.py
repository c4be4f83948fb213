import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field


class MonthlyBudget(SQLModel, table=True):
    """Snapshot of a budget taken when it is reset."""

    __tablename__ = "monthly_budgets"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)

    user_id: uuid.UUID = Field(foreign_key="users.id", index=True)
    # Not a foreign key: history outlives the budget it was taken from
    budget_id: Optional[uuid.UUID] = Field(default=None, index=True)

    name: str = Field(max_length=100)
    month: int = Field(ge=1, le=12)
    year: int
    currency: str = Field(default="CAD", max_length=3)

    # [{"name": ..., "budgeted": ..., "spent": ...}, ...]
    categories: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    total_budgeted: float = Field(default=0, ge=0)
    total_spent: float = Field(default=0)
    expenses_count: int = Field(default=0, ge=0)

    created_at: datetime = Field(default_factory=datetime.utcnow)
