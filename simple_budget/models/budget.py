import uuid
from datetime import datetime

from sqlmodel import SQLModel, Field


class Budget(SQLModel, table=True):
    __tablename__ = "budgets"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)

    user_id: uuid.UUID = Field(foreign_key="users.id", index=True)

    name: str = Field(default="My budget", max_length=100)
    month: int = Field(ge=1, le=12, index=True)
    year: int = Field(index=True)
    currency: str = Field(default="CAD", max_length=3)

    # Derived by core.totals.reconcile; their sum is the budget pool
    total_budgeted: float = Field(default=0, ge=0)
    total_available: float = Field(default=0, ge=0)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
