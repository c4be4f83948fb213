import uuid
from datetime import datetime, date
from typing import Optional
from sqlmodel import SQLModel, Field


class Expense(SQLModel, table=True):
    __tablename__ = "expenses"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True
    )
    budget_id: uuid.UUID = Field(foreign_key="budgets.id", index=True)
    category_id: Optional[uuid.UUID] = Field(default=None, foreign_key="categories.id")

    amount: float
    currency: str = Field(default="CAD", max_length=3)
    description: str
    # "expense" or "income"
    type: str = Field(default="expense", max_length=10)
    expense_date: date = Field(default_factory=date.today)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    deleted_at: Optional[datetime] = Field(default=None)
