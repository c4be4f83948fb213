import uuid
from datetime import datetime

from sqlmodel import SQLModel, Field


class Category(SQLModel, table=True):
    __tablename__ = "categories"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)

    budget_id: uuid.UUID = Field(foreign_key="budgets.id", index=True)

    name: str = Field(max_length=50)
    budgeted: float = Field(default=0, ge=0)
    spent: float = Field(default=0, ge=0)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
