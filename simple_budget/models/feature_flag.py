import uuid
from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field


class FeatureFlag(SQLModel, table=True):
    __tablename__ = "feature_flags"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)

    # Lowercase letters, digits, "_" and "-"; see core.flags.normalize_key
    key: str = Field(index=True, unique=True, max_length=100)
    name: str = Field(max_length=100)
    description: str = Field(max_length=500)
    enabled: bool = Field(default=False, index=True)

    # Values of core.flags.Platform and core.flags.UserType
    platforms: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    user_types: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    rollout_percentage: int = Field(default=100, ge=0, le=100)
    # User ids as strings
    target_users: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    exclude_users: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    config: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))

    created_by: str = Field(max_length=255)
    last_modified_by: str = Field(max_length=255)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
