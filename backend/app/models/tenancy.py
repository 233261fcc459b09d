from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime


class Tenancy(SQLModel, table=True):
    __tablename__ = "tenancies"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    slug: Optional[str] = Field(default=None, unique=True, index=True)

    # IANA name, local clock for time-of-day and daily limits
    timezone: Optional[str] = None
    is_active: bool = Field(default=True)

    created_at: datetime = Field(default_factory=datetime.utcnow)
