from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from enum import Enum


class UserRole(str, Enum):
    CUSTOMER = "customer"
    MANAGER = "manager"
    ADMIN = "admin"


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    tenancy_id: Optional[int] = Field(default=None, foreign_key="tenancies.id", index=True)
    email: Optional[str] = Field(default=None, unique=True, index=True)
    phone: Optional[str] = Field(default=None, unique=True, index=True)

    first_name: Optional[str] = None
    last_name: Optional[str] = None

    role: UserRole = Field(default=UserRole.CUSTOMER)
    is_active: bool = Field(default=True)

    # Segment tags such as "vip" or "senior"
    segments: List[str] = Field(default_factory=list, sa_column=Column(JSON))

    # Order history, maintained by the order service
    order_count: int = Field(default=0)
    total_spent: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    last_order_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def has_segment(self, segment: str) -> bool:
        return segment.lower() in {s.lower() for s in self.segments or []}
