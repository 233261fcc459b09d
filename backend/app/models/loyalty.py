from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal
from enum import Enum


class LoyaltyProgramType(str, Enum):
    POINTS = "points"
    TIERED = "tiered"
    PUNCH_CARD = "punch_card"
    CASHBACK = "cashback"
    SUBSCRIPTION = "subscription"


class LoyaltyProgram(SQLModel, table=True):
    __tablename__ = "loyalty_programs"

    id: Optional[int] = Field(default=None, primary_key=True)
    tenancy_id: Optional[int] = Field(default=None, foreign_key="tenancies.id", index=True)
    is_global: bool = Field(default=False)

    name: str
    description: Optional[str] = None
    type: LoyaltyProgramType = Field(default=LoyaltyProgramType.POINTS)

    # Points per currency unit spent
    earning_rate: Decimal = Field(default=Decimal("1"), max_digits=8, decimal_places=2)

    start_date: datetime = Field(default_factory=datetime.utcnow)
    end_date: Optional[datetime] = None
    is_active: bool = Field(default=True)

    created_at: datetime = Field(default_factory=datetime.utcnow)

    def is_usable(self, now: datetime) -> bool:
        return (
            self.is_active
            and self.start_date <= now
            and (self.end_date is None or now <= self.end_date)
        )
