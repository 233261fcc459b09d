from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from enum import Enum


class CouponType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"


class Coupon(SQLModel, table=True):
    __tablename__ = "coupons"

    id: Optional[int] = Field(default=None, primary_key=True)
    code: str = Field(unique=True, index=True)
    tenancy_id: Optional[int] = Field(default=None, foreign_key="tenancies.id", index=True)
    is_global: bool = Field(default=False)
    applicable_tenancies: List[int] = Field(default_factory=list, sa_column=Column(JSON))

    name: str
    description: Optional[str] = None

    type: CouponType
    value: Decimal = Field(max_digits=10, decimal_places=2)
    min_order_value: Decimal = Field(default=Decimal("0"), max_digits=10, decimal_places=2)
    max_discount: Decimal = Field(default=Decimal("0"), max_digits=10, decimal_places=2)  # 0 = no cap

    # 0 = unlimited
    usage_limit: int = Field(default=0)
    used_count: int = Field(default=0)
    per_user_limit: int = Field(default=1)

    applicable_services: List[str] = Field(default_factory=lambda: ["all"], sa_column=Column(JSON))

    start_date: datetime
    end_date: datetime
    is_active: bool = Field(default=True)

    total_savings: Decimal = Field(default=Decimal("0"), max_digits=14, decimal_places=2)
    total_orders: int = Field(default=0)

    created_at: datetime = Field(default_factory=datetime.utcnow)

    def covers_tenancy(self, tenancy_id: int) -> bool:
        if self.is_global:
            return not self.applicable_tenancies or tenancy_id in self.applicable_tenancies
        return self.tenancy_id == tenancy_id

    def is_usable(self, now: datetime) -> bool:
        return (
            self.is_active
            and self.start_date <= now <= self.end_date
            and (self.usage_limit == 0 or self.used_count < self.usage_limit)
        )
