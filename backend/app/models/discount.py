from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from app.models.values import DiscountRule


class Discount(SQLModel, table=True):
    __tablename__ = "discounts"

    id: Optional[int] = Field(default=None, primary_key=True)
    tenancy_id: Optional[int] = Field(default=None, foreign_key="tenancies.id", index=True)
    is_global: bool = Field(default=False, index=True)
    applicable_tenancies: List[int] = Field(default_factory=list, sa_column=Column(JSON))

    name: str
    description: Optional[str] = None

    rules: List[dict] = Field(default_factory=list, sa_column=Column(JSON))
    priority: int = Field(default=0, index=True)  # higher wins

    can_stack_with_coupons: bool = Field(default=True)
    can_stack_with_other_discounts: bool = Field(default=False)

    start_date: datetime
    end_date: datetime

    # 0 = unlimited
    usage_limit: int = Field(default=0)
    used_count: int = Field(default=0)
    per_user_limit: int = Field(default=0)

    is_active: bool = Field(default=True, index=True)

    total_savings: Decimal = Field(default=Decimal("0"), max_digits=14, decimal_places=2)
    total_orders: int = Field(default=0)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def rule_list(self) -> List[DiscountRule]:
        return [DiscountRule.model_validate(r) for r in self.rules or []]

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
