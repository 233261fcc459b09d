from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from enum import Enum

from app.models.values import (
    AudienceFilter,
    CampaignTrigger,
    PromotionLink,
    TriggerType,
)


class CampaignScope(str, Enum):
    TENANT = "TENANT"
    GLOBAL = "GLOBAL"
    TEMPLATE = "TEMPLATE"


class CampaignStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class BudgetType(str, Enum):
    UNLIMITED = "UNLIMITED"
    FIXED_AMOUNT = "FIXED_AMOUNT"
    PER_USER = "PER_USER"
    PERCENTAGE_OF_REVENUE = "PERCENTAGE_OF_REVENUE"


class BudgetSource(str, Enum):
    TENANT_BUDGET = "TENANT_BUDGET"
    PLATFORM_BUDGET = "PLATFORM_BUDGET"
    SHARED_SPLIT = "SHARED_SPLIT"


class TemplateCategory(str, Enum):
    SEASONAL = "SEASONAL"
    PROMOTIONAL = "PROMOTIONAL"
    RETENTION = "RETENTION"
    ACQUISITION = "ACQUISITION"
    LOYALTY = "LOYALTY"


class Campaign(SQLModel, table=True):
    __tablename__ = "campaigns"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)

    scope: CampaignScope = Field(index=True)
    tenancy_id: Optional[int] = Field(default=None, foreign_key="tenancies.id", index=True)
    # GLOBAL only: empty list together with all_tenancies means every tenancy
    applicable_tenancies: List[int] = Field(default_factory=list, sa_column=Column(JSON))
    all_tenancies: bool = Field(default=False)

    start_date: datetime = Field(index=True)
    end_date: datetime = Field(index=True)
    priority: int = Field(default=0, ge=0, le=100)  # higher wins

    status: CampaignStatus = Field(default=CampaignStatus.DRAFT, index=True)
    approval_required: bool = Field(default=False)

    triggers: List[dict] = Field(default_factory=list, sa_column=Column(JSON))
    audience: dict = Field(default_factory=dict, sa_column=Column(JSON))
    promotions: List[dict] = Field(default_factory=list, sa_column=Column(JSON))

    # Budget
    budget_type: BudgetType = Field(default=BudgetType.UNLIMITED)
    budget_total: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    budget_spent: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    budget_per_user_limit: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    budget_source: Optional[BudgetSource] = None

    # Usage limits, 0 = unlimited
    total_usage_limit: int = Field(default=0)
    per_user_limit: int = Field(default=1)
    daily_limit: int = Field(default=0)
    used_count: int = Field(default=0)

    # Stacking with promotions outside the campaign
    stack_with_coupons: bool = Field(default=False)
    stack_with_discounts: bool = Field(default=False)
    stack_with_loyalty: bool = Field(default=True)
    stacking_priority: int = Field(default=0)

    # Analytics
    impressions: int = Field(default=0)
    clicks: int = Field(default=0)
    conversions: int = Field(default=0)
    total_savings: Decimal = Field(default=Decimal("0"), max_digits=14, decimal_places=2)
    total_revenue: Decimal = Field(default=Decimal("0"), max_digits=14, decimal_places=2)
    unique_users: int = Field(default=0)

    template_category: Optional[TemplateCategory] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def trigger_list(self) -> List[CampaignTrigger]:
        return [CampaignTrigger.model_validate(t) for t in self.triggers or []]

    @property
    def audience_filter(self) -> AudienceFilter:
        return AudienceFilter.model_validate(self.audience or {})

    @property
    def promotion_links(self) -> List[PromotionLink]:
        return [PromotionLink.model_validate(p) for p in self.promotions or []]

    def has_trigger(self, trigger_type: TriggerType) -> bool:
        return any(t.type == trigger_type for t in self.trigger_list)

    def covers_tenancy(self, tenancy_id: int) -> bool:
        if self.scope == CampaignScope.TENANT:
            return self.tenancy_id == tenancy_id
        if self.scope == CampaignScope.GLOBAL:
            return not self.applicable_tenancies or tenancy_id in self.applicable_tenancies
        return False

    def is_running(self, now: datetime) -> bool:
        return (
            self.status == CampaignStatus.ACTIVE
            and self.start_date <= now < self.end_date
        )

    def consistency_problems(self) -> List[str]:
        problems = []
        if self.start_date >= self.end_date:
            problems.append("end_date must be after start_date")
        if self.scope == CampaignScope.TENANT and self.tenancy_id is None:
            problems.append("tenant campaigns must have a tenancy assigned")
        if (
            self.scope == CampaignScope.GLOBAL
            and not self.applicable_tenancies
            and not self.all_tenancies
        ):
            problems.append("global campaigns must list applicable tenancies or target all tenancies")
        if self.total_usage_limit and self.used_count > self.total_usage_limit:
            problems.append("used_count exceeds total_usage_limit")
        if self.budget_type != BudgetType.UNLIMITED and self.budget_spent > self.budget_total:
            problems.append("budget_spent exceeds budget_total")
        return problems


class CampaignUsage(SQLModel, table=True):
    """One row per committed checkout, backs per-user and daily limits"""
    __tablename__ = "campaign_usages"

    id: Optional[int] = Field(default=None, primary_key=True)
    campaign_id: int = Field(foreign_key="campaigns.id", index=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    order_ref: Optional[str] = None

    discount_amount: Decimal = Field(max_digits=12, decimal_places=2)
    order_total: Decimal = Field(max_digits=12, decimal_places=2)

    used_at: datetime = Field(default_factory=datetime.utcnow, index=True)
