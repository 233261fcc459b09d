"""
Value types stored inside JSON columns.

Campaign triggers, audience filters, attached promotions and discount rules
are never queried by SQL, so the tables keep them as JSON and the engine
parses them into these models on access.
"""
from pydantic import BaseModel, Field
from typing import Optional, List
from decimal import Decimal
from enum import Enum


class TriggerType(str, Enum):
    ORDER_CHECKOUT = "ORDER_CHECKOUT"
    USER_REGISTRATION = "USER_REGISTRATION"
    TIME_BASED = "TIME_BASED"
    BEHAVIOR_BASED = "BEHAVIOR_BASED"


class AudienceTarget(str, Enum):
    ALL_USERS = "ALL_USERS"
    NEW_USERS = "NEW_USERS"
    EXISTING_USERS = "EXISTING_USERS"
    SEGMENT = "SEGMENT"
    CUSTOM = "CUSTOM"


class PromotionKind(str, Enum):
    DISCOUNT = "DISCOUNT"
    COUPON = "COUPON"
    LOYALTY_POINTS = "LOYALTY_POINTS"
    WALLET_CREDIT = "WALLET_CREDIT"


class RuleType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"
    TIERED = "tiered"
    CONDITIONAL = "conditional"


class UserType(str, Enum):
    ALL = "all"
    NEW = "new"
    RETURNING = "returning"
    VIP = "vip"
    SENIOR = "senior"


# === Campaign ===

class TimeRange(BaseModel):
    start: str  # "09:00"
    end: str    # "17:00"


class TriggerConditions(BaseModel):
    min_order_value: Optional[Decimal] = None
    day_of_week: List[str] = []  # ["monday", "tuesday", ...]
    time_range: Optional[TimeRange] = None
    user_segment: Optional[str] = None
    behavior_type: Optional[str] = None


class CampaignTrigger(BaseModel):
    type: TriggerType
    conditions: TriggerConditions = Field(default_factory=TriggerConditions)


class CustomFilters(BaseModel):
    min_order_count: Optional[int] = None
    max_order_count: Optional[int] = None
    min_total_spent: Optional[Decimal] = None
    max_total_spent: Optional[Decimal] = None
    # Last order placed within N days
    last_order_days: Optional[int] = None
    # Account registered within N days
    registration_days: Optional[int] = None


class AudienceFilter(BaseModel):
    target_type: AudienceTarget = AudienceTarget.ALL_USERS
    user_segments: List[str] = []
    custom_filters: Optional[CustomFilters] = None


class PromotionOverrides(BaseModel):
    value: Optional[Decimal] = None
    max_discount: Optional[Decimal] = None
    min_order_value: Optional[Decimal] = None


class PromotionLink(BaseModel):
    """Weak reference from a campaign to a promotion record"""
    type: PromotionKind
    # Wallet credit has no backing record
    promotion_id: Optional[int] = None
    overrides: PromotionOverrides = Field(default_factory=PromotionOverrides)


# === Discount rules ===

class TimeOfDay(BaseModel):
    start_time: Optional[str] = None
    end_time: Optional[str] = None


class RuleConditions(BaseModel):
    time_of_day: Optional[TimeOfDay] = None
    days_of_week: List[int] = []  # 0 = Sunday ... 6 = Saturday
    user_type: Optional[UserType] = None
    min_order_value: Decimal = Decimal("0")
    max_order_value: Decimal = Decimal("0")  # 0 = no upper bound
    applicable_services: List[str] = []
    exclude_services: List[str] = []


class DiscountTier(BaseModel):
    min_quantity: int = 0
    min_value: Decimal = Decimal("0")
    discount_percentage: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")


class DiscountRule(BaseModel):
    type: RuleType
    value: Decimal = Field(default=Decimal("0"), ge=0)
    max_discount: Optional[Decimal] = None
    tiers: List[DiscountTier] = []
    conditions: Optional[RuleConditions] = None
