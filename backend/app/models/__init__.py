from .tenancy import Tenancy
from .user import User, UserRole
from .campaign import (
    Campaign, CampaignUsage, CampaignScope, CampaignStatus,
    BudgetType, BudgetSource, TemplateCategory,
)
from .discount import Discount
from .coupon import Coupon, CouponType
from .loyalty import LoyaltyProgram, LoyaltyProgramType
from .values import (
    TriggerType, AudienceTarget, PromotionKind, RuleType, UserType,
    CampaignTrigger, TriggerConditions, TimeRange, AudienceFilter, CustomFilters,
    PromotionLink, PromotionOverrides,
    DiscountRule, DiscountTier, RuleConditions, TimeOfDay,
)

__all__ = [
    "Tenancy",
    "User", "UserRole",
    "Campaign", "CampaignUsage", "CampaignScope", "CampaignStatus",
    "BudgetType", "BudgetSource", "TemplateCategory",
    "Discount",
    "Coupon", "CouponType",
    "LoyaltyProgram", "LoyaltyProgramType",
    "TriggerType", "AudienceTarget", "PromotionKind", "RuleType", "UserType",
    "CampaignTrigger", "TriggerConditions", "TimeRange", "AudienceFilter", "CustomFilters",
    "PromotionLink", "PromotionOverrides",
    "DiscountRule", "DiscountTier", "RuleConditions", "TimeOfDay",
]
