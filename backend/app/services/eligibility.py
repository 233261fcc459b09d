from dataclasses import dataclass
from datetime import datetime, tzinfo
from decimal import Decimal
from typing import Optional

from app.core.clock import days_between, get_zone, in_time_window, to_local, weekday_name
from app.core.money import ZERO, D
from app.models.campaign import BudgetType, Campaign, CampaignStatus
from app.models.user import User
from app.models.values import (
    AudienceFilter,
    AudienceTarget,
    CustomFilters,
    TriggerConditions,
    TriggerType,
)
from app.schemas.checkout import OrderSnapshot


@dataclass(frozen=True)
class UsageStats:
    """Ledger history the limits are checked against, loaded by the selector"""
    user_uses: int = 0
    user_spent: Decimal = ZERO
    today_uses: int = 0


NO_USAGE = UsageStats()


def trigger_conditions_match(
    conditions: TriggerConditions,
    user: User,
    order: OrderSnapshot,
    local: datetime,
) -> bool:
    if conditions.min_order_value and D(order.total) < conditions.min_order_value:
        return False
    if conditions.day_of_week:
        days = {d.lower() for d in conditions.day_of_week}
        if weekday_name(local) not in days:
            return False
    window = conditions.time_range
    if window and not in_time_window(local, window.start, window.end):
        return False
    if conditions.user_segment and not user.has_segment(conditions.user_segment):
        return False
    return True


def custom_filters_match(filters: CustomFilters, user: User, now: datetime) -> bool:
    spent = D(user.total_spent)
    if filters.min_order_count is not None and user.order_count < filters.min_order_count:
        return False
    if filters.max_order_count is not None and user.order_count > filters.max_order_count:
        return False
    if filters.min_total_spent is not None and spent < filters.min_total_spent:
        return False
    if filters.max_total_spent is not None and spent > filters.max_total_spent:
        return False
    if filters.last_order_days is not None:
        if user.last_order_at is None or days_between(user.last_order_at, now) > filters.last_order_days:
            return False
    if filters.registration_days is not None:
        if days_between(user.created_at, now) > filters.registration_days:
            return False
    return True


def audience_matches(audience: AudienceFilter, user: User, now: datetime) -> bool:
    target = audience.target_type
    if target == AudienceTarget.NEW_USERS and user.order_count > 0:
        return False
    if target == AudienceTarget.EXISTING_USERS and user.order_count == 0:
        return False
    if target == AudienceTarget.SEGMENT:
        if not any(user.has_segment(s) for s in audience.user_segments):
            return False
    if audience.custom_filters and not custom_filters_match(audience.custom_filters, user, now):
        return False
    return True


def limits_allow(campaign: Campaign, usage: UsageStats) -> bool:
    if campaign.total_usage_limit and campaign.used_count >= campaign.total_usage_limit:
        return False
    if campaign.daily_limit and usage.today_uses >= campaign.daily_limit:
        return False
    if campaign.per_user_limit and usage.user_uses >= campaign.per_user_limit:
        return False
    return True


def budget_allows(campaign: Campaign, usage: UsageStats) -> bool:
    if campaign.budget_type == BudgetType.UNLIMITED:
        return True
    if D(campaign.budget_spent) >= D(campaign.budget_total):
        return False
    if campaign.budget_type == BudgetType.PER_USER and campaign.budget_per_user_limit:
        if D(usage.user_spent) >= D(campaign.budget_per_user_limit):
            return False
    return True


def budget_covers(campaign: Campaign, usage: UsageStats, amount: Decimal) -> bool:
    """Whether the remaining budget can take this discount in full"""
    if campaign.budget_type == BudgetType.UNLIMITED:
        return True
    if D(campaign.budget_spent) + amount > D(campaign.budget_total):
        return False
    if campaign.budget_type == BudgetType.PER_USER and campaign.budget_per_user_limit:
        if D(usage.user_spent) + amount > D(campaign.budget_per_user_limit):
            return False
    return True


def rejection_reason(
    campaign: Campaign,
    user: User,
    order: OrderSnapshot,
    *,
    trigger_type: TriggerType,
    usage: UsageStats = NO_USAGE,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> Optional[str]:
    """First failed eligibility check, or None when the shopper may use the campaign"""
    now = now or datetime.utcnow()
    local = to_local(now, tz or get_zone(None))

    if campaign.status != CampaignStatus.ACTIVE:
        return "not active"
    if not campaign.is_running(now):
        return "outside validity window"

    triggers = [t for t in campaign.trigger_list if t.type == trigger_type]
    if not any(trigger_conditions_match(t.conditions, user, order, local) for t in triggers):
        return "no matching trigger"

    if not audience_matches(campaign.audience_filter, user, now):
        return "audience mismatch"
    if not limits_allow(campaign, usage):
        return "usage limit reached"
    if not budget_allows(campaign, usage):
        return "budget exhausted"
    return None


def is_eligible(campaign: Campaign, user: User, order: OrderSnapshot, **kwargs) -> bool:
    return rejection_reason(campaign, user, order, **kwargs) is None
