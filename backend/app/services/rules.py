"""
Rule evaluation: turns one discount rule (or one coupon) and an order
snapshot into an applicability flag and a monetary amount.

Everything here is side-effect free and safe to call for previews.
"""
from datetime import datetime, tzinfo
from decimal import Decimal
from typing import NamedTuple, Optional

from app.core.clock import get_zone, in_time_window, to_local, weekday_index
from app.core.errors import ValidationError
from app.core.money import ZERO, D, clamp_money, percent_of, round_money
from app.models.coupon import Coupon, CouponType
from app.models.user import User
from app.models.values import (
    DiscountRule,
    PromotionOverrides,
    RuleConditions,
    RuleType,
    UserType,
)
from app.schemas.checkout import OrderSnapshot


class RuleOutcome(NamedTuple):
    applicable: bool
    amount: Decimal


NOT_APPLICABLE = RuleOutcome(False, ZERO)


def validate_order(order: OrderSnapshot) -> None:
    """Reject snapshots that bypassed schema validation"""
    if order.total is None or D(order.total) < 0:
        raise ValidationError("Order total must be a non-negative amount")
    for item in order.items:
        if item.quantity < 1:
            raise ValidationError("Order item quantity must be at least 1", service=item.service)
        if D(item.price) < 0:
            raise ValidationError("Order item price must be non-negative", service=item.service)


def user_type_matches(user_type: Optional[UserType], user: Optional[User]) -> bool:
    if user_type in (None, UserType.ALL):
        return True
    if user is None:
        return False
    if user_type == UserType.NEW:
        return user.order_count == 0
    if user_type == UserType.RETURNING:
        return user.order_count > 0
    # vip / senior are segment tags on the shopper
    return user.has_segment(user_type.value)


def services_match(order: OrderSnapshot, include, exclude) -> bool:
    services = order.services
    if exclude and services & set(exclude):
        return False
    if include and "all" not in include:
        return bool(services & set(include))
    return True


def conditions_match(
    conditions: RuleConditions,
    order: OrderSnapshot,
    user: Optional[User],
    local: datetime,
) -> bool:
    window = conditions.time_of_day
    if window and window.start_time and window.end_time:
        if not in_time_window(local, window.start_time, window.end_time):
            return False

    if conditions.days_of_week and weekday_index(local) not in conditions.days_of_week:
        return False

    if not user_type_matches(conditions.user_type, user):
        return False

    total = D(order.total)
    if conditions.min_order_value and total < conditions.min_order_value:
        return False
    if conditions.max_order_value and total > conditions.max_order_value:
        return False

    return services_match(order, conditions.applicable_services, conditions.exclude_services)


# === Per-type amount calculation ===

def _percentage(rule: DiscountRule, value: Decimal, order: OrderSnapshot) -> RuleOutcome:
    return RuleOutcome(True, percent_of(order.total, value))


def _fixed_amount(rule: DiscountRule, value: Decimal, order: OrderSnapshot) -> RuleOutcome:
    return RuleOutcome(True, min(D(value), D(order.total)))


def _tiered(rule: DiscountRule, value: Decimal, order: OrderSnapshot) -> RuleOutcome:
    total = D(order.total)
    quantity = order.item_quantity
    satisfied = [
        tier for tier in rule.tiers
        if total >= tier.min_value and quantity >= tier.min_quantity
    ]
    if not satisfied:
        return NOT_APPLICABLE

    tier = max(satisfied, key=lambda t: (t.min_value, t.min_quantity))
    if tier.discount_percentage > 0:
        return RuleOutcome(True, percent_of(total, tier.discount_percentage))
    if tier.discount_amount > 0:
        return RuleOutcome(True, min(tier.discount_amount, total))
    return RuleOutcome(True, ZERO)


RULE_CALCULATORS = {
    RuleType.PERCENTAGE: _percentage,
    RuleType.FIXED_AMOUNT: _fixed_amount,
    RuleType.TIERED: _tiered,
    # Conditional rules are percentages gated by their conditions block
    RuleType.CONDITIONAL: _percentage,
}


def evaluate_rule(
    rule: DiscountRule,
    order: OrderSnapshot,
    user: Optional[User] = None,
    *,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
    overrides: Optional[PromotionOverrides] = None,
) -> RuleOutcome:
    """
    Evaluate one discount rule against an order.

    Campaign overrides are applied first: `min_order_value` gates the rule,
    `value` replaces the rule value (tiers keep their own values) and
    `max_discount` replaces the rule cap.
    """
    now = now or datetime.utcnow()
    local = to_local(now, tz or get_zone(None))
    overrides = overrides or PromotionOverrides()
    total = D(order.total)

    if overrides.min_order_value is not None and total < overrides.min_order_value:
        return NOT_APPLICABLE

    if rule.conditions is not None and not conditions_match(rule.conditions, order, user, local):
        return NOT_APPLICABLE

    value = overrides.value if overrides.value is not None else rule.value
    outcome = RULE_CALCULATORS[rule.type](rule, D(value), order)
    if not outcome.applicable:
        return NOT_APPLICABLE

    amount = outcome.amount
    cap = overrides.max_discount if overrides.max_discount is not None else rule.max_discount
    if cap:
        amount = min(amount, D(cap))
    return RuleOutcome(True, clamp_money(amount, total))


def evaluate_coupon(
    coupon: Coupon,
    order: OrderSnapshot,
    *,
    now: Optional[datetime] = None,
    overrides: Optional[PromotionOverrides] = None,
) -> RuleOutcome:
    """Single-rule variant for coupons, bounded by min order value and max discount"""
    now = now or datetime.utcnow()
    overrides = overrides or PromotionOverrides()
    total = D(order.total)

    if not coupon.is_usable(now):
        return NOT_APPLICABLE

    min_order_value = overrides.min_order_value
    if min_order_value is None:
        min_order_value = coupon.min_order_value
    if min_order_value and total < min_order_value:
        return NOT_APPLICABLE

    if not services_match(order, coupon.applicable_services, None):
        return NOT_APPLICABLE

    value = D(overrides.value if overrides.value is not None else coupon.value)
    if coupon.type == CouponType.PERCENTAGE:
        amount = percent_of(total, value)
    else:
        amount = value

    cap = overrides.max_discount if overrides.max_discount is not None else coupon.max_discount
    if cap:
        amount = min(amount, D(cap))
    return RuleOutcome(True, clamp_money(amount, total))


def describe_rule(rule: DiscountRule, overrides: Optional[PromotionOverrides] = None) -> str:
    value = rule.value
    if overrides and overrides.value is not None:
        value = overrides.value
    if rule.type == RuleType.FIXED_AMOUNT:
        return f"{round_money(value)} off"
    if rule.type == RuleType.TIERED:
        return "tiered discount"
    return f"{D(value).normalize():f}% off"


def describe_coupon(coupon: Coupon, overrides: Optional[PromotionOverrides] = None) -> str:
    value = coupon.value
    if overrides and overrides.value is not None:
        value = overrides.value
    if coupon.type == CouponType.PERCENTAGE:
        return f"Coupon: {coupon.code} ({D(value).normalize():f}% off)"
    return f"Coupon: {coupon.code} ({round_money(value)} off)"
