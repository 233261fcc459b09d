"""
Benefit application: executes a campaign's attached promotions against an
order and produces the discount breakdown plus the side effects (wallet
credit, loyalty points) that other services fulfil after the order.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from decimal import Decimal, ROUND_FLOOR
from enum import Enum
from typing import Callable, Dict, List, Optional, Union

from app.core.clock import get_zone
from app.core.config import settings
from app.core.money import ZERO, D, round_money
from app.models.campaign import Campaign
from app.models.coupon import Coupon
from app.models.discount import Discount
from app.models.loyalty import LoyaltyProgram
from app.models.user import User
from app.models.values import DiscountRule, PromotionKind, PromotionLink, PromotionOverrides
from app.schemas.checkout import OrderSnapshot
from app.services.lookup import PromotionLookup, PromotionRecord
from app.services.rules import (
    describe_coupon,
    describe_rule,
    evaluate_coupon,
    evaluate_rule,
    validate_order,
)

logger = logging.getLogger(__name__)

WALLET_CREDIT = "grantWalletCredit"
LOYALTY_POINTS = "grantPoints"


class StackingPolicy(str, Enum):
    FIRST_MATCH = "first_match"  # stop at the first matching rule
    ACCUMULATE = "accumulate"    # add up every matching rule

    @classmethod
    def for_discount(cls, discount: Discount) -> "StackingPolicy":
        if discount.can_stack_with_other_discounts:
            return cls.ACCUMULATE
        return cls.FIRST_MATCH


@dataclass
class BreakdownLine:
    type: PromotionKind
    amount: Decimal
    description: str
    promotion_id: Optional[int] = None


@dataclass
class SideEffect:
    kind: str
    value: Union[int, Decimal]
    description: str
    promotion_id: Optional[int] = None


@dataclass
class AppliedRecord:
    """Discount or coupon whose own counters the ledger must bump"""
    kind: PromotionKind
    record_id: int
    amount: Decimal


@dataclass
class DiscountMatch:
    amount: Decimal
    rules: List[DiscountRule]
    policy: StackingPolicy


@dataclass
class ApplicationResult:
    order_total: Decimal
    total_discount: Decimal = ZERO
    final_amount: Decimal = ZERO
    breakdown: List[BreakdownLine] = field(default_factory=list)
    side_effects: List[SideEffect] = field(default_factory=list)
    applied_records: List[AppliedRecord] = field(default_factory=list)

    @property
    def wallet_credit(self) -> Decimal:
        return sum((D(e.value) for e in self.side_effects if e.kind == WALLET_CREDIT), ZERO)

    @property
    def benefit(self) -> Decimal:
        """Money value to the shopper: order discount plus wallet credit"""
        return round_money(self.total_discount + self.wallet_credit)

    @property
    def is_empty(self) -> bool:
        return not self.breakdown and not self.side_effects

    def finalize(self) -> "ApplicationResult":
        raw = sum((line.amount for line in self.breakdown), ZERO)
        self.total_discount = min(round_money(raw), self.order_total)
        self.final_amount = max(ZERO, self.order_total - self.total_discount)
        return self


class DiscountStack:
    """
    Evaluates discounts in order under their stacking policy.

    A FIRST_MATCH discount stops at its first matching rule, and once one
    has matched, later FIRST_MATCH discounts are skipped for this order.
    """

    def __init__(self, order: OrderSnapshot, *, user: Optional[User], now: datetime, tz: tzinfo):
        self.order = order
        self.user = user
        self.now = now
        self.tz = tz
        self.exclusive_taken = False

    def evaluate(
        self,
        discount: Discount,
        overrides: Optional[PromotionOverrides] = None,
    ) -> Optional[DiscountMatch]:
        policy = StackingPolicy.for_discount(discount)
        if policy == StackingPolicy.FIRST_MATCH and self.exclusive_taken:
            logger.debug("Skipping discount #%s, a non-stacking discount already applied", discount.id)
            return None

        amount = ZERO
        matched: List[DiscountRule] = []
        for rule in discount.rule_list:
            outcome = evaluate_rule(
                rule, self.order, self.user, now=self.now, tz=self.tz, overrides=overrides
            )
            if not outcome.applicable:
                continue
            amount += outcome.amount
            matched.append(rule)
            if policy == StackingPolicy.FIRST_MATCH:
                break

        if not matched:
            return None
        if policy == StackingPolicy.FIRST_MATCH:
            self.exclusive_taken = True
        return DiscountMatch(amount=round_money(amount), rules=matched, policy=policy)


@dataclass
class _Context:
    order: OrderSnapshot
    now: datetime
    stack: DiscountStack
    result: ApplicationResult
    tenancy_id: Optional[int] = None

    def covers(self, record: Union[Discount, Coupon]) -> bool:
        if self.tenancy_id is None or record.covers_tenancy(self.tenancy_id):
            return True
        logger.warning(
            "Skipping %s #%s, it does not cover tenancy %s",
            type(record).__name__, record.id, self.tenancy_id,
        )
        return False


# === Promotion handlers, one per PromotionKind ===

def _apply_discount(link: PromotionLink, record: Optional[PromotionRecord], ctx: _Context) -> None:
    if not isinstance(record, Discount) or not record.is_usable(ctx.now) or not ctx.covers(record):
        return
    match = ctx.stack.evaluate(record, link.overrides)
    if match is None:
        return
    description = ", ".join(describe_rule(r, link.overrides) for r in match.rules)
    ctx.result.breakdown.append(BreakdownLine(
        type=PromotionKind.DISCOUNT,
        amount=match.amount,
        description=f"{record.name}: {description}",
        promotion_id=record.id,
    ))
    ctx.result.applied_records.append(AppliedRecord(PromotionKind.DISCOUNT, record.id, match.amount))


def _apply_coupon(link: PromotionLink, record: Optional[PromotionRecord], ctx: _Context) -> None:
    if not isinstance(record, Coupon) or not ctx.covers(record):
        return
    outcome = evaluate_coupon(record, ctx.order, now=ctx.now, overrides=link.overrides)
    if not outcome.applicable:
        return
    ctx.result.breakdown.append(BreakdownLine(
        type=PromotionKind.COUPON,
        amount=outcome.amount,
        description=describe_coupon(record, link.overrides),
        promotion_id=record.id,
    ))
    ctx.result.applied_records.append(AppliedRecord(PromotionKind.COUPON, record.id, outcome.amount))


def _apply_wallet_credit(link: PromotionLink, record: Optional[PromotionRecord], ctx: _Context) -> None:
    value = link.overrides.value
    amount = round_money(value if value is not None else settings.DEFAULT_WALLET_CREDIT)
    if amount <= 0:
        return
    ctx.result.side_effects.append(SideEffect(
        kind=WALLET_CREDIT,
        value=amount,
        description=f"{amount} wallet credit",
        promotion_id=link.promotion_id,
    ))


def _apply_loyalty_points(link: PromotionLink, record: Optional[PromotionRecord], ctx: _Context) -> None:
    if link.overrides.value is not None:
        points = int(D(link.overrides.value))
    elif isinstance(record, LoyaltyProgram):
        if not record.is_usable(ctx.now):
            return
        points = int((D(ctx.order.total) * D(record.earning_rate)).to_integral_value(rounding=ROUND_FLOOR))
    elif link.promotion_id is not None:
        # Referenced program is gone
        return
    else:
        points = settings.DEFAULT_LOYALTY_POINTS

    if points <= 0:
        return
    ctx.result.side_effects.append(SideEffect(
        kind=LOYALTY_POINTS,
        value=points,
        description=f"{points} loyalty points",
        promotion_id=link.promotion_id,
    ))


PROMOTION_HANDLERS: Dict[PromotionKind, Callable[[PromotionLink, Optional[PromotionRecord], _Context], None]] = {
    PromotionKind.DISCOUNT: _apply_discount,
    PromotionKind.COUPON: _apply_coupon,
    PromotionKind.WALLET_CREDIT: _apply_wallet_credit,
    PromotionKind.LOYALTY_POINTS: _apply_loyalty_points,
}


def apply_campaign(
    campaign: Campaign,
    order: OrderSnapshot,
    lookup: PromotionLookup,
    *,
    user: Optional[User] = None,
    tenancy_id: Optional[int] = None,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> ApplicationResult:
    """
    Run the campaign's promotions in list order. Writes nothing.

    With a tenancy_id, linked discounts and coupons that do not cover that
    tenancy are skipped.
    """
    validate_order(order)
    now = now or datetime.utcnow()
    tz = tz or get_zone(None)

    result = ApplicationResult(order_total=round_money(order.total))
    ctx = _Context(
        order=order,
        now=now,
        stack=DiscountStack(order, user=user, now=now, tz=tz),
        result=result,
        tenancy_id=tenancy_id,
    )
    for link in campaign.promotion_links:
        PROMOTION_HANDLERS[link.type](link, lookup.resolve(link), ctx)

    return result.finalize()
