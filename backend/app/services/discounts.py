from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlmodel import Session, select

from app.core.money import ZERO, round_money
from app.models.discount import Discount
from app.models.user import User
from app.schemas.checkout import OrderSnapshot
from app.services.benefits import DiscountStack, StackingPolicy
from app.services.rules import describe_rule, validate_order
from app.services.selector import tenancy_zone


@dataclass
class DiscountLine:
    discount: Discount
    amount: Decimal
    description: str
    policy: StackingPolicy


@dataclass
class DiscountEvaluation:
    order_total: Decimal
    lines: List[DiscountLine] = field(default_factory=list)
    total_discount: Decimal = ZERO
    final_amount: Decimal = ZERO


def active_discounts(db: Session, tenancy_id: int, now: Optional[datetime] = None) -> List[Discount]:
    """Usable discounts of a tenancy plus globals covering it, highest priority first"""
    now = now or datetime.utcnow()

    stmt = select(Discount).where(
        Discount.is_active == True,
        Discount.start_date <= now,
        Discount.end_date >= now,
        (Discount.tenancy_id == tenancy_id) | (Discount.is_global == True),
    ).order_by(Discount.priority.desc(), Discount.created_at, Discount.id)

    return [
        d for d in db.exec(stmt).all()
        if d.covers_tenancy(tenancy_id) and d.is_usable(now)
    ]


def applicable_discounts(
    db: Session,
    tenancy_id: int,
    order: OrderSnapshot,
    user: Optional[User] = None,
    now: Optional[datetime] = None,
) -> DiscountEvaluation:
    """
    Evaluate every active discount of a tenancy against an order, highest
    priority first, under the same stacking policy campaigns use.
    """
    validate_order(order)
    now = now or datetime.utcnow()
    stack = DiscountStack(order, user=user, now=now, tz=tenancy_zone(db, tenancy_id))

    evaluation = DiscountEvaluation(order_total=round_money(order.total))
    for discount in active_discounts(db, tenancy_id, now):
        match = stack.evaluate(discount)
        if match is None:
            continue
        evaluation.lines.append(DiscountLine(
            discount=discount,
            amount=match.amount,
            description=", ".join(describe_rule(r) for r in match.rules),
            policy=match.policy,
        ))

    raw = sum((line.amount for line in evaluation.lines), ZERO)
    evaluation.total_discount = min(round_money(raw), evaluation.order_total)
    evaluation.final_amount = max(ZERO, evaluation.order_total - evaluation.total_discount)
    return evaluation
