"""
Usage ledger.

Counters live on the record that owns them (campaign, discount, coupon)
and change only through conditional UPDATE statements: the increment is
applied only if the caps still hold afterwards. A request that loses a
race for the last unit of budget or usage matches zero rows, rolls back,
and gets a retryable error so the caller can re-run selection.
"""
import logging
from datetime import datetime, tzinfo
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import Numeric, case, func, literal, select, update
from sqlmodel import Session

from app.core.clock import get_zone, local_day_start_utc
from app.core.errors import (
    BudgetExceeded,
    CampaignUnavailable,
    UsageLimitExceeded,
    ValidationError,
)
from app.core.money import ZERO, D, round_money
from app.models.campaign import BudgetType, Campaign, CampaignStatus, CampaignUsage
from app.models.coupon import Coupon
from app.models.discount import Discount
from app.models.values import PromotionKind
from app.services.benefits import AppliedRecord
from app.services.lifecycle import ensure_consistent

logger = logging.getLogger(__name__)

RECORD_MODELS = {
    PromotionKind.DISCOUNT: Discount,
    PromotionKind.COUPON: Coupon,
}


def _money(value: Decimal):
    return literal(value, type_=Numeric(14, 2))


def _user_uses(campaign_id: int, user_id: int):
    return (
        select(func.count(CampaignUsage.id))
        .where(CampaignUsage.campaign_id == campaign_id, CampaignUsage.user_id == user_id)
    )


def _user_spent(campaign_id: int, user_id: int):
    return (
        select(func.coalesce(func.sum(CampaignUsage.discount_amount), 0))
        .where(CampaignUsage.campaign_id == campaign_id, CampaignUsage.user_id == user_id)
    )


def _today_uses(campaign_id: int, day_start: datetime):
    return (
        select(func.count(CampaignUsage.id))
        .where(CampaignUsage.campaign_id == campaign_id, CampaignUsage.used_at >= day_start)
    )


def _lock_statement(campaign_id: int):
    return (
        select(Campaign)
        .where(Campaign.id == campaign_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )


def _campaign_update(campaign_id, user_id, amount, revenue, now, day_start):
    amount_ = _money(amount)
    user_uses = _user_uses(campaign_id, user_id).scalar_subquery()
    return (
        update(Campaign)
        .where(
            Campaign.id == campaign_id,
            Campaign.status == CampaignStatus.ACTIVE,
            Campaign.start_date <= now,
            Campaign.end_date > now,
            (Campaign.total_usage_limit == 0)
            | (Campaign.used_count + 1 <= Campaign.total_usage_limit),
            (Campaign.budget_type == BudgetType.UNLIMITED)
            | (Campaign.budget_spent + amount_ <= Campaign.budget_total),
            (Campaign.daily_limit == 0)
            | (_today_uses(campaign_id, day_start).scalar_subquery() < Campaign.daily_limit),
            (Campaign.per_user_limit == 0)
            | (user_uses < Campaign.per_user_limit),
            (Campaign.budget_type != BudgetType.PER_USER)
            | (Campaign.budget_per_user_limit == 0)
            | (_user_spent(campaign_id, user_id).scalar_subquery() + amount_ <= Campaign.budget_per_user_limit),
        )
        .values(
            used_count=Campaign.used_count + 1,
            budget_spent=Campaign.budget_spent + amount_,
            conversions=Campaign.conversions + 1,
            total_savings=Campaign.total_savings + amount_,
            total_revenue=Campaign.total_revenue + _money(revenue),
            unique_users=Campaign.unique_users + case((user_uses == 0, 1), else_=0),
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )


def _record_update(record: AppliedRecord):
    model = RECORD_MODELS[record.kind]
    amount_ = _money(round_money(record.amount))
    return (
        update(model)
        .where(
            model.id == record.record_id,
            model.is_active == True,
            (model.usage_limit == 0) | (model.used_count + 1 <= model.usage_limit),
        )
        .values(
            used_count=model.used_count + 1,
            total_savings=model.total_savings + amount_,
            total_orders=model.total_orders + 1,
        )
        .execution_options(synchronize_session=False)
    )


def _conflict_for(
    db: Session,
    campaign_id: int,
    user_id: int,
    amount: Decimal,
    now: datetime,
    day_start: datetime,
):
    """Work out which guard rejected the campaign update"""
    campaign = db.get(Campaign, campaign_id, populate_existing=True)
    if campaign is None or not campaign.is_running(now):
        return CampaignUnavailable(f"Campaign {campaign_id} is no longer running", campaign_id=campaign_id)

    if campaign.total_usage_limit and campaign.used_count + 1 > campaign.total_usage_limit:
        return UsageLimitExceeded(f"Campaign {campaign_id} usage limit reached", campaign_id=campaign_id)

    if campaign.budget_type != BudgetType.UNLIMITED and D(campaign.budget_spent) + amount > D(campaign.budget_total):
        return BudgetExceeded(
            f"Campaign {campaign_id} budget exhausted",
            campaign_id=campaign_id,
            remaining=D(campaign.budget_total) - D(campaign.budget_spent),
        )

    if campaign.daily_limit and db.execute(_today_uses(campaign_id, day_start)).scalar_one() >= campaign.daily_limit:
        return UsageLimitExceeded(f"Campaign {campaign_id} daily limit reached", campaign_id=campaign_id)

    if campaign.per_user_limit and db.execute(_user_uses(campaign_id, user_id)).scalar_one() >= campaign.per_user_limit:
        return UsageLimitExceeded(
            f"Campaign {campaign_id} per-user limit reached", campaign_id=campaign_id, user_id=user_id
        )

    return BudgetExceeded(
        f"Campaign {campaign_id} per-user budget exhausted", campaign_id=campaign_id, user_id=user_id
    )


def commit_usage(
    db: Session,
    campaign_id: int,
    *,
    user_id: int,
    discount_amount,
    order_total,
    applied_records: Iterable[AppliedRecord] = (),
    order_ref: Optional[str] = None,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> CampaignUsage:
    """
    Record one successful campaign application.

    One conditional UPDATE per affected record, all in one transaction.
    Raises UsageLimitExceeded / BudgetExceeded / CampaignUnavailable (all
    retryable) when a guard fails, and InconsistentConfiguration for a
    campaign breaking a model invariant. Nothing is written in either case.
    """
    now = now or datetime.utcnow()
    amount = round_money(discount_amount)
    revenue = round_money(order_total)
    if amount < ZERO or revenue < ZERO:
        raise ValidationError("Ledger amounts must be non-negative", campaign_id=campaign_id)

    day_start = local_day_start_utc(now, tz or get_zone(None))

    try:
        # Usage rows are counted after this lock so concurrent commits see each other
        campaign = db.execute(_lock_statement(campaign_id)).scalars().first()
        if campaign is None:
            raise CampaignUnavailable(f"Campaign {campaign_id} does not exist", campaign_id=campaign_id)
        ensure_consistent(campaign)

        updated = db.execute(_campaign_update(campaign_id, user_id, amount, revenue, now, day_start)).rowcount
        if updated != 1:
            conflict = _conflict_for(db, campaign_id, user_id, amount, now, day_start)
            raise conflict

        for record in applied_records:
            if record.kind not in RECORD_MODELS:
                continue
            if db.execute(_record_update(record)).rowcount != 1:
                raise UsageLimitExceeded(
                    f"{record.kind.value.title()} {record.record_id} usage limit reached",
                    campaign_id=campaign_id,
                    record_id=record.record_id,
                )

        usage = CampaignUsage(
            campaign_id=campaign_id,
            user_id=user_id,
            order_ref=order_ref,
            discount_amount=amount,
            order_total=revenue,
            used_at=now,
        )
        db.add(usage)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(usage)
    logger.info(
        "Committed campaign #%s for user %s: discount %s on order total %s",
        campaign_id, user_id, amount, revenue,
    )
    return usage
