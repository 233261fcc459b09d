import logging
from dataclasses import dataclass
from datetime import datetime, tzinfo
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlmodel import Session, select

from app.core.clock import get_zone, local_day_start_utc
from app.core.config import settings
from app.core.money import ZERO, D
from app.models.campaign import Campaign, CampaignScope, CampaignStatus, CampaignUsage
from app.models.tenancy import Tenancy
from app.models.user import User
from app.models.values import TriggerType
from app.schemas.checkout import OrderSnapshot
from app.services.benefits import ApplicationResult, apply_campaign
from app.services.eligibility import NO_USAGE, UsageStats, budget_covers, rejection_reason
from app.services.lookup import PromotionLookup
from app.services.rules import validate_order

logger = logging.getLogger(__name__)


# A tenancy's own offer outranks a platform-wide one
SCOPE_RANK = {
    CampaignScope.TENANT: 0,
    CampaignScope.GLOBAL: 1,
    CampaignScope.TEMPLATE: 2,
}


@dataclass
class Candidate:
    campaign: Campaign
    result: ApplicationResult
    benefit: Decimal
    cost: Decimal

    def sort_key(self, priority_first: bool = False):
        scope = SCOPE_RANK[self.campaign.scope]
        priority = -self.campaign.priority
        head = (priority, scope) if priority_first else (scope, priority)
        return head + (
            -self.benefit,
            self.cost,
            self.campaign.created_at,
            self.campaign.id or 0,
        )


def tenancy_zone(db: Session, tenancy_id: int) -> tzinfo:
    tenancy = db.get(Tenancy, tenancy_id)
    return get_zone(tenancy.timezone if tenancy else None)


def find_active_campaigns(
    db: Session,
    tenancy_id: int,
    trigger_type: TriggerType = TriggerType.ORDER_CHECKOUT,
    now: Optional[datetime] = None,
) -> List[Campaign]:
    """Tenant campaigns of this tenancy plus global campaigns covering it"""
    now = now or datetime.utcnow()

    stmt = select(Campaign).where(
        Campaign.status == CampaignStatus.ACTIVE,
        Campaign.start_date <= now,
        Campaign.end_date > now,
        ((Campaign.scope == CampaignScope.TENANT) & (Campaign.tenancy_id == tenancy_id))
        | (Campaign.scope == CampaignScope.GLOBAL),
    ).order_by(Campaign.created_at, Campaign.id)

    campaigns = db.exec(stmt).all()
    return [
        c for c in campaigns
        if c.covers_tenancy(tenancy_id) and c.has_trigger(trigger_type)
    ]


def load_usage_stats(
    db: Session,
    campaign_ids: Iterable[int],
    user_id: int,
    day_start: datetime,
) -> Dict[int, UsageStats]:
    ids = list(campaign_ids)
    if not ids:
        return {}

    per_user = db.exec(
        select(
            CampaignUsage.campaign_id,
            func.count(CampaignUsage.id),
            func.coalesce(func.sum(CampaignUsage.discount_amount), 0),
        )
        .where(CampaignUsage.campaign_id.in_(ids), CampaignUsage.user_id == user_id)
        .group_by(CampaignUsage.campaign_id)
    ).all()
    today = db.exec(
        select(CampaignUsage.campaign_id, func.count(CampaignUsage.id))
        .where(CampaignUsage.campaign_id.in_(ids), CampaignUsage.used_at >= day_start)
        .group_by(CampaignUsage.campaign_id)
    ).all()

    user_rows = {cid: (count, D(spent)) for cid, count, spent in per_user}
    today_rows = dict(today)
    return {
        cid: UsageStats(
            user_uses=user_rows.get(cid, (0, ZERO))[0],
            user_spent=user_rows.get(cid, (0, ZERO))[1],
            today_uses=today_rows.get(cid, 0),
        )
        for cid in ids
    }


def campaign_cost(campaign: Campaign, result: ApplicationResult) -> Decimal:
    # Platform-borne cost; equal to the shopper benefit until budget sharing exists
    return result.benefit


def rank_candidates(candidates: List[Candidate], priority_first: Optional[bool] = None) -> List[Candidate]:
    """
    Order candidates best first:
    1. scope (tenant > global > template)
    2. priority, higher first
    3. benefit to the shopper, higher first
    4. platform cost, lower first
    then oldest campaign first.
    """
    if priority_first is None:
        priority_first = settings.CAMPAIGN_PRIORITY_BEFORE_SCOPE
    return sorted(candidates, key=lambda c: c.sort_key(priority_first))


def collect_candidates(
    db: Session,
    tenancy_id: int,
    trigger_type: TriggerType,
    user: User,
    order: OrderSnapshot,
    *,
    now: Optional[datetime] = None,
    exclude_ids: Iterable[int] = (),
    lookup: Optional[PromotionLookup] = None,
) -> List[Candidate]:
    validate_order(order)
    now = now or datetime.utcnow()
    tz = tenancy_zone(db, tenancy_id)
    excluded = set(exclude_ids)

    campaigns = [
        c for c in find_active_campaigns(db, tenancy_id, trigger_type, now)
        if c.id not in excluded
    ]
    if not campaigns:
        return []

    usage = load_usage_stats(db, [c.id for c in campaigns], user.id, local_day_start_utc(now, tz))
    lookup = lookup or PromotionLookup(db)
    lookup.prefetch(campaigns)

    candidates = []
    for campaign in campaigns:
        problems = campaign.consistency_problems()
        if problems:
            logger.error(
                "Skipping inconsistent campaign #%s in tenancy %s: %s",
                campaign.id, tenancy_id, "; ".join(problems),
            )
            continue

        stats = usage.get(campaign.id, NO_USAGE)
        reason = rejection_reason(
            campaign, user, order,
            trigger_type=trigger_type,
            usage=stats,
            now=now,
            tz=tz,
        )
        if reason:
            logger.debug("Campaign #%s rejected for user %s: %s", campaign.id, user.id, reason)
            continue

        result = apply_campaign(
            campaign, order, lookup, user=user, tenancy_id=tenancy_id, now=now, tz=tz
        )
        if result.is_empty:
            logger.debug("Campaign #%s has nothing to apply to this order", campaign.id)
            continue
        if not budget_covers(campaign, stats, result.total_discount):
            logger.debug(
                "Campaign #%s budget cannot cover %s for user %s",
                campaign.id, result.total_discount, user.id,
            )
            continue
        candidates.append(Candidate(
            campaign=campaign,
            result=result,
            benefit=result.benefit,
            cost=campaign_cost(campaign, result),
        ))
    return candidates


def select_campaign(
    db: Session,
    tenancy_id: int,
    trigger_type: TriggerType,
    user: User,
    order: OrderSnapshot,
    **kwargs,
) -> Optional[Candidate]:
    """Best eligible campaign for this checkout, or None"""
    ranked = rank_candidates(collect_candidates(db, tenancy_id, trigger_type, user, order, **kwargs))
    if not ranked:
        logger.info("No eligible campaign for user %s in tenancy %s", user.id, tenancy_id)
        return None

    best = ranked[0]
    logger.info(
        "Selected campaign #%s (%s, priority %s, benefit %s) for user %s out of %d",
        best.campaign.id, best.campaign.scope.value, best.campaign.priority,
        best.benefit, user.id, len(ranked),
    )
    return best
