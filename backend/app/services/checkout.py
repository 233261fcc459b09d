import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlmodel import Session

from app.core.config import settings
from app.core.errors import LedgerConflict
from app.core.money import round_money
from app.models.campaign import CampaignScope, CampaignUsage
from app.models.user import User
from app.models.values import TriggerType
from app.schemas.checkout import OrderSnapshot
from app.services.benefits import ApplicationResult
from app.services.ledger import commit_usage
from app.services.rules import validate_order
from app.services.selector import Candidate, select_campaign, tenancy_zone

logger = logging.getLogger(__name__)


@dataclass
class CheckoutOutcome:
    candidate: Optional[Candidate]
    result: ApplicationResult
    usage: Optional[CampaignUsage] = None
    attempts: int = 1

    @property
    def recorded(self) -> bool:
        return self.usage is not None


def _no_campaign(order: OrderSnapshot, attempts: int = 1) -> CheckoutOutcome:
    result = ApplicationResult(order_total=round_money(order.total)).finalize()
    return CheckoutOutcome(candidate=None, result=result, attempts=attempts)


def preview(
    db: Session,
    user: User,
    order: OrderSnapshot,
    *,
    tenancy_id: int,
    trigger_type: TriggerType = TriggerType.ORDER_CHECKOUT,
    now: Optional[datetime] = None,
) -> CheckoutOutcome:
    """Selection and application only, the ledger is never touched"""
    validate_order(order)
    candidate = select_campaign(db, tenancy_id, trigger_type, user, order, now=now)
    if candidate is None:
        return _no_campaign(order)
    return CheckoutOutcome(candidate=candidate, result=candidate.result)


def checkout(
    db: Session,
    user: User,
    order: OrderSnapshot,
    *,
    tenancy_id: int,
    trigger_type: TriggerType = TriggerType.ORDER_CHECKOUT,
    order_ref: Optional[str] = None,
    now: Optional[datetime] = None,
    max_attempts: Optional[int] = None,
) -> CheckoutOutcome:
    """
    Select, apply and record a campaign for a confirmed order.

    A campaign that loses a ledger race is dropped and selection runs again,
    so the shopper may fall through to the next-best offer. When attempts
    run out the order goes ahead with no campaign: a discount is only
    reported once it has been durably recorded.
    """
    validate_order(order)
    max_attempts = max_attempts or settings.CHECKOUT_MAX_ATTEMPTS
    tz = tenancy_zone(db, tenancy_id)
    lost = set()

    for attempt in range(1, max_attempts + 1):
        candidate = select_campaign(
            db, tenancy_id, trigger_type, user, order, now=now, exclude_ids=lost
        )
        if candidate is None:
            return _no_campaign(order, attempts=attempt)

        campaign_id = candidate.campaign.id
        try:
            usage = commit_usage(
                db,
                campaign_id,
                user_id=user.id,
                discount_amount=candidate.result.total_discount,
                order_total=order.total,
                applied_records=candidate.result.applied_records,
                order_ref=order_ref,
                now=now,
                tz=tz,
            )
        except LedgerConflict as exc:
            logger.warning(
                "Attempt %d: campaign #%s lost at commit (%s), re-running selection",
                attempt, campaign_id, exc.code,
            )
            lost.add(campaign_id)
            continue

        return CheckoutOutcome(candidate=candidate, result=candidate.result, usage=usage, attempts=attempt)

    logger.warning(
        "Giving up on campaigns for user %s after %d attempts, no discount applied",
        user.id, max_attempts,
    )
    return _no_campaign(order, attempts=max_attempts)


def build_checkout_response(outcome: CheckoutOutcome) -> dict:
    """Shape a checkout outcome for the order service"""
    result = outcome.result
    response = {
        "applied_campaign": None,
        "order_total": result.order_total,
        "total_discount": result.total_discount,
        "final_amount": result.final_amount,
        "breakdown": [
            {
                "type": line.type,
                "promotion_id": line.promotion_id,
                "amount": line.amount,
                "description": line.description,
            }
            for line in result.breakdown
        ],
        "side_effects": [
            {
                "kind": effect.kind,
                "value": effect.value,
                "promotion_id": effect.promotion_id,
                "description": effect.description,
            }
            for effect in result.side_effects
        ],
        "stacking": None,
        "recorded": outcome.recorded,
        "message": "No applicable campaigns found",
    }

    if outcome.candidate is None:
        return response

    campaign = outcome.candidate.campaign
    label = "Local Offer" if campaign.scope == CampaignScope.TENANT else "Platform Offer"
    response.update({
        "applied_campaign": {
            "id": campaign.id,
            "name": campaign.name,
            "scope": campaign.scope,
            "description": campaign.description,
        },
        "stacking": {
            "with_coupons": campaign.stack_with_coupons,
            "with_discounts": campaign.stack_with_discounts,
            "with_loyalty": campaign.stack_with_loyalty,
            "priority": campaign.stacking_priority,
        },
        "message": f"Campaign Applied: {campaign.name} ({label}) - You saved {result.total_discount}",
    })
    if not outcome.recorded:
        response["message"] = f"Estimated savings with {campaign.name} ({label}): {result.total_discount}"
    return response
