import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlmodel import Session

from app.core.errors import InconsistentConfiguration
from app.models.campaign import Campaign, CampaignStatus

logger = logging.getLogger(__name__)


def ensure_consistent(campaign: Campaign) -> None:
    """Campaigns breaking a model invariant must never be applied"""
    problems = campaign.consistency_problems()
    if problems:
        logger.error("Campaign #%s is misconfigured: %s", campaign.id, "; ".join(problems))
        raise InconsistentConfiguration(
            f"Campaign {campaign.id} is misconfigured: {'; '.join(problems)}",
            campaign_id=campaign.id,
            problems=problems,
        )


def expire_campaigns(db: Session, now: Optional[datetime] = None) -> int:
    """Active and paused campaigns past their end date become COMPLETED"""
    now = now or datetime.utcnow()
    stmt = (
        update(Campaign)
        .where(
            Campaign.status.in_([CampaignStatus.ACTIVE, CampaignStatus.PAUSED]),
            Campaign.end_date <= now,
        )
        .values(status=CampaignStatus.COMPLETED, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    expired = db.execute(stmt).rowcount
    db.commit()
    if expired:
        logger.info("Completed %d expired campaigns", expired)
    return expired
