import logging
from typing import Dict, Iterable, Optional, Tuple, Union

from sqlmodel import Session, select

from app.models.campaign import Campaign
from app.models.coupon import Coupon
from app.models.discount import Discount
from app.models.loyalty import LoyaltyProgram
from app.models.values import PromotionKind, PromotionLink

logger = logging.getLogger(__name__)

PromotionRecord = Union[Discount, Coupon, LoyaltyProgram]

PROMOTION_MODELS = {
    PromotionKind.DISCOUNT: Discount,
    PromotionKind.COUPON: Coupon,
    PromotionKind.LOYALTY_POINTS: LoyaltyProgram,
}


class PromotionLookup:
    """
    Resolves the (kind, id) references a campaign holds to promotion records.

    Read-only. Records are cached for the lifetime of one lookup, so a
    checkout resolves every referenced promotion at most once.
    """

    def __init__(self, db: Session):
        self.db = db
        self._cache: Dict[Tuple[PromotionKind, int], Optional[PromotionRecord]] = {}

    def prefetch(self, campaigns: Iterable[Campaign]) -> None:
        wanted: Dict[PromotionKind, set] = {}
        for campaign in campaigns:
            for link in campaign.promotion_links:
                if link.type in PROMOTION_MODELS and link.promotion_id is not None:
                    if (link.type, link.promotion_id) not in self._cache:
                        wanted.setdefault(link.type, set()).add(link.promotion_id)

        for kind, ids in wanted.items():
            model = PROMOTION_MODELS[kind]
            rows = self.db.exec(select(model).where(model.id.in_(ids))).all()
            found = {row.id: row for row in rows}
            for promotion_id in ids:
                self._cache[(kind, promotion_id)] = found.get(promotion_id)

    def resolve(self, link: PromotionLink) -> Optional[PromotionRecord]:
        if link.type not in PROMOTION_MODELS or link.promotion_id is None:
            return None
        key = (link.type, link.promotion_id)
        if key not in self._cache:
            self._cache[key] = self.db.get(PROMOTION_MODELS[link.type], link.promotion_id)
        record = self._cache[key]
        if record is None:
            logger.warning("Campaign references missing %s #%s", link.type.value, link.promotion_id)
        return record
