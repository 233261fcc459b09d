from fastapi import APIRouter, Depends, Query
from sqlmodel import Session
from typing import List
from app.api.deps import get_db
from app.models.values import TriggerType
from app.schemas.campaign import CampaignMetadataResponse
from app.services.selector import find_active_campaigns

router = APIRouter(prefix="/api/campaigns", tags=["campaigns"])


@router.get("/active", response_model=List[CampaignMetadataResponse])
def list_active_campaigns(
    tenancy_id: int = Query(...),
    trigger_type: TriggerType = Query(TriggerType.ORDER_CHECKOUT),
    db: Session = Depends(get_db)
):
    """Running campaigns of a tenancy (public metadata only)"""
    campaigns = find_active_campaigns(db, tenancy_id, trigger_type)
    return sorted(campaigns, key=lambda c: (-c.priority, c.created_at))
