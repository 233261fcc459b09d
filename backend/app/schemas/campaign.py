from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from app.models.campaign import CampaignScope, CampaignStatus


class CampaignMetadataResponse(BaseModel):
    """Public campaign fields, enough for banners and listings"""
    id: int
    name: str
    description: Optional[str] = None
    scope: CampaignScope
    status: CampaignStatus
    priority: int
    start_date: datetime
    end_date: datetime

    class Config:
        from_attributes = True
