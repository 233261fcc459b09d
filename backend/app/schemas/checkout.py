from pydantic import BaseModel, Field
from typing import Optional, List, Set, Union
from decimal import Decimal
from app.models.campaign import CampaignScope
from app.models.values import PromotionKind, TriggerType


class OrderItemSnapshot(BaseModel):
    service: Optional[str] = None
    quantity: int = Field(default=1, ge=1)
    price: Decimal = Field(default=Decimal("0"), ge=0)


class OrderSnapshot(BaseModel):
    total: Decimal = Field(ge=0)
    items: List[OrderItemSnapshot] = []
    service_types: List[str] = []

    @property
    def item_quantity(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def services(self) -> Set[str]:
        found = {str(item.service) for item in self.items if item.service}
        found.update(str(s) for s in self.service_types)
        return found


class CheckoutRequest(BaseModel):
    # Defaults to the shopper's own tenancy
    tenancy_id: Optional[int] = None
    trigger_type: TriggerType = TriggerType.ORDER_CHECKOUT
    order: OrderSnapshot
    order_ref: Optional[str] = None


class AppliedCampaignResponse(BaseModel):
    id: int
    name: str
    scope: CampaignScope
    description: Optional[str] = None


class BreakdownLineResponse(BaseModel):
    type: PromotionKind
    promotion_id: Optional[int] = None
    amount: Decimal
    description: str


class SideEffectResponse(BaseModel):
    kind: str
    value: Union[int, Decimal]
    promotion_id: Optional[int] = None
    description: Optional[str] = None


class StackingResponse(BaseModel):
    with_coupons: bool
    with_discounts: bool
    with_loyalty: bool
    priority: int


class CheckoutResponse(BaseModel):
    applied_campaign: Optional[AppliedCampaignResponse] = None
    order_total: Decimal
    total_discount: Decimal
    final_amount: Decimal
    breakdown: List[BreakdownLineResponse] = []
    side_effects: List[SideEffectResponse] = []
    stacking: Optional[StackingResponse] = None
    recorded: bool = False
    message: str
