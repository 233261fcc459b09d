from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from app.models.values import RuleConditions, RuleType
from app.schemas.checkout import OrderSnapshot


class DiscountSummaryResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    type: RuleType
    value: Decimal
    conditions: Optional[RuleConditions] = None
    valid_until: datetime


class ApplicableDiscountsRequest(BaseModel):
    order: OrderSnapshot


class ApplicableDiscountLine(BaseModel):
    discount_id: int
    name: str
    description: Optional[str] = None
    amount: Decimal
    priority: int
    can_stack_with_coupons: bool
    can_stack_with_other_discounts: bool


class ApplicableDiscountsResponse(BaseModel):
    applicable_discounts: List[ApplicableDiscountLine]
    total_discount: Decimal
    final_amount: Decimal
