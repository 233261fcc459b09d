from fastapi import APIRouter, Depends
from sqlmodel import Session
from typing import List
from app.api.deps import get_db, get_current_user, resolve_tenancy
from app.models.user import User
from app.models.values import RuleType
from app.schemas.discount import (
    ApplicableDiscountsRequest,
    ApplicableDiscountsResponse,
    DiscountSummaryResponse,
)
from app.services.discounts import active_discounts, applicable_discounts

router = APIRouter(prefix="/api/discounts", tags=["discounts"])


@router.get("/active", response_model=List[DiscountSummaryResponse])
def list_active_discounts(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Active discounts for storefront display"""
    tenancy_id = resolve_tenancy(None, current_user)
    result = []
    for discount in active_discounts(db, tenancy_id):
        # Show the first rule only
        rule = discount.rule_list[0] if discount.rules else None
        result.append({
            "id": discount.id,
            "name": discount.name,
            "description": discount.description,
            "type": rule.type if rule else RuleType.PERCENTAGE,
            "value": rule.value if rule else 0,
            "conditions": rule.conditions if rule else None,
            "valid_until": discount.end_date,
        })
    return result


@router.post("/applicable", response_model=ApplicableDiscountsResponse)
def list_applicable_discounts(
    data: ApplicableDiscountsRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Discounts that apply to an order, honouring stacking rules"""
    tenancy_id = resolve_tenancy(None, current_user)
    evaluation = applicable_discounts(db, tenancy_id, data.order, current_user)
    return {
        "applicable_discounts": [
            {
                "discount_id": line.discount.id,
                "name": line.discount.name,
                "description": line.description,
                "amount": line.amount,
                "priority": line.discount.priority,
                "can_stack_with_coupons": line.discount.can_stack_with_coupons,
                "can_stack_with_other_discounts": line.discount.can_stack_with_other_discounts,
            }
            for line in evaluation.lines
        ],
        "total_discount": evaluation.total_discount,
        "final_amount": evaluation.final_amount,
    }
