from fastapi import APIRouter, Depends
from sqlmodel import Session
from app.api.deps import get_db, get_current_user, resolve_tenancy
from app.models.user import User
from app.schemas.checkout import CheckoutRequest, CheckoutResponse
from app.services.checkout import build_checkout_response, checkout, preview

router = APIRouter(prefix="/api/checkout", tags=["checkout"])


@router.post("/preview", response_model=CheckoutResponse)
def preview_campaign(
    data: CheckoutRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Estimated campaign savings for an order, nothing is recorded"""
    outcome = preview(
        db,
        current_user,
        data.order,
        tenancy_id=resolve_tenancy(data.tenancy_id, current_user),
        trigger_type=data.trigger_type,
    )
    return build_checkout_response(outcome)


@router.post("/apply", response_model=CheckoutResponse)
def apply_campaign_to_order(
    data: CheckoutRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Apply and record the best campaign for a confirmed order"""
    outcome = checkout(
        db,
        current_user,
        data.order,
        tenancy_id=resolve_tenancy(data.tenancy_id, current_user),
        trigger_type=data.trigger_type,
        order_ref=data.order_ref,
    )
    return build_checkout_response(outcome)
