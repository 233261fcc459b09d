from .checkout import OrderSnapshot, OrderItemSnapshot, CheckoutRequest, CheckoutResponse
from .campaign import CampaignMetadataResponse
from .discount import (
    DiscountSummaryResponse,
    ApplicableDiscountsRequest,
    ApplicableDiscountsResponse,
)

__all__ = [
    "OrderSnapshot", "OrderItemSnapshot", "CheckoutRequest", "CheckoutResponse",
    "CampaignMetadataResponse",
    "DiscountSummaryResponse", "ApplicableDiscountsRequest", "ApplicableDiscountsResponse",
]
