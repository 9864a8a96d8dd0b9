"""Forwarding Service schemas package.

Re-exports all schemas so routers can import from one place.
When adding a new schema, add its import and __all__ entry.
"""

from services.forwarding_service.schemas.catalog import (  # noqa: F401
    AddonServiceCreate,
    AddonServiceResponse,
    AddonServiceUpdate,
    PaymentPlanCreate,
    PaymentPlanResponse,
    PaymentPlanUpdate,
)
from services.forwarding_service.schemas.customs import (  # noqa: F401
    CustomsDeclarationIn,
    CustomsDeclarationResponse,
    PartyAddressIn,
)
from services.forwarding_service.schemas.message import (  # noqa: F401
    AttachmentIn,
    AttachmentResponse,
    MessageCreate,
    MessageResponse,
    ModerationQueueResponse,
    ModerationRequest,
    ThreadResponse,
)
from services.forwarding_service.schemas.offer import (  # noqa: F401
    OfferDecisionRequest,
    OfferListResponse,
    OfferRespond,
    OfferResponse,
    OfferSubmit,
)
from services.forwarding_service.schemas.order import (  # noqa: F401
    LineItemIn,
    LineItemResponse,
    OrderCreate,
    OrderDetailResponse,
    OrderListResponse,
    OrderResponse,
    OrderServiceResponse,
    OrderStatusUpdate,
    QuoteRequest,
    RouteIn,
    SurchargeResponse,
    TotalsResponse,
)
from services.forwarding_service.schemas.payment import (  # noqa: F401
    CaptureEvent,
    CheckoutResponse,
)
from services.forwarding_service.schemas.tracking import (  # noqa: F401
    TimelineEntryResponse,
    TimelineResponse,
    TrackingStatusResponse,
    TrackingStepCreate,
    TrackingStepResponse,
)
from services.forwarding_service.schemas.wallet import (  # noqa: F401
    LedgerMovementResponse,
    PoolsResponse,
    TransactionListResponse,
    WalletSummaryResponse,
    WalletTransactionResponse,
)

__all__ = [
    # Catalog
    "AddonServiceCreate",
    "AddonServiceResponse",
    "AddonServiceUpdate",
    "PaymentPlanCreate",
    "PaymentPlanResponse",
    "PaymentPlanUpdate",
    # Customs
    "CustomsDeclarationIn",
    "CustomsDeclarationResponse",
    "PartyAddressIn",
    # Messages
    "AttachmentIn",
    "AttachmentResponse",
    "MessageCreate",
    "MessageResponse",
    "ModerationQueueResponse",
    "ModerationRequest",
    "ThreadResponse",
    # Offers
    "OfferDecisionRequest",
    "OfferListResponse",
    "OfferRespond",
    "OfferResponse",
    "OfferSubmit",
    # Orders
    "LineItemIn",
    "LineItemResponse",
    "OrderCreate",
    "OrderDetailResponse",
    "OrderListResponse",
    "OrderResponse",
    "OrderServiceResponse",
    "OrderStatusUpdate",
    "QuoteRequest",
    "RouteIn",
    "SurchargeResponse",
    "TotalsResponse",
    # Payments
    "CaptureEvent",
    "CheckoutResponse",
    # Tracking
    "TimelineEntryResponse",
    "TimelineResponse",
    "TrackingStatusResponse",
    "TrackingStepCreate",
    "TrackingStepResponse",
    # Wallet
    "LedgerMovementResponse",
    "PoolsResponse",
    "TransactionListResponse",
    "WalletSummaryResponse",
    "WalletTransactionResponse",
]
