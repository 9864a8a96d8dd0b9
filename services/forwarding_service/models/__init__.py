"""Forwarding Service models package.

Re-exports all models and enums so that:
  - ``from services.forwarding_service.models import Order`` works
  - Alembic env.py sees every table on import

When adding a new model, add both its import and its __all__ entry.
"""

from services.forwarding_service.models.catalog import (  # noqa: F401
    AddonService,
    PaymentPlan,
)
from services.forwarding_service.models.customs import CustomsDeclaration  # noqa: F401
from services.forwarding_service.models.enums import (  # noqa: F401
    ACTIVE_OFFER_STATUSES,
    ChargeType,
    LedgerAction,
    LedgerEntryType,
    LedgerStatus,
    MessageStatus,
    ModerationDecision,
    OfferAction,
    OfferDecision,
    OfferStatus,
    OrderStatus,
    PlanRole,
    ServiceType,
    TrackingStatus,
)
from services.forwarding_service.models.message import (  # noqa: F401
    Message,
    MessageAttachment,
)
from services.forwarding_service.models.offer import Offer  # noqa: F401
from services.forwarding_service.models.order import (  # noqa: F401
    Order,
    OrderLineItem,
    OrderServiceSelection,
    OrderSurcharge,
)
from services.forwarding_service.models.tracking import OrderStatusStep  # noqa: F401
from services.forwarding_service.models.wallet import (  # noqa: F401
    LedgerAuditLog,
    WalletTransaction,
)

__all__ = [
    # Enums
    "ACTIVE_OFFER_STATUSES",
    "ChargeType",
    "LedgerAction",
    "LedgerEntryType",
    "LedgerStatus",
    "MessageStatus",
    "ModerationDecision",
    "OfferAction",
    "OfferDecision",
    "OfferStatus",
    "OrderStatus",
    "PlanRole",
    "ServiceType",
    "TrackingStatus",
    # Catalog
    "AddonService",
    "PaymentPlan",
    # Orders
    "Order",
    "OrderLineItem",
    "OrderServiceSelection",
    "OrderSurcharge",
    "Offer",
    "OrderStatusStep",
    # Ledger
    "WalletTransaction",
    "LedgerAuditLog",
    # Messaging
    "Message",
    "MessageAttachment",
    # Customs
    "CustomsDeclaration",
]
