"""Enums for the Forwarding Service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class ServiceType(str, enum.Enum):
    SHIP_FOR_ME = "ship_for_me"
    BUY_FOR_ME = "buy_for_me"


class OrderStatus(str, enum.Enum):
    OPEN = "open"
    OFFER_ACCEPTED = "offer_accepted"
    PAYMENT_REQUIRED = "payment_required"
    PAYMENT_COMPLETED = "payment_completed"
    IN_TRACKING = "in_tracking"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class OfferStatus(str, enum.Enum):
    PENDING = "pending"
    INPROGRESS = "inprogress"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    IGNORED = "ignored"


ACTIVE_OFFER_STATUSES = (OfferStatus.PENDING, OfferStatus.INPROGRESS)


class OfferDecision(str, enum.Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class OfferAction(str, enum.Enum):
    CANCEL = "cancel"
    PROPOSE_PRICE = "propose_price"


class ChargeType(str, enum.Enum):
    PERCENT = "percent"
    FIXED = "fixed"


class PlanRole(str, enum.Enum):
    """Who a payment plan is charged to: shopper surcharge or shipper commission."""

    SHOPPER = "shopper"
    SHIPPER = "shipper"


class LedgerEntryType(str, enum.Enum):
    CREDIT = "credit"
    DEBIT = "debit"
    COMMISSION = "commission"


class LedgerStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REVERSED = "reversed"


class LedgerAction(str, enum.Enum):
    RELEASE = "release"
    REVERSE = "reverse"
    FAIL = "fail"


class MessageStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ModerationDecision(str, enum.Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


class TrackingStatus(int, enum.Enum):
    """Fixed delivery-tracking sequence. Values are the persisted status ids."""

    PENDING = 1
    OFFER_PLACED = 2
    OFFER_ACCEPTED = 3
    PAYMENT_PENDING = 4
    RECEIVED = 5
    PROCESSING = 6
    SHIPPED = 7
    IN_TRANSIT = 8
    OUT_FOR_DELIVERY = 9
    DELIVERED = 10
    CANCELLED = 11

    @property
    def label(self) -> str:
        return TRACKING_STATUS_LABELS[self]

    @property
    def is_system(self) -> bool:
        return self in SYSTEM_TRACKING_STATUSES


TRACKING_STATUS_LABELS = {
    TrackingStatus.PENDING: "Pending",
    TrackingStatus.OFFER_PLACED: "Offer Placed",
    TrackingStatus.OFFER_ACCEPTED: "Offer Accepted",
    TrackingStatus.PAYMENT_PENDING: "Payment Pending",
    TrackingStatus.RECEIVED: "Received",
    TrackingStatus.PROCESSING: "Processing",
    TrackingStatus.SHIPPED: "Shipped",
    TrackingStatus.IN_TRANSIT: "In Transit",
    TrackingStatus.OUT_FOR_DELIVERY: "Out for Delivery",
    TrackingStatus.DELIVERED: "Delivered",
    TrackingStatus.CANCELLED: "Cancelled",
}

# Appended by the service as the order moves; never selectable by a shipper.
SYSTEM_TRACKING_STATUSES = frozenset(
    {
        TrackingStatus.PENDING,
        TrackingStatus.OFFER_PLACED,
        TrackingStatus.OFFER_ACCEPTED,
        TrackingStatus.PAYMENT_PENDING,
        TrackingStatus.RECEIVED,
        TrackingStatus.CANCELLED,
    }
)

TERMINAL_TRACKING_STATUSES = frozenset(
    {TrackingStatus.DELIVERED, TrackingStatus.CANCELLED}
)
