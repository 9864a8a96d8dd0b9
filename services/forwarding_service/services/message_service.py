"""Per-order messaging with admin moderation of attachments.

Text-only messages are delivered immediately. Anything carrying an
attachment waits in ``pending`` until an admin approves or rejects it; until
then only its sender (and admins) can see it.
"""

import uuid
from dataclasses import dataclass
from typing import Optional, Sequence

from libs.auth.models import AuthUser, Role
from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.forwarding_service.errors import (
    IllegalTransition,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from services.forwarding_service.models import (
    Message,
    MessageAttachment,
    MessageStatus,
    ModerationDecision,
    Offer,
    Order,
)
from services.forwarding_service.schemas.message import AttachmentIn
from services.forwarding_service.services import order_service
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

settings = get_settings()


@dataclass(frozen=True)
class ThreadMessage:
    message: Message
    attachments: list[MessageAttachment]


async def posting_admin_ids(db: AsyncSession, order_id: uuid.UUID) -> set[str]:
    """Admins who have written on the order's thread and can be answered."""
    result = await db.execute(
        select(Message.sender_id)
        .where(Message.order_id == order_id, Message.sender_role == Role.ADMIN.value)
        .distinct()
    )
    return set(result.scalars().all())


async def order_party_ids(db: AsyncSession, order: Order) -> set[str]:
    """The requester, every shipper who has bid, and admins who have posted."""
    result = await db.execute(
        select(Offer.shipper_id).where(Offer.order_id == order.id).distinct()
    )
    return {
        order.requester_id,
        *result.scalars().all(),
        *await posting_admin_ids(db, order.id),
    }


def _check_attachments(attachments: Sequence[AttachmentIn]) -> None:
    if len(attachments) > settings.MAX_ATTACHMENTS_PER_MESSAGE:
        raise ValidationError(
            f"At most {settings.MAX_ATTACHMENTS_PER_MESSAGE} attachments per message"
        )
    allowed = set(settings.ALLOWED_ATTACHMENT_MIME_TYPES)
    rejected = sorted({a.mime_type for a in attachments if a.mime_type not in allowed})
    if rejected:
        raise ValidationError(
            "Attachment type not allowed", mime_types=",".join(rejected)
        )


async def send(
    db: AsyncSession,
    *,
    order_id: uuid.UUID,
    actor: AuthUser,
    receiver_id: str,
    text: Optional[str] = None,
    attachments: Sequence[AttachmentIn] = (),
) -> Message:
    text = (text or "").strip() or None
    if text is None and not attachments:
        raise ValidationError("A message needs text or at least one attachment")
    _check_attachments(attachments)

    order = await order_service.get_order(db, order_id)
    parties = await order_party_ids(db, order)
    if not actor.is_admin and actor.user_id not in parties:
        raise PermissionDenied("Only parties to the order can message on it")
    if receiver_id == actor.user_id:
        raise ValidationError("Cannot send a message to yourself")
    if receiver_id not in parties:
        raise ValidationError(
            "Receiver is not a party to this order", receiver_id=receiver_id
        )
    # Shippers bidding on the same order never talk to each other directly.
    if not actor.is_admin and order.requester_id not in (actor.user_id, receiver_id):
        if receiver_id not in await posting_admin_ids(db, order.id):
            raise PermissionDenied(
                "Messages must be to or from the requester or an admin"
            )

    message = Message(
        order_id=order.id,
        sender_id=actor.user_id,
        sender_role=Role.ADMIN.value if actor.is_admin else actor.role.value,
        receiver_id=receiver_id,
        text=text,
        status=MessageStatus.PENDING if attachments else MessageStatus.APPROVED,
    )
    message.attachments = [
        MessageAttachment(
            file_path=a.file_path, file_name=a.file_name, mime_type=a.mime_type
        )
        for a in attachments
    ]
    db.add(message)
    await db.commit()
    await db.refresh(message)

    logger.info(
        "Message %s on order %s from %s to %s (%s, %d attachments)",
        message.id,
        order.request_number,
        actor.user_id,
        receiver_id,
        message.status.value,
        len(attachments),
    )
    return message


async def moderate(
    db: AsyncSession,
    *,
    message_id: uuid.UUID,
    decision: ModerationDecision,
    actor: AuthUser,
) -> Message:
    if not actor.is_admin:
        raise PermissionDenied("Only admins can moderate messages")

    result = await db.execute(
        select(Message)
        .where(Message.id == message_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    message = result.scalar_one_or_none()
    if message is None:
        raise NotFound(f"Message {message_id} not found")
    if message.status != MessageStatus.PENDING:
        raise IllegalTransition(
            f"Message is already {message.status.value}",
            message_status=message.status.value,
        )

    message.status = MessageStatus(decision.value)
    message.moderated_by = actor.user_id
    message.moderated_at = utc_now()
    await db.commit()
    await db.refresh(message)

    logger.info(
        "Message %s %s by %s", message.id, message.status.value, actor.user_id
    )
    return message


def is_visible(message: Message, viewer: AuthUser) -> bool:
    """Whether ``viewer`` may see ``message`` in the thread."""
    if viewer.is_admin:
        return True
    if viewer.user_id not in (message.sender_id, message.receiver_id):
        return False
    return message.status != MessageStatus.PENDING or message.sender_id == viewer.user_id


def visible_attachments(message: Message, viewer: AuthUser) -> list[MessageAttachment]:
    """Attachments of a rejected message are withheld from its counterpart."""
    if (
        message.status == MessageStatus.REJECTED
        and not viewer.is_admin
        and message.sender_id != viewer.user_id
    ):
        return []
    return list(message.attachments)


async def visible_thread(
    db: AsyncSession, *, order_id: uuid.UUID, viewer: AuthUser
) -> list[ThreadMessage]:
    """The order's messages as ``viewer`` is allowed to see them, oldest first."""
    order = await order_service.get_order(db, order_id)
    if not viewer.is_admin and viewer.user_id not in await order_party_ids(db, order):
        raise NotFound(f"Order {order_id} not found")

    result = await db.execute(
        select(Message)
        .where(Message.order_id == order_id)
        .order_by(Message.created_at, Message.id)
    )
    return [
        ThreadMessage(message, visible_attachments(message, viewer))
        for message in result.scalars().all()
        if is_visible(message, viewer)
    ]


async def moderation_queue(
    db: AsyncSession, *, actor: AuthUser, skip: int = 0, limit: int = 50
) -> tuple[list[Message], int]:
    if not actor.is_admin:
        raise PermissionDenied("Only admins can view the moderation queue")
    query = select(Message).where(Message.status == MessageStatus.PENDING)
    total = (
        await db.execute(select(func.count()).select_from(query.subquery()))
    ).scalar_one()
    result = await db.execute(
        query.order_by(Message.created_at).offset(skip).limit(limit)
    )
    return list(result.scalars().all()), total
