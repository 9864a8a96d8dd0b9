"""Unit tests for order messaging and attachment moderation."""

import pytest
from services.forwarding_service.errors import (
    IllegalTransition,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from services.forwarding_service.models import MessageStatus, ModerationDecision
from services.forwarding_service.schemas import AttachmentIn
from services.forwarding_service.services import message_service
from tests.factories import (
    create_order,
    make_admin,
    make_shipper,
    make_shopper,
    place_offer,
)

INVOICE = AttachmentIn(
    file_path="orders/invoices/inv-1.pdf", file_name="inv-1.pdf", mime_type="application/pdf"
)


async def _thread_parties(db):
    """An order with one bidding shipper. Returns ``(order, shopper, shipper)``."""
    shopper = make_shopper()
    shipper = make_shipper()
    order = await create_order(db, shopper)
    await place_offer(db, order, shipper)
    return order, shopper, shipper


def _ids(thread):
    return [item.message.id for item in thread]


# ---------------------------------------------------------------------------
# send
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_text_message_is_delivered_immediately(db_session):
    order, shopper, shipper = await _thread_parties(db_session)

    message = await message_service.send(
        db_session,
        order_id=order.id,
        actor=shopper,
        receiver_id=shipper.user_id,
        text="  Can you ship by Friday?  ",
    )

    assert message.status == MessageStatus.APPROVED
    assert message.text == "Can you ship by Friday?"
    thread = await message_service.visible_thread(
        db_session, order_id=order.id, viewer=shipper
    )
    assert _ids(thread) == [message.id]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_attachment_holds_message_for_moderation(db_session):
    order, shopper, shipper = await _thread_parties(db_session)

    message = await message_service.send(
        db_session,
        order_id=order.id,
        actor=shipper,
        receiver_id=shopper.user_id,
        text="Invoice attached",
        attachments=[INVOICE],
    )

    assert message.status == MessageStatus.PENDING
    as_receiver = await message_service.visible_thread(
        db_session, order_id=order.id, viewer=shopper
    )
    as_sender = await message_service.visible_thread(
        db_session, order_id=order.id, viewer=shipper
    )
    as_admin = await message_service.visible_thread(
        db_session, order_id=order.id, viewer=make_admin()
    )
    assert as_receiver == []
    assert _ids(as_sender) == [message.id]
    assert _ids(as_admin) == [message.id]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_approved_attachment_reaches_receiver(db_session):
    order, shopper, shipper = await _thread_parties(db_session)
    message = await message_service.send(
        db_session,
        order_id=order.id,
        actor=shipper,
        receiver_id=shopper.user_id,
        attachments=[INVOICE],
    )

    moderated = await message_service.moderate(
        db_session,
        message_id=message.id,
        decision=ModerationDecision.APPROVED,
        actor=make_admin(),
    )

    assert moderated.status == MessageStatus.APPROVED
    assert moderated.moderated_at is not None
    thread = await message_service.visible_thread(
        db_session, order_id=order.id, viewer=shopper
    )
    assert len(thread) == 1
    assert [a.file_name for a in thread[0].attachments] == ["inv-1.pdf"]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_rejected_attachment_is_withheld_from_receiver(db_session):
    order, shopper, shipper = await _thread_parties(db_session)
    message = await message_service.send(
        db_session,
        order_id=order.id,
        actor=shipper,
        receiver_id=shopper.user_id,
        text="See attached",
        attachments=[INVOICE],
    )
    await message_service.moderate(
        db_session,
        message_id=message.id,
        decision=ModerationDecision.REJECTED,
        actor=make_admin(),
    )

    as_receiver = await message_service.visible_thread(
        db_session, order_id=order.id, viewer=shopper
    )
    as_sender = await message_service.visible_thread(
        db_session, order_id=order.id, viewer=shipper
    )

    assert as_receiver[0].message.text == "See attached"
    assert as_receiver[0].attachments == []
    assert len(as_sender[0].attachments) == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_empty_message_is_rejected(db_session):
    order, shopper, shipper = await _thread_parties(db_session)

    with pytest.raises(ValidationError):
        await message_service.send(
            db_session,
            order_id=order.id,
            actor=shopper,
            receiver_id=shipper.user_id,
            text="   ",
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_disallowed_attachment_type_is_rejected(db_session):
    order, shopper, shipper = await _thread_parties(db_session)
    script = AttachmentIn(file_path="x/run.sh", mime_type="application/x-sh")

    with pytest.raises(ValidationError) as exc_info:
        await message_service.send(
            db_session,
            order_id=order.id,
            actor=shopper,
            receiver_id=shipper.user_id,
            attachments=[script],
        )
    assert exc_info.value.details["mime_types"] == "application/x-sh"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_too_many_attachments_is_rejected(db_session):
    order, shopper, shipper = await _thread_parties(db_session)

    with pytest.raises(ValidationError):
        await message_service.send(
            db_session,
            order_id=order.id,
            actor=shopper,
            receiver_id=shipper.user_id,
            attachments=[INVOICE] * 6,
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_outsider_cannot_message(db_session):
    order, shopper, _ = await _thread_parties(db_session)

    with pytest.raises(PermissionDenied):
        await message_service.send(
            db_session,
            order_id=order.id,
            actor=make_shipper(),
            receiver_id=shopper.user_id,
            text="Hello",
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_receiver_must_be_a_party(db_session):
    order, shopper, _ = await _thread_parties(db_session)

    with pytest.raises(ValidationError):
        await message_service.send(
            db_session,
            order_id=order.id,
            actor=shopper,
            receiver_id="shipper-nobody",
            text="Hello",
        )
    with pytest.raises(ValidationError):
        await message_service.send(
            db_session,
            order_id=order.id,
            actor=shopper,
            receiver_id=shopper.user_id,
            text="Note to self",
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_competing_shippers_cannot_message_each_other(db_session):
    order, _, shipper = await _thread_parties(db_session)
    rival = make_shipper()
    await place_offer(db_session, order, rival, "35.00")

    with pytest.raises(PermissionDenied):
        await message_service.send(
            db_session,
            order_id=order.id,
            actor=rival,
            receiver_id=shipper.user_id,
            text="I can undercut them",
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_shipper_can_answer_an_admin_who_posted(db_session):
    order, _, shipper = await _thread_parties(db_session)
    admin = make_admin()

    with pytest.raises(ValidationError):
        await message_service.send(
            db_session,
            order_id=order.id,
            actor=shipper,
            receiver_id=admin.user_id,
            text="Anyone there?",
        )

    await message_service.send(
        db_session,
        order_id=order.id,
        actor=admin,
        receiver_id=shipper.user_id,
        text="Please confirm the pickup date",
    )
    reply = await message_service.send(
        db_session,
        order_id=order.id,
        actor=shipper,
        receiver_id=admin.user_id,
        text="Monday",
    )

    assert reply.receiver_id == admin.user_id
    assert reply.sender_role == "shipper"
    thread = await message_service.visible_thread(
        db_session, order_id=order.id, viewer=admin
    )
    assert [item.message.text for item in thread] == [
        "Please confirm the pickup date",
        "Monday",
    ]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_outsider_cannot_read_thread(db_session):
    order, _, _ = await _thread_parties(db_session)

    with pytest.raises(NotFound):
        await message_service.visible_thread(
            db_session, order_id=order.id, viewer=make_shopper()
        )


# ---------------------------------------------------------------------------
# moderation
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_only_admins_moderate(db_session):
    order, shopper, shipper = await _thread_parties(db_session)
    message = await message_service.send(
        db_session,
        order_id=order.id,
        actor=shipper,
        receiver_id=shopper.user_id,
        attachments=[INVOICE],
    )

    with pytest.raises(PermissionDenied):
        await message_service.moderate(
            db_session,
            message_id=message.id,
            decision=ModerationDecision.APPROVED,
            actor=shopper,
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_message_is_moderated_once(db_session):
    order, shopper, shipper = await _thread_parties(db_session)
    message = await message_service.send(
        db_session,
        order_id=order.id,
        actor=shipper,
        receiver_id=shopper.user_id,
        attachments=[INVOICE],
    )
    admin = make_admin()
    await message_service.moderate(
        db_session,
        message_id=message.id,
        decision=ModerationDecision.APPROVED,
        actor=admin,
    )

    with pytest.raises(IllegalTransition):
        await message_service.moderate(
            db_session,
            message_id=message.id,
            decision=ModerationDecision.REJECTED,
            actor=admin,
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_moderation_queue_lists_pending_only(db_session):
    order, shopper, shipper = await _thread_parties(db_session)
    held = await message_service.send(
        db_session,
        order_id=order.id,
        actor=shipper,
        receiver_id=shopper.user_id,
        attachments=[INVOICE],
    )
    await message_service.send(
        db_session,
        order_id=order.id,
        actor=shopper,
        receiver_id=shipper.user_id,
        text="Thanks",
    )

    queue, total = await message_service.moderation_queue(
        db_session, actor=make_admin()
    )

    assert total == 1
    assert [m.id for m in queue] == [held.id]
