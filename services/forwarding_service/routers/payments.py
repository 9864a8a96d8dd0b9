"""Payment processor callbacks."""

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from pydantic import ValidationError as PydanticValidationError
from services.forwarding_service.schemas import CaptureEvent
from services.forwarding_service.services import payment_service
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)
router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/capture")
async def capture_callback(
    request: Request,
    signature: str = Header(None, alias="X-Processor-Signature"),
    db: AsyncSession = Depends(get_async_db),
):
    """Signed capture notification from the payment processor.

    Redelivery of the same ``processor_ref`` is acknowledged without
    recording a second entry.
    """
    raw = await request.body()
    if not signature or not payment_service.verify_signature(raw, signature):
        logger.warning("Rejected capture callback with bad signature")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature"
        )

    try:
        event = CaptureEvent.model_validate_json(raw or b"{}")
    except PydanticValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=e.errors(include_url=False, include_context=False),
        )

    if event.status == "failed":
        txn = await payment_service.apply_capture_failure(
            db, order_id=event.order_id, processor_ref=event.processor_ref
        )
        return {
            "received": True,
            "transaction_id": str(txn.id) if txn else None,
            "status": txn.status.value if txn else None,
        }

    txn, created = await payment_service.apply_capture(
        db,
        order_id=event.order_id,
        amount=event.amount,
        processor_ref=event.processor_ref,
        processor_fee=event.processor_fee,
    )
    return {
        "received": True,
        "transaction_id": str(txn.id),
        "status": txn.status.value,
        "duplicate": not created,
    }
