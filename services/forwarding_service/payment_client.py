"""
Payment gateway client.

The processor is opaque to this service: we ask it to capture an amount for
an order reference and it answers with its own reference, a status and the
fee it kept. Amounts travel in integer cents.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

import httpx
from libs.common.config import get_settings
from libs.common.currency import from_cents, to_cents
from libs.common.logging import get_logger

logger = get_logger(__name__)

settings = get_settings()


@dataclass
class CaptureResult:
    """Result of a capture request."""

    processor_ref: str
    status: str  # succeeded, pending, failed
    amount: Decimal
    fee: Optional[Decimal] = None

    @property
    def succeeded(self) -> bool:
        return self.status == "succeeded"


class PaymentGatewayError(Exception):
    """The gateway rejected the request, errored or did not answer in time."""

    def __init__(
        self, message: str, status_code: int = None, response_data: dict = None
    ):
        self.message = message
        self.status_code = status_code
        self.response_data = response_data or {}
        super().__init__(message)


class PaymentGatewayClient:
    """Async client for the payment processor's capture API."""

    def __init__(
        self,
        base_url: str = None,
        secret_key: str = None,
        timeout: float = None,
        transport: httpx.AsyncBaseTransport = None,
    ):
        self.base_url = (base_url or settings.PAYMENT_GATEWAY_URL).rstrip("/")
        self.secret_key = secret_key or settings.PAYMENT_GATEWAY_SECRET_KEY
        if not self.secret_key:
            raise ValueError("PAYMENT_GATEWAY_SECRET_KEY is required")
        self.timeout = timeout or settings.PAYMENT_CAPTURE_TIMEOUT_SECONDS
        self._transport = transport
        self._headers = {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        endpoint: str,
        json_data: dict = None,
        idempotency_key: str = None,
    ) -> dict:
        url = f"{self.base_url}{endpoint}"
        headers = dict(self._headers)
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.request(
                    method=method, url=url, headers=headers, json=json_data
                )
        except httpx.TimeoutException as e:
            logger.error("Payment gateway timed out on %s %s", method, endpoint)
            raise PaymentGatewayError("Payment gateway timed out") from e
        except httpx.HTTPError as e:
            logger.error("Payment gateway unreachable on %s %s: %s", method, endpoint, e)
            raise PaymentGatewayError(f"Payment gateway unreachable: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {"message": response.text}

        if not response.is_success:
            logger.error(
                "Payment gateway error: %s - %s", response.status_code, data
            )
            raise PaymentGatewayError(
                message=data.get("message", "Unknown payment gateway error"),
                status_code=response.status_code,
                response_data=data,
            )
        return data

    async def capture(
        self,
        *,
        reference: str,
        amount: Decimal,
        currency: str = None,
        idempotency_key: str = None,
    ) -> CaptureResult:
        """Capture ``amount`` for an order reference.

        Repeating a call with the same ``idempotency_key`` returns the original
        capture instead of charging again.
        """
        data = await self._request(
            "POST",
            "/captures",
            json_data={
                "reference": reference,
                "amount": to_cents(amount),
                "currency": currency or settings.PAYMENT_CURRENCY,
            },
            idempotency_key=idempotency_key,
        )
        fee = data.get("fee")
        result = CaptureResult(
            processor_ref=data["id"],
            status=data.get("status", "pending"),
            amount=from_cents(data.get("amount", to_cents(amount))),
            fee=from_cents(fee) if fee is not None else None,
        )
        logger.info(
            "Gateway capture %s for %s: %s", result.processor_ref, reference, result.status
        )
        return result


def get_payment_gateway() -> PaymentGatewayClient:
    """FastAPI dependency; overridden in tests."""
    return PaymentGatewayClient()
