import asyncio
import json
import os
from typing import AsyncGenerator

# Settings are read at import time, so the test environment has to be in place
# before anything under libs/ or services/ is imported.
from dotenv import load_dotenv

env_test_path = os.path.join(os.path.dirname(__file__), "..", ".env.test")
if os.path.exists(env_test_path):
    load_dotenv(env_test_path, override=True)

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("PAYMENT_WEBHOOK_SECRET", "test-webhook-secret")
os.environ.setdefault("PAYMENT_GATEWAY_SECRET_KEY", "sk_test_forwarding")
os.environ["RATE_LIMIT_ENABLED"] = "false"

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from libs.common.config import get_settings  # noqa: E402
from libs.db.base import Base  # noqa: E402
from services.forwarding_service import models as _models  # noqa: E402,F401
from services.forwarding_service.app.main import app  # noqa: E402
from services.forwarding_service.payment_client import (  # noqa: E402
    PaymentGatewayClient,
    get_payment_gateway,
)

settings = get_settings()


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """
    A fresh SQLite database file per test.

    A file (rather than ``:memory:``) lets several sessions see the same data,
    which the concurrency tests rely on.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'forwarding.db'}", future=True
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """
    Yield a database session bound to the per-test database.
    """
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Payment processor
# ---------------------------------------------------------------------------


class FakeProcessor:
    """In-process stand-in for the payment processor's capture API.

    Served through ``httpx.MockTransport`` so the real gateway client does
    the encoding and error mapping. A repeated ``Idempotency-Key`` replays the
    first successful answer. Clearing ``gate`` holds captures in flight until
    it is set again.
    """

    def __init__(self):
        self.status = "succeeded"
        self.fee_cents = None
        self.error_status = None
        self.requests: list[dict] = []
        self.idempotency_keys: list[str] = []
        self.received = asyncio.Event()
        self.gate = asyncio.Event()
        self.gate.set()
        self._replies: dict[str, dict] = {}

    async def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        key = request.headers.get("Idempotency-Key")
        self.requests.append(body)
        self.idempotency_keys.append(key)
        self.received.set()
        await self.gate.wait()
        if key in self._replies:
            return httpx.Response(200, json=self._replies[key])
        if self.error_status is not None:
            return httpx.Response(
                self.error_status, json={"message": "processor unavailable"}
            )
        data = {
            "id": f"cap_{len(self.requests)}_{body['reference']}",
            "status": self.status,
            "amount": body["amount"],
        }
        if self.fee_cents is not None:
            data["fee"] = self.fee_cents
        if key and self.status != "failed":
            self._replies[key] = data
        return httpx.Response(200, json=data)

    def client(self) -> PaymentGatewayClient:
        return PaymentGatewayClient(
            base_url="https://processor.test",
            secret_key="sk_test_forwarding",
            transport=httpx.MockTransport(self.handler),
        )


@pytest.fixture
def processor() -> FakeProcessor:
    return FakeProcessor()


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(session_factory, processor) -> AsyncGenerator[AsyncClient, None]:
    """
    Yield an AsyncClient with the app and overridden DB and gateway dependencies.

    Each request gets its own session, like production.
    """
    from libs.db.session import get_async_db

    async def _get_test_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_async_db] = _get_test_db
    app.dependency_overrides[get_payment_gateway] = processor.client

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
