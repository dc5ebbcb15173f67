"""Pytest configuration and shared fixtures for tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from email.message import Message
from typing import Any

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from src.api.deps import get_db
from src.clients.store import ClientStore
from src.core.database import create_engine, create_tables
from src.forms.cache import InMemoryFormDataCache, RateLimiter
from src.integrations.email import EmailService
from src.integrations.form_api import FormDataService
from src.main import app
from src.orchestration.change_queue import ChangeQueue


class FakeClock:
    """Monotonic clock whose sleeps only move time forward."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class UpstreamStub:
    """Programmable httpx handler that records every request."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.body: Any = {}
        self.error: Exception | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if isinstance(self.body, (str, bytes)):
            return httpx.Response(self.status_code, content=self.body)
        return httpx.Response(self.status_code, json=self.body)


class FakeRedis:
    """Redis stand-in for the health check."""

    async def ping(self) -> bool:
        return True


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    return "asyncio"


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Sqlite-backed session factory with the full schema."""
    engine = create_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    await create_tables(engine)

    factory = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    try:
        yield factory
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as db_session:
        yield db_session


@pytest.fixture
def change_queue() -> ChangeQueue:
    return ChangeQueue()


@pytest.fixture
def store(session: AsyncSession, change_queue: ChangeQueue) -> ClientStore:
    return ClientStore(session, change_queue)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def form_api() -> UpstreamStub:
    return UpstreamStub()


@pytest.fixture
def relay() -> UpstreamStub:
    return UpstreamStub()


@pytest.fixture
def sent_mail() -> list[Message]:
    return []


@pytest_asyncio.fixture
async def form_data_service(
    form_api: UpstreamStub, clock: FakeClock
) -> AsyncGenerator[FormDataService, None]:
    service = FormDataService(
        cache=InMemoryFormDataCache(ttl_seconds=300, clock=clock),
        rate_limiter=RateLimiter(10.0, clock=clock, sleep=clock.sleep),
        http_client=httpx.AsyncClient(
            transport=httpx.MockTransport(form_api),
            base_url="https://forms.test",
        ),
    )
    try:
        yield service
    finally:
        await service.aclose()


@pytest_asyncio.fixture
async def email_service(
    relay: UpstreamStub, sent_mail: list[Message]
) -> AsyncGenerator[EmailService, None]:
    service = EmailService(
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(relay)),
        send_mail=sent_mail.append,
    )
    try:
        yield service
    finally:
        await service.aclose()


@pytest_asyncio.fixture
async def api_client(
    session_factory: async_sessionmaker[AsyncSession],
    change_queue: ChangeQueue,
    form_data_service: FormDataService,
    email_service: EmailService,
) -> AsyncGenerator[AsyncClient, None]:
    """API client over the app with test doubles wired into app.state."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as db_session:
            try:
                yield db_session
                await db_session.commit()
            except Exception:
                await db_session.rollback()
                raise

    app.state.async_session = session_factory
    app.state.change_queue = change_queue
    app.state.form_data_service = form_data_service
    app.state.email_service = email_service
    app.state.redis = FakeRedis()
    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
    app.dependency_overrides.clear()


def _clickup_task(
    task_id: str,
    name: str = "Max Mustermann",
    *,
    email: str | None = "max@example.com",
    phone: str | None = "+491701234567",
    status: str | None = "Onboarding",
) -> dict[str, Any]:
    custom_fields = []
    if email is not None:
        custom_fields.append({"name": "Email", "value": email})
    if phone is not None:
        custom_fields.append({"name": "Telefon", "value": phone})
    task: dict[str, Any] = {"id": task_id, "name": name, "custom_fields": custom_fields}
    if status is not None:
        task["status"] = {"status": status}
    return task


@pytest.fixture
def make_task() -> Callable[..., dict[str, Any]]:
    """Factory for ClickUp tasks as forwarded by the relay."""
    return _clickup_task


@pytest.fixture
def client_payload() -> dict[str, Any]:
    return {
        "clickupId": "cu-100",
        "name": "Erika Musterfrau",
        "email": "erika@example.com",
        "phone": "+49301234567",
    }
