"""FastAPI dependency injection for database, Redis and service access."""

from collections.abc import AsyncGenerator
from typing import TYPE_CHECKING, Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.clients.store import ClientStore
from src.core.logging import client_id_ctx
from src.integrations.email import EmailService
from src.integrations.form_api import FormDataService
from src.orchestration.change_queue import ChangeQueue
from src.orchestration.state_machine import PhaseTracker

if TYPE_CHECKING:
    import redis.asyncio as redis


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session from the app's session factory.

    Commits when the handler returns, rolls back when it raises.
    """
    async with request.app.state.async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_redis(request: Request) -> "redis.Redis":
    """Get Redis connection pool from app state."""
    return request.app.state.redis


def get_change_queue(request: Request) -> ChangeQueue:
    """The process-wide outbound change queue."""
    return request.app.state.change_queue


def get_client_store(
    db: Annotated[AsyncSession, Depends(get_db)],
    queue: Annotated[ChangeQueue, Depends(get_change_queue)],
) -> ClientStore:
    return ClientStore(db, queue)


def get_phase_tracker(
    store: Annotated[ClientStore, Depends(get_client_store)],
) -> PhaseTracker:
    return PhaseTracker(store)


def get_form_data_service(request: Request) -> FormDataService:
    return request.app.state.form_data_service


def get_email_service(request: Request) -> EmailService:
    return request.app.state.email_service


DbSession = Annotated[AsyncSession, Depends(get_db)]
Store = Annotated[ClientStore, Depends(get_client_store)]
Tracker = Annotated[PhaseTracker, Depends(get_phase_tracker)]
Queue = Annotated[ChangeQueue, Depends(get_change_queue)]
FormData = Annotated[FormDataService, Depends(get_form_data_service)]
Mailer = Annotated[EmailService, Depends(get_email_service)]


async def bind_client_context(request: Request) -> None:
    """Bind the path's client id to log events for the rest of the request."""
    client_id = request.path_params.get("client_id")
    if client_id is not None:
        client_id_ctx.set(str(client_id))
