"""Client store: persistence of client records plus change-queue mirroring."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.clients.schemas import client_snapshot
from src.core.logging import get_logger
from src.models.base import utcnow
from src.models.client import Client
from src.orchestration.change_queue import ChangeQueue, ChangeType

logger = get_logger(__name__)

REQUIRED_FIELDS = ("clickup_id", "name", "email", "phone")

UPDATABLE_FIELDS = frozenset(
    {
        "clickup_id",
        "name",
        "email",
        "phone",
        "status",
        "honorar",
        "raten",
        "raten_start",
        "monatliche_rate",
        "case_number",
        "current_phase",
        "phase_completion_dates",
        "email_sent",
        "last_email_sent",
        "documents_uploaded",
        "first_payment_received",
        "zahlung_status",
    }
)


class ClientNotFoundError(LookupError):
    """Raised when a client id does not resolve."""

    def __init__(self, client_id: int) -> None:
        self.client_id = client_id
        super().__init__(f"Client {client_id} not found")


class ClientValidationError(ValueError):
    """Raised when a write violates a client constraint."""


class ClientStore:
    """CRUD access to clients.

    Successful writes are mirrored into the change queue unless the caller
    passes `sync=False` (used for changes that originate in ClickUp).
    """

    def __init__(self, session: AsyncSession, queue: ChangeQueue) -> None:
        self.session = session
        self.queue = queue

    async def create(self, data: Mapping[str, Any], *, sync: bool = True) -> Client:
        """Insert a new client.

        Raises:
            ClientValidationError: Required field missing or clickupId taken.
        """
        values = {key: value for key, value in data.items() if value is not None}
        missing = [name for name in REQUIRED_FIELDS if not values.get(name)]
        if missing:
            raise ClientValidationError(f"Missing required fields: {', '.join(missing)}")
        self._reject_unknown(values)

        if await self.get_by_clickup_id(values["clickup_id"]) is not None:
            raise ClientValidationError(
                f"Client with clickupId {values['clickup_id']!r} already exists"
            )

        client = Client(**values)
        client.last_updated = utcnow()
        self.session.add(client)
        await self._flush()

        logger.info("client_created", client_id=client.id, clickup_id=client.clickup_id)
        if sync:
            self.queue.record(client_snapshot(client), ChangeType.CREATE)
        return client

    async def get(self, client_id: int) -> Client:
        """Load a client by internal id.

        Raises:
            ClientNotFoundError: No client has this id.
        """
        client = await self.session.get(Client, client_id)
        if client is None:
            raise ClientNotFoundError(client_id)
        return client

    async def get_by_clickup_id(self, clickup_id: str) -> Client | None:
        """Look up a client by its ClickUp task id."""
        result = await self.session.execute(
            select(Client).where(Client.clickup_id == clickup_id).limit(1)
        )
        return result.scalars().first()

    async def list_all(self) -> list[Client]:
        """All clients, most recently updated first."""
        result = await self.session.execute(
            select(Client).order_by(Client.last_updated.desc(), Client.id.desc())
        )
        return list(result.scalars().all())

    async def update(
        self,
        client_id: int,
        changes: Mapping[str, Any],
        *,
        sync: bool = True,
    ) -> Client:
        """Apply a partial update and stamp `last_updated`.

        Raises:
            ClientNotFoundError: No client has this id.
            ClientValidationError: The change breaks a constraint.
        """
        client = await self.get(client_id)
        self._reject_unknown(changes)
        for name in REQUIRED_FIELDS:
            if name in changes and not changes[name]:
                raise ClientValidationError(f"{name} must not be empty")

        new_clickup_id = changes.get("clickup_id")
        if new_clickup_id and new_clickup_id != client.clickup_id:
            existing = await self.get_by_clickup_id(new_clickup_id)
            if existing is not None:
                raise ClientValidationError(
                    f"Client with clickupId {new_clickup_id!r} already exists"
                )

        for name, value in changes.items():
            setattr(client, name, value)
        return await self.save(client, sync=sync)

    async def save(self, client: Client, *, sync: bool = True) -> Client:
        """Persist in-place modifications of a loaded client."""
        client.last_updated = utcnow()
        await self._flush()
        logger.info("client_updated", client_id=client.id, clickup_id=client.clickup_id)
        if sync:
            self.queue.record(client_snapshot(client), ChangeType.UPDATE)
        return client

    async def delete(self, client_id: int) -> None:
        """Remove a client and queue the deletion.

        Raises:
            ClientNotFoundError: No client has this id.
        """
        client = await self.get(client_id)
        snapshot = client_snapshot(client)
        await self.session.delete(client)
        await self._flush()
        logger.info("client_deleted", client_id=client_id, clickup_id=snapshot["clickupId"])
        self.queue.record(snapshot, ChangeType.DELETE)

    async def _flush(self) -> None:
        try:
            await self.session.flush()
        except IntegrityError as exc:
            raise ClientValidationError(str(exc.orig)) from exc

    @staticmethod
    def _reject_unknown(values: Mapping[str, Any]) -> None:
        unknown = sorted(set(values) - UPDATABLE_FIELDS)
        if unknown:
            raise ClientValidationError(f"Unknown client fields: {', '.join(unknown)}")


__all__ = [
    "ClientNotFoundError",
    "ClientStore",
    "ClientValidationError",
]
