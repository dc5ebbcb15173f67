"""Client records: persistence and wire schemas."""

from src.clients.schemas import (
    ClientCreateRequest,
    ClientResponse,
    ClientUpdateRequest,
    client_snapshot,
)
from src.clients.store import ClientNotFoundError, ClientStore, ClientValidationError

__all__ = [
    "ClientCreateRequest",
    "ClientNotFoundError",
    "ClientResponse",
    "ClientStore",
    "ClientUpdateRequest",
    "ClientValidationError",
    "client_snapshot",
]
