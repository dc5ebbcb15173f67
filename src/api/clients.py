"""Clients API endpoints."""

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from src.api.deps import Store, bind_client_context
from src.clients.schemas import ClientCreateRequest, ClientResponse, ClientUpdateRequest
from src.clients.store import ClientNotFoundError, ClientValidationError

router = APIRouter(
    prefix="/api/clients",
    tags=["clients"],
    dependencies=[Depends(bind_client_context)],
)


class DeleteResponse(BaseModel):
    """Confirmation returned after a delete."""

    success: bool
    message: str


@router.get("", response_model=list[ClientResponse])
async def list_clients(store: Store) -> list[ClientResponse]:
    """All clients, most recently updated first."""
    clients = await store.list_all()
    return [ClientResponse.from_model(client) for client in clients]


@router.get("/{client_id}", response_model=ClientResponse)
async def get_client(client_id: int, store: Store) -> ClientResponse:
    """Get client by ID."""
    try:
        client = await store.get(client_id)
    except ClientNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Client not found") from exc
    return ClientResponse.from_model(client)


@router.post("", response_model=ClientResponse, status_code=status.HTTP_201_CREATED)
async def create_client(payload: ClientCreateRequest, store: Store) -> ClientResponse:
    """Create a new client; `clickupId` must be unused."""
    try:
        client = await store.create(payload.model_dump(exclude_none=True))
    except ClientValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return ClientResponse.from_model(client)


@router.put("/{client_id}", response_model=ClientResponse)
async def update_client(
    client_id: int,
    payload: ClientUpdateRequest,
    store: Store,
) -> ClientResponse:
    """Partially update client fields."""
    changes = payload.model_dump(exclude_unset=True)
    if "zahlung_status" in changes and changes["zahlung_status"] is not None:
        changes["zahlung_status"] = changes["zahlung_status"].value
    try:
        client = await store.update(client_id, changes)
    except ClientNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Client not found") from exc
    except ClientValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return ClientResponse.from_model(client)


@router.delete("/{client_id}", response_model=DeleteResponse)
async def delete_client(client_id: int, store: Store) -> DeleteResponse:
    """Delete a client and queue the deletion for ClickUp."""
    try:
        await store.delete(client_id)
    except ClientNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Client not found") from exc
    return DeleteResponse(success=True, message="Client removed")
