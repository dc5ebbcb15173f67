"""Onboarding phase endpoints."""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import Field

from src.api.deps import Tracker, bind_client_context
from src.clients.schemas import CamelModel, ClientResponse
from src.clients.store import ClientNotFoundError
from src.orchestration.state_machine import PhaseTransitionError

router = APIRouter(
    prefix="/api/clients/{client_id}/phase",
    tags=["phases"],
    dependencies=[Depends(bind_client_context)],
)


class PhaseJumpRequest(CamelModel):
    """Requested target phase."""

    target_phase: int = Field(ge=1, le=4)


def _to_http_error(exc: ClientNotFoundError | PhaseTransitionError) -> HTTPException:
    if isinstance(exc, ClientNotFoundError):
        return HTTPException(status_code=404, detail="Client not found")
    return HTTPException(status_code=409, detail=str(exc))


@router.post("/advance", response_model=ClientResponse)
async def advance_phase(client_id: int, tracker: Tracker) -> ClientResponse:
    """Move the client to the next phase."""
    try:
        client = await tracker.advance(client_id)
    except (ClientNotFoundError, PhaseTransitionError) as exc:
        raise _to_http_error(exc) from exc
    return ClientResponse.from_model(client)


@router.post("/jump", response_model=ClientResponse)
async def jump_to_phase(
    client_id: int,
    payload: PhaseJumpRequest,
    tracker: Tracker,
) -> ClientResponse:
    """Jump back to any earlier phase, or forward by at most one."""
    try:
        client = await tracker.jump_to(client_id, payload.target_phase)
    except (ClientNotFoundError, PhaseTransitionError) as exc:
        raise _to_http_error(exc) from exc
    return ClientResponse.from_model(client)


@router.post("/documents-uploaded", response_model=ClientResponse)
async def mark_documents_uploaded(client_id: int, tracker: Tracker) -> ClientResponse:
    try:
        client = await tracker.mark_documents_uploaded(client_id)
    except ClientNotFoundError as exc:
        raise _to_http_error(exc) from exc
    return ClientResponse.from_model(client)


@router.post("/first-payment", response_model=ClientResponse)
async def mark_first_payment(client_id: int, tracker: Tracker) -> ClientResponse:
    try:
        client = await tracker.mark_first_payment_received(client_id)
    except ClientNotFoundError as exc:
        raise _to_http_error(exc) from exc
    return ClientResponse.from_model(client)
