"""Client email and portal link endpoints."""

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import Field

from src.api.deps import Mailer, Store, bind_client_context
from src.clients.schemas import CamelModel
from src.clients.store import ClientNotFoundError, ClientStore
from src.integrations.email import (
    PORTAL_CASE_NUMBER_PLACEHOLDER,
    EmailDeliveryError,
    InvoiceData,
    generate_portal_url,
)
from src.models.base import utcnow
from src.models.client import Client

router = APIRouter(
    prefix="/api/clients/{client_id}",
    tags=["emails"],
    dependencies=[Depends(bind_client_context)],
)


class WelcomeEmailRequest(CamelModel):
    invoice: InvoiceData | None = None


class DocumentRequestEmailRequest(CamelModel):
    document_type: str = Field(default="Gläubigerschreiben", min_length=1, max_length=200)


class EmailPreviewResponse(CamelModel):
    html: str
    payload: dict[str, Any]


class PortalUrlResponse(CamelModel):
    portal_url: str
    case_number: str


async def _load(store: ClientStore, client_id: int) -> Client:
    try:
        return await store.get(client_id)
    except ClientNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Client not found") from exc


@router.post("/email/welcome")
async def send_welcome_email(
    client_id: int,
    store: Store,
    mailer: Mailer,
    payload: WelcomeEmailRequest | None = Body(default=None),
) -> dict[str, Any]:
    """Send the welcome email through the relay and flag the client."""
    client = await _load(store, client_id)
    invoice = payload.invoice if payload else None
    try:
        result = await mailer.send_welcome(client, invoice)
    except EmailDeliveryError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    await store.update(client.id, {"email_sent": True, "last_email_sent": utcnow()})
    return result


@router.post("/email/preview", response_model=EmailPreviewResponse)
async def preview_welcome_email(
    client_id: int,
    store: Store,
    mailer: Mailer,
    payload: WelcomeEmailRequest | None = Body(default=None),
) -> EmailPreviewResponse:
    """Render the welcome email and relay payload without sending."""
    client = await _load(store, client_id)
    invoice = payload.invoice if payload else None
    return EmailPreviewResponse(
        html=mailer.render_welcome(client, invoice),
        payload=mailer.build_welcome_payload(client, invoice),
    )


@router.post("/email/document-request")
async def send_document_request_email(
    client_id: int,
    payload: DocumentRequestEmailRequest,
    store: Store,
    mailer: Mailer,
) -> dict[str, Any]:
    """Ask the client by email to upload a document."""
    client = await _load(store, client_id)
    try:
        return await mailer.send_document_request(client, payload.document_type)
    except EmailDeliveryError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@router.get("/portal-url", response_model=PortalUrlResponse)
async def get_portal_url(client_id: int, store: Store) -> PortalUrlResponse:
    client = await _load(store, client_id)
    return PortalUrlResponse(
        portal_url=generate_portal_url(client),
        case_number=client.case_number or PORTAL_CASE_NUMBER_PLACEHOLDER,
    )
