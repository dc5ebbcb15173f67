"""Pydantic schemas for client payloads and snapshots.

Field names are camelCase on the wire (`clickupId`, `currentPhase`) since
the Make.com relay and the dashboard front end both consume that shape.
Snake_case names are accepted on input as well.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.models.client import Client, PaymentStatus


class CamelModel(BaseModel):
    """Base model serializing to camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ClientCreateRequest(CamelModel):
    """Payload for creating a client."""

    clickup_id: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=1, max_length=255)
    phone: str = Field(min_length=1, max_length=64)
    status: str | None = Field(default=None, max_length=50)
    honorar: float | None = Field(default=None, ge=0)
    raten: int | None = Field(default=None, ge=1)
    raten_start: str | None = Field(default=None, max_length=32)
    monatliche_rate: float | None = Field(default=None, ge=0)
    case_number: str | None = Field(default=None, max_length=100)
    current_phase: int | None = Field(default=None, ge=1, le=4)


class ClientUpdateRequest(CamelModel):
    """Partial update payload.

    `currentPhase` may be set to any valid phase here; stepwise progression
    is only enforced by the phase endpoints.
    """

    clickup_id: str | None = Field(default=None, min_length=1, max_length=64)
    name: str | None = Field(default=None, min_length=1, max_length=255)
    email: str | None = Field(default=None, min_length=1, max_length=255)
    phone: str | None = Field(default=None, min_length=1, max_length=64)
    status: str | None = Field(default=None, max_length=50)
    honorar: float | None = Field(default=None, ge=0)
    raten: int | None = Field(default=None, ge=1)
    raten_start: str | None = Field(default=None, max_length=32)
    monatliche_rate: float | None = Field(default=None, ge=0)
    case_number: str | None = Field(default=None, max_length=100)
    current_phase: int | None = Field(default=None, ge=1, le=4)
    email_sent: bool | None = None
    documents_uploaded: bool | None = None
    first_payment_received: bool | None = None
    zahlung_status: PaymentStatus | None = None


class ClientResponse(CamelModel):
    """Client representation returned by the API and queued for the relay."""

    id: int
    clickup_id: str
    name: str
    email: str
    phone: str
    status: str
    honorar: float
    raten: int
    raten_start: str
    monatliche_rate: float | None
    case_number: str
    current_phase: int
    phase_completion_dates: dict[str, Any]
    email_sent: bool
    last_email_sent: datetime | None
    documents_uploaded: bool
    first_payment_received: bool
    zahlung_status: str
    last_updated: datetime
    created_at: datetime | None
    updated_at: datetime | None

    @classmethod
    def from_model(cls, client: Client) -> "ClientResponse":
        """Map the ORM row, deriving the monthly rate when unset."""
        return cls(
            id=client.id,
            clickup_id=client.clickup_id,
            name=client.name,
            email=client.email,
            phone=client.phone,
            status=client.status,
            honorar=client.honorar,
            raten=client.raten,
            raten_start=client.raten_start,
            monatliche_rate=client.effective_monatliche_rate,
            case_number=client.case_number,
            current_phase=client.current_phase,
            phase_completion_dates=dict(client.phase_completion_dates or {}),
            email_sent=client.email_sent,
            last_email_sent=client.last_email_sent,
            documents_uploaded=client.documents_uploaded,
            first_payment_received=client.first_payment_received,
            zahlung_status=client.zahlung_status,
            last_updated=client.last_updated,
            created_at=client.created_at,
            updated_at=client.updated_at,
        )


def client_snapshot(client: Client) -> dict[str, Any]:
    """JSON-ready camelCase snapshot of a client row."""
    return ClientResponse.from_model(client).model_dump(mode="json", by_alias=True)
