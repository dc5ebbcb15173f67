"""Client-related SQLAlchemy models."""

import enum
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base, TimestampMixin, utcnow

DEFAULT_HONORAR = 1111.0
DEFAULT_RATEN = 2
DEFAULT_RATEN_START = "01.01.2025"
DEFAULT_STATUS = "Onboarding"


class PaymentStatus(str, enum.Enum):
    """Payment progress of a client's fee."""

    OUTSTANDING = "Ausstehend"
    PARTIALLY_PAID = "Teilweise bezahlt"
    PAID = "Vollständig bezahlt"


class DocumentType(str, enum.Enum):
    """Kinds of documents stored for a client."""

    INVOICE = "invoice"
    CREDITOR_LETTER = "creditorLetter"
    OTHER = "other"


def _initial_phase_dates() -> dict[str, str]:
    # Phase 1 (Erstberatung) counts as completed when the record is created.
    return {"1": utcnow().isoformat()}


class Client(Base, TimestampMixin):
    """Represents a client (Mandant) tracked through onboarding."""

    __tablename__ = "clients"

    id: Mapped[int] = mapped_column(primary_key=True)
    clickup_id: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(64), nullable=False)

    # Engagement terms
    honorar: Mapped[float] = mapped_column(Float, default=DEFAULT_HONORAR, nullable=False)
    raten: Mapped[int] = mapped_column(Integer, default=DEFAULT_RATEN, nullable=False)
    raten_start: Mapped[str] = mapped_column(
        String(32), default=DEFAULT_RATEN_START, nullable=False
    )
    monatliche_rate: Mapped[float | None] = mapped_column(Float)
    case_number: Mapped[str] = mapped_column(String(100), default="", nullable=False)

    # Workflow state
    status: Mapped[str] = mapped_column(String(50), default=DEFAULT_STATUS, nullable=False)
    current_phase: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    phase_completion_dates: Mapped[dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"),
        default=_initial_phase_dates,
        nullable=False,
    )
    email_sent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_email_sent: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    documents_uploaded: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    first_payment_received: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    zahlung_status: Mapped[str] = mapped_column(
        String(32), default=PaymentStatus.OUTSTANDING.value, nullable=False
    )

    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )

    # Relationships
    documents: Mapped[list["ClientDocument"]] = relationship(
        back_populates="client",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def effective_monatliche_rate(self) -> float | None:
        """Monthly rate, derived from fee and installments when not stored."""
        if self.monatliche_rate is not None:
            return self.monatliche_rate
        if self.honorar and self.raten:
            return round(self.honorar / self.raten, 2)
        return None


class ClientDocument(Base):
    """A file uploaded for a client (invoice, creditor letter, ...)."""

    __tablename__ = "client_documents"

    id: Mapped[int] = mapped_column(primary_key=True)
    client_id: Mapped[int] = mapped_column(
        ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True
    )
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    original_filename: Mapped[str] = mapped_column(String(255), nullable=False)
    path: Mapped[str] = mapped_column(String(500), nullable=False)
    size: Mapped[int] = mapped_column(Integer, nullable=False)
    mimetype: Mapped[str] = mapped_column(String(150), nullable=False)
    document_type: Mapped[str] = mapped_column(
        String(32), default=DocumentType.OTHER.value, nullable=False
    )
    upload_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    # Relationships
    client: Mapped["Client"] = relationship(back_populates="documents")
