"""SQLAlchemy models for the client dashboard."""

from src.models.base import Base
from src.models.client import Client, ClientDocument, DocumentType, PaymentStatus

__all__ = [
    "Base",
    "Client",
    "ClientDocument",
    "DocumentType",
    "PaymentStatus",
]
