"""API module exports."""

from src.api.clients import router as clients_router
from src.api.deps import get_db, get_redis
from src.api.documents import router as documents_router
from src.api.emails import router as emails_router
from src.api.forms import router as forms_router
from src.api.health import router as health_router
from src.api.phases import router as phases_router
from src.api.webhooks import router as webhooks_router

__all__ = [
    "clients_router",
    "documents_router",
    "emails_router",
    "forms_router",
    "get_db",
    "get_redis",
    "health_router",
    "phases_router",
    "webhooks_router",
]
