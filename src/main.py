"""FastAPI application entry point with lifespan management."""

from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.clients import router as clients_router
from src.api.documents import router as documents_router
from src.api.emails import router as emails_router
from src.api.forms import router as forms_router
from src.api.health import router as health_router
from src.api.middleware import RequestContextMiddleware
from src.api.phases import router as phases_router
from src.api.webhooks import router as webhooks_router
from src.core.config import settings
from src.core.database import create_engine, create_session_factory
from src.core.logging import configure_logging, get_logger
from src.core.redis import create_redis_pool
from src.core.sentry import init_sentry
from src.forms.cache import RateLimiter, RedisFormDataCache
from src.integrations.email import EmailService
from src.integrations.form_api import FormDataService
from src.orchestration.change_queue import ChangeQueue

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle resources.

    Startup:
        - Configure structured logging
        - Initialize Sentry error tracking
        - Create database engine and session factory
        - Establish Redis connection pool
        - Create the change queue and the outbound service clients

    Shutdown:
        - Close HTTP clients and Redis connections
        - Dispose database engine
    """
    configure_logging()
    logger.info("Starting application", environment=settings.environment)

    init_sentry()

    app.state.db_engine = create_engine()
    app.state.async_session = create_session_factory(app.state.db_engine)
    logger.info("Database engine created")

    app.state.redis = await create_redis_pool()
    logger.info("Redis pool created")

    app.state.change_queue = ChangeQueue()
    app.state.form_data_service = FormDataService(
        cache=RedisFormDataCache(app.state.redis, settings.form_cache_ttl_seconds),
        rate_limiter=RateLimiter(settings.form_rate_limit_seconds),
    )
    app.state.email_service = EmailService()

    yield

    logger.info("Shutting down application")

    await app.state.form_data_service.aclose()
    await app.state.email_service.aclose()

    await app.state.redis.aclose()
    logger.info("Redis pool closed")

    await app.state.db_engine.dispose()
    logger.info("Database engine disposed")


app = FastAPI(
    title="Kanzlei Dashboard",
    description="Client onboarding tracker with ClickUp synchronisation",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestContextMiddleware)

app.include_router(health_router)
app.include_router(clients_router)
app.include_router(phases_router)
app.include_router(emails_router)
app.include_router(forms_router)
app.include_router(documents_router)
app.include_router(webhooks_router)


def run() -> None:
    """Console entry point."""
    uvicorn.run("src.main:app", host="0.0.0.0", port=settings.port)
