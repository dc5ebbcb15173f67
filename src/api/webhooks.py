"""Make.com relay endpoints for ClickUp synchronisation."""

from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from src.api.deps import Queue, Store
from src.core.logging import get_logger
from src.integrations.clickup import ClickUpReconciler

logger = get_logger(__name__)

router = APIRouter(prefix="/api/webhook", tags=["webhooks"])


class ReconcileStatsResponse(BaseModel):
    added: int
    updated: int
    skipped: int
    errors: int


class ClickUpSyncResponse(BaseModel):
    """Outcome of an inbound ClickUp batch."""

    success: bool
    message: str
    stats: ReconcileStatsResponse


class ChangeBatchResponse(BaseModel):
    """Pending outbound changes, removed from the queue by this call."""

    success: bool
    count: int
    changes: list[dict[str, Any]]


@router.post("/clickup-to-dashboard", response_model=ClickUpSyncResponse)
async def clickup_to_dashboard(request: Request, store: Store) -> ClickUpSyncResponse:
    """Upsert clients from a batch of ClickUp tasks.

    The body must be a JSON object with a `tasks` array; anything else is
    rejected before a single task is processed.
    """
    try:
        body = await request.json()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Body must be valid JSON") from exc

    tasks = body.get("tasks") if isinstance(body, dict) else None
    if not isinstance(tasks, list):
        logger.warning("clickup_webhook_rejected", reason="tasks is not an array")
        raise HTTPException(status_code=400, detail="Invalid data format: tasks must be an array")

    stats = await ClickUpReconciler(store).reconcile(tasks)
    return ClickUpSyncResponse(
        success=True,
        message=f"Processed {len(tasks)} tasks",
        stats=ReconcileStatsResponse(**stats.to_dict()),
    )


@router.get("/dashboard-to-clickup", response_model=ChangeBatchResponse)
async def dashboard_to_clickup(queue: Queue) -> ChangeBatchResponse:
    """Hand every queued change to the relay, oldest first."""
    entries = queue.drain()
    return ChangeBatchResponse(
        success=True,
        count=len(entries),
        changes=[entry.to_dict() for entry in entries],
    )
