"""Inbound ClickUp task reconciliation.

Make.com forwards batches of ClickUp tasks; each task is matched to a client
by its task id and either updates that client or creates a new one.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass
from typing import Any

from src.clients.store import ClientStore
from src.core.logging import get_logger
from src.models.client import DEFAULT_STATUS

logger = get_logger(__name__)

EMAIL_FIELD_NAMES = frozenset({"email"})
PHONE_FIELD_NAMES = frozenset({"phone", "telefon"})


@dataclass
class ReconcileStats:
    """Per-batch outcome counters."""

    added: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def extract_contact(task: Mapping[str, Any]) -> tuple[str, str]:
    """Pull email and phone out of a task's `custom_fields` list.

    Field names match case-insensitively. Missing values come back as "".
    A structurally malformed field list raises.
    """
    email = ""
    phone = ""
    for custom_field in task.get("custom_fields") or []:
        name = custom_field["name"].lower()
        value = custom_field.get("value")
        if name in EMAIL_FIELD_NAMES:
            email = str(value) if value else ""
        if name in PHONE_FIELD_NAMES:
            phone = str(value) if value else ""
    return email, phone


def _task_status(task: Mapping[str, Any]) -> str:
    status = task.get("status")
    if isinstance(status, Mapping) and status.get("status"):
        return str(status["status"])
    return DEFAULT_STATUS


class ClickUpReconciler:
    """Upserts clients from ClickUp tasks.

    Writes made here are not queued for the outbound relay: they already
    reflect ClickUp's state.
    """

    def __init__(self, store: ClientStore) -> None:
        self.store = store

    async def reconcile(self, tasks: Iterable[Any]) -> ReconcileStats:
        """Process a batch, isolating failures to the task that caused them.

        Raises:
            TypeError: `tasks` is not iterable.
        """
        stats = ReconcileStats()
        for task in tasks:
            task_id = task.get("id") if isinstance(task, Mapping) else None
            try:
                email, phone = extract_contact(task)
                if not email or not phone:
                    logger.info("clickup_task_skipped", task_id=task_id, reason="missing email or phone")
                    stats.skipped += 1
                    continue

                fields = {
                    "name": task.get("name"),
                    "email": email,
                    "phone": phone,
                    "status": _task_status(task),
                }
                # A failed flush only rolls back this task's savepoint.
                async with self.store.session.begin_nested():
                    existing = await self.store.get_by_clickup_id(str(task["id"]))
                    if existing is not None:
                        await self.store.update(existing.id, fields, sync=False)
                    else:
                        await self.store.create(
                            {**fields, "clickup_id": str(task["id"])}, sync=False
                        )
                if existing is not None:
                    stats.updated += 1
                else:
                    stats.added += 1
            except Exception as exc:
                logger.exception("clickup_task_failed", task_id=task_id, error=str(exc))
                stats.errors += 1

        logger.info("clickup_sync_completed", **stats.to_dict())
        return stats


__all__ = [
    "ClickUpReconciler",
    "ReconcileStats",
    "extract_contact",
]
