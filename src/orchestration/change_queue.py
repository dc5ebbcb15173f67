"""Outbound change queue drained by the Make.com relay.

Every create/update/delete of a client is appended here; the relay polls
the drain endpoint and forwards the batch to ClickUp. The buffer is kept in
process memory only, so entries that were not drained before a restart are
lost.
"""

from __future__ import annotations

import enum
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog

logger = structlog.get_logger()


class ChangeType(str, enum.Enum):
    """Kind of mutation recorded in the queue."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class ChangeEntry:
    """A single pending client mutation."""

    client: dict[str, Any]
    change_type: ChangeType
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_dict(self) -> dict[str, Any]:
        """Serialize in the shape the relay consumes."""
        return {
            "client": self.client,
            "changeType": self.change_type.value,
            "timestamp": self.timestamp,
        }


class ChangeQueue:
    """FIFO buffer of pending client changes.

    `drain` swaps the buffer under a lock, so an `enqueue` racing with a
    drain lands either in the returned batch or in the next one, never in
    both and never in neither.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: list[ChangeEntry] = []

    def enqueue(self, entry: ChangeEntry) -> None:
        """Append an entry to the end of the queue."""
        with self._lock:
            self._entries.append(entry)
        logger.debug(
            "change_enqueued",
            change_type=entry.change_type.value,
            clickup_id=entry.client.get("clickupId"),
        )

    def record(self, client: dict[str, Any], change_type: ChangeType) -> ChangeEntry:
        """Build an entry from a client snapshot and enqueue it."""
        entry = ChangeEntry(client=client, change_type=change_type)
        self.enqueue(entry)
        return entry

    def drain(self) -> list[ChangeEntry]:
        """Return every pending entry in insertion order and clear the queue."""
        with self._lock:
            entries, self._entries = self._entries, []
        if entries:
            logger.info("change_queue_drained", count=len(entries))
        return entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = [
    "ChangeEntry",
    "ChangeQueue",
    "ChangeType",
]
