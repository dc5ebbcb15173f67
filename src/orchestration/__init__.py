"""Orchestration module for client lifecycle and outbound sync.

The phase state machine lives in `src.orchestration.state_machine`; it is
not re-exported here because it depends on the client store, which itself
imports the change queue from this package.
"""

from src.orchestration.change_queue import ChangeEntry, ChangeQueue, ChangeType

__all__ = [
    "ChangeEntry",
    "ChangeQueue",
    "ChangeType",
]
