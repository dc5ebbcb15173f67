"""Integrations with external systems: ClickUp, the form API, email and storage."""

from src.integrations.storage import (
    DocumentRejectedError,
    delete_file,
    get_filesystem,
    read_file,
    write_file,
)

__all__ = [
    "DocumentRejectedError",
    "delete_file",
    "get_filesystem",
    "read_file",
    "write_file",
]
