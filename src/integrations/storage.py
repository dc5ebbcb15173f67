"""Document storage using fsspec for filesystem abstraction.

Client uploads live under `<document_storage_url>/clients/<id>/`. Local paths,
file:// URLs and cloud URLs (s3://, gs://) are handled through fsspec's
protocol detection.
"""

import asyncio
import os
import re
from datetime import datetime
from urllib.parse import urlparse

import fsspec

from src.core.config import settings
from src.core.logging import get_logger
from src.models.base import utcnow

logger = get_logger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
MAX_FILENAME_LENGTH = 120


class DocumentRejectedError(ValueError):
    """Raised when an upload violates the type or size policy."""

    def __init__(self, reason: str, *, too_large: bool = False) -> None:
        self.reason = reason
        self.too_large = too_large
        super().__init__(reason)


def get_filesystem(url: str) -> fsspec.AbstractFileSystem:
    """Get filesystem for URL, auto-detecting protocol.

    Examples:
        get_filesystem("s3://bucket/path") -> S3FileSystem
        get_filesystem("/local/path") -> LocalFileSystem
    """
    parsed = urlparse(url)
    if not parsed.scheme or parsed.scheme == "file":
        return fsspec.filesystem("file")
    return fsspec.filesystem(parsed.scheme)


def build_full_path(url: str, path: str) -> str:
    """Join a storage-relative path onto the base URL's filesystem path."""
    parsed = urlparse(url)

    if not parsed.scheme or parsed.scheme == "file":
        base = parsed.path if parsed.path else url
        return os.path.join(base, path) if path else base

    base = f"{parsed.netloc}{parsed.path}" if parsed.netloc else parsed.path
    if path:
        return f"{base.rstrip('/')}/{path.lstrip('/')}"
    return base


def sanitize_filename(filename: str) -> str:
    """Reduce an uploaded name to a safe basename.

    >>> sanitize_filename("../Gläubiger Brief (1).pdf")
    'Gl_ubiger_Brief_1_.pdf'
    """
    name = os.path.basename(filename.replace("\\", "/")).strip()
    cleaned = _UNSAFE_FILENAME_CHARS.sub("_", name).strip("._")
    if not cleaned:
        return "document"
    return cleaned[-MAX_FILENAME_LENGTH:]


def document_path(client_id: int, filename: str, now: datetime | None = None) -> str:
    """Storage-relative path for a new upload."""
    stamp = int((now or utcnow()).timestamp() * 1000)
    return f"clients/{client_id}/{stamp}-{sanitize_filename(filename)}"


def validate_upload(content_type: str | None, size: int) -> str:
    """Check an upload against the configured policy.

    Returns:
        The normalized content type.

    Raises:
        DocumentRejectedError: Disallowed type, empty file or too large.
    """
    mimetype = (content_type or "").split(";")[0].strip().lower()
    if mimetype not in settings.allowed_upload_types:
        raise DocumentRejectedError(f"File type {mimetype or 'unknown'!r} is not allowed")
    if size <= 0:
        raise DocumentRejectedError("File is empty")
    if size > settings.max_upload_bytes:
        raise DocumentRejectedError(
            f"File exceeds the maximum size of {settings.max_upload_bytes} bytes",
            too_large=True,
        )
    return mimetype


async def write_file(url: str, path: str, content: bytes) -> str:
    """Write bytes to storage, returning the full path written."""
    fs = get_filesystem(url)
    full_path = build_full_path(url, path)
    parsed = urlparse(url)
    if not parsed.scheme or parsed.scheme == "file":
        directory = os.path.dirname(full_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
    await asyncio.to_thread(_write_file_sync, fs, full_path, content)
    logger.info("document_written", path=full_path, size=len(content))
    return full_path


async def read_file(url: str, path: str) -> bytes:
    fs = get_filesystem(url)
    return await asyncio.to_thread(_read_file_sync, fs, build_full_path(url, path))


async def delete_file(url: str, path: str) -> bool:
    """Remove a stored file; returns False when it was already gone."""
    fs = get_filesystem(url)
    full_path = build_full_path(url, path)
    try:
        await asyncio.to_thread(fs.rm, full_path)
    except FileNotFoundError:
        logger.warning("document_missing_on_delete", path=full_path)
        return False
    logger.info("document_deleted", path=full_path)
    return True


def _read_file_sync(fs: fsspec.AbstractFileSystem, path: str) -> bytes:
    with fs.open(path, "rb") as f:
        return f.read()


def _write_file_sync(fs: fsspec.AbstractFileSystem, path: str, content: bytes) -> None:
    with fs.open(path, "wb") as f:
        f.write(content)
