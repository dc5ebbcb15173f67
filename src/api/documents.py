"""Client document upload endpoints."""

from datetime import datetime

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from sqlalchemy import select

from src.api.deps import DbSession, Store, bind_client_context
from src.clients.schemas import CamelModel
from src.clients.store import ClientNotFoundError
from src.core.config import settings
from src.core.logging import get_logger
from src.integrations.storage import (
    DocumentRejectedError,
    delete_file,
    document_path,
    validate_upload,
    write_file,
)
from src.models.client import ClientDocument, DocumentType

logger = get_logger(__name__)

router = APIRouter(
    prefix="/api/clients/{client_id}/documents",
    tags=["documents"],
    dependencies=[Depends(bind_client_context)],
)


class DocumentResponse(CamelModel):
    """Stored document metadata."""

    id: int
    client_id: int
    filename: str
    original_filename: str
    path: str
    size: int
    mimetype: str
    document_type: DocumentType
    upload_date: datetime


def _to_document_response(document: ClientDocument) -> DocumentResponse:
    return DocumentResponse(
        id=document.id,
        client_id=document.client_id,
        filename=document.filename,
        original_filename=document.original_filename,
        path=document.path,
        size=document.size,
        mimetype=document.mimetype,
        document_type=DocumentType(document.document_type),
        upload_date=document.upload_date,
    )


async def _ensure_client(store: Store, client_id: int) -> None:
    try:
        await store.get(client_id)
    except ClientNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Client not found") from exc


@router.post("", response_model=DocumentResponse, status_code=status.HTTP_201_CREATED)
async def upload_document(
    client_id: int,
    store: Store,
    db: DbSession,
    file: UploadFile = File(...),
    document_type: DocumentType = Form(default=DocumentType.OTHER, alias="documentType"),
) -> DocumentResponse:
    """Store an uploaded file for the client."""
    await _ensure_client(store, client_id)

    content = await file.read()
    try:
        mimetype = validate_upload(file.content_type, len(content))
    except DocumentRejectedError as exc:
        code = (
            status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
            if exc.too_large
            else status.HTTP_415_UNSUPPORTED_MEDIA_TYPE
        )
        raise HTTPException(status_code=code, detail=exc.reason) from exc

    original_filename = file.filename or "document"
    relative_path = document_path(client_id, original_filename)
    await write_file(settings.document_storage_url, relative_path, content)

    document = ClientDocument(
        client_id=client_id,
        filename=relative_path.rsplit("/", 1)[-1],
        original_filename=original_filename,
        path=relative_path,
        size=len(content),
        mimetype=mimetype,
        document_type=document_type.value,
    )
    db.add(document)
    await db.flush()
    logger.info(
        "document_uploaded",
        client_id=client_id,
        document_id=document.id,
        document_type=document.document_type,
    )
    return _to_document_response(document)


@router.get("", response_model=list[DocumentResponse])
async def list_documents(client_id: int, store: Store, db: DbSession) -> list[DocumentResponse]:
    """Documents of a client, newest first."""
    await _ensure_client(store, client_id)
    result = await db.execute(
        select(ClientDocument)
        .where(ClientDocument.client_id == client_id)
        .order_by(ClientDocument.upload_date.desc(), ClientDocument.id.desc())
    )
    return [_to_document_response(document) for document in result.scalars().all()]


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(client_id: int, document_id: int, db: DbSession) -> None:
    """Remove a document's metadata and its stored file."""
    document = await db.get(ClientDocument, document_id)
    if document is None or document.client_id != client_id:
        raise HTTPException(status_code=404, detail="Document not found")

    await db.delete(document)
    # The file goes only once the row is gone for good.
    await db.commit()
    await delete_file(settings.document_storage_url, document.path)
