"""Lead document uploads and bundle downloads."""
import io
import logging
import os
import zipfile
from typing import Iterable, List

from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from leadportal.core.config import settings
from leadportal.core.errors import StorageError, ValidationError
from leadportal.core.metrics import document_uploads
from leadportal.core.validators import validate_document
from leadportal.models.base import utcnow
from leadportal.models.document import Document
from leadportal.services.storage import DocumentStore, generate_storage_key

logger = logging.getLogger(__name__)


class PendingUpload:
    """An uploaded file read into memory and validated, not yet stored."""

    def __init__(self, file_name: str, content_type: str, content: bytes):
        self.file_name = file_name
        self.content_type = content_type
        self.content = content

    @property
    def size(self) -> int:
        return len(self.content)


async def read_upload(file: UploadFile, max_size: int | None = None) -> PendingUpload:
    max_size = max_size or settings.MAX_UPLOAD_SIZE
    content = await file.read()
    file_name = os.path.basename((file.filename or "").replace("\\", "/")) or "document"
    error = validate_document(file.content_type, len(content), max_size)
    if error:
        document_uploads.labels(status="rejected").inc()
        raise ValidationError(f"{file_name}: {error}")
    return PendingUpload(file_name, (file.content_type or "").lower(), content)


async def store_documents(
    db: AsyncSession,
    store: DocumentStore,
    lead_id: int,
    uploads: Iterable[PendingUpload],
) -> List[Document]:
    """Write each upload to the object store, then add its Document row.

    A row is only added after the store confirms the write. If any write
    fails, objects already written for this call are removed and
    ``StorageError`` propagates; the caller rolls back its transaction.
    """
    written: List[str] = []
    documents: List[Document] = []
    try:
        for upload in uploads:
            key = generate_storage_key(lead_id, upload.file_name)
            await run_in_threadpool(store.put, key, upload.content, upload.content_type, upload.file_name)
            written.append(key)
            document = Document(
                lead_id=lead_id,
                file_name=upload.file_name,
                file_type=upload.content_type,
                file_size=upload.size,
                storage_key=key,
                created_at=utcnow(),
            )
            db.add(document)
            documents.append(document)
        await db.flush()
    except (StorageError, SQLAlchemyError):
        document_uploads.labels(status="failed").inc()
        await discard_objects(store, written)
        raise

    document_uploads.labels(status="stored").inc(len(documents))
    return documents


async def discard_objects(store: DocumentStore, keys: Iterable[str]) -> None:
    for key in keys:
        try:
            await run_in_threadpool(store.delete, key)
        except StorageError:
            logger.warning(f"Could not remove orphaned document object {key}")


async def upload_document(
    db: AsyncSession,
    store: DocumentStore,
    lead_id: int,
    upload: PendingUpload,
) -> Document:
    documents = await store_documents(db, store, lead_id, [upload])
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        await discard_objects(store, [doc.storage_key for doc in documents])
        raise StorageError("Failed to save document") from e
    return documents[0]


async def signed_url(store: DocumentStore, document: Document, expires_in: int) -> str:
    return await run_in_threadpool(store.signed_url, document.storage_key, expires_in)


def _unique_name(name: str, used: set) -> str:
    candidate = name
    base, ext = os.path.splitext(name)
    counter = 1
    while candidate in used:
        candidate = f"{base} ({counter}){ext}"
        counter += 1
    used.add(candidate)
    return candidate


async def build_documents_zip(store: DocumentStore, documents: Iterable[Document]) -> bytes:
    buffer = io.BytesIO()
    used: set = set()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for document in documents:
            content = await run_in_threadpool(store.get, document.storage_key)
            archive.writestr(_unique_name(document.file_name, used), content)
    return buffer.getvalue()
