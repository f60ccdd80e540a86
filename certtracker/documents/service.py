"""Company document service — upload, list, fetch, delete."""

from __future__ import annotations

import logging
import os
import uuid
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from certtracker.common.constants import DOCUMENT_CONTENT_TYPES
from certtracker.common.exceptions import BadRequestException, NotFoundException
from certtracker.common.storage import BlobStore
from certtracker.config import settings
from certtracker.documents.models import Document

logger = logging.getLogger(__name__)

_CONTENT_TYPE_TO_EXT = {mime: ext for ext, mime in reversed(DOCUMENT_CONTENT_TYPES.items())}


def detect_file_type(filename: Optional[str], content_type: Optional[str]) -> Optional[str]:
    """Accepted extension for an upload, from its name first, then its MIME type."""
    ext = os.path.splitext(filename or "")[1].lstrip(".").lower()
    if ext in DOCUMENT_CONTENT_TYPES:
        return ext
    return _CONTENT_TYPE_TO_EXT.get(content_type or "")


class DocumentService:

    @staticmethod
    async def list_documents(db: AsyncSession) -> Sequence[Document]:
        result = await db.execute(select(Document).order_by(Document.uploaded_at.desc()))
        return result.scalars().all()

    @staticmethod
    async def get_document(db: AsyncSession, document_id: uuid.UUID) -> Document:
        document = await db.get(Document, document_id)
        if document is None:
            raise NotFoundException("Document", str(document_id))
        return document

    @staticmethod
    async def upload_document(
        db: AsyncSession,
        store: BlobStore,
        *,
        contents: bytes,
        filename: Optional[str],
        content_type: Optional[str],
        description: Optional[str] = None,
        uploaded_by: Optional[uuid.UUID] = None,
    ) -> Document:
        file_type = detect_file_type(filename, content_type)
        if file_type is None:
            raise BadRequestException(
                "Invalid file type. Allowed: " + ", ".join(sorted(DOCUMENT_CONTENT_TYPES)) + ".",
            )
        if not contents:
            raise BadRequestException("No file uploaded.")
        max_bytes = settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024
        if len(contents) > max_bytes:
            raise BadRequestException(
                f"File too large. Maximum size is {settings.MAX_UPLOAD_SIZE_MB} MB.",
            )

        blob_id = store.save(contents, f"upload.{file_type}")
        document = Document(
            original_name=filename or f"document.{file_type}",
            file_type=file_type,
            file_size=len(contents),
            blob_id=blob_id,
            description=description or "",
            uploaded_by=uploaded_by,
        )
        db.add(document)
        await db.flush()
        logger.info("Uploaded document %s (%d bytes)", document.original_name, document.file_size)
        return document

    @staticmethod
    async def open_document(
        db: AsyncSession,
        document_id: uuid.UUID,
        store: BlobStore,
    ) -> tuple[Document, str, str]:
        """Return ``(document, path, content_type)`` for streaming."""
        document = await DocumentService.get_document(db, document_id)
        try:
            path = store.path_for(document.blob_id)
        except FileNotFoundError:
            logger.error("Blob %s for document %s is missing", document.blob_id, document.id)
            raise NotFoundException("Document file", str(document_id))
        content_type = DOCUMENT_CONTENT_TYPES.get(document.file_type, "application/octet-stream")
        return document, path, content_type

    @staticmethod
    async def delete_document(
        db: AsyncSession,
        document_id: uuid.UUID,
        store: BlobStore,
    ) -> None:
        document = await DocumentService.get_document(db, document_id)
        blob_id = document.blob_id
        await db.delete(document)
        await db.flush()
        store.delete(blob_id)
