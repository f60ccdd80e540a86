"""Company documents router.

Routes:
    /documents            — List documents (any signed-in user)
    /documents/upload     — Upload a document (admin)
    /documents/{id}/view  — Stream a document
    /documents/{id}       — Delete a document (admin)
"""

import uuid

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from certtracker.auth.dependencies import get_current_user, require_admin
from certtracker.auth.models import User
from certtracker.common.storage import BlobStore, get_document_store
from certtracker.database import get_db
from certtracker.documents.schemas import DocumentResponse, DocumentUploadResponse
from certtracker.documents.service import DocumentService

router = APIRouter(prefix="", tags=["documents"])


@router.get("", response_model=list[DocumentResponse])
async def list_documents(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    documents = await DocumentService.list_documents(db)
    return [DocumentResponse.model_validate(doc) for doc in documents]


@router.post("/upload", response_model=DocumentUploadResponse, status_code=201)
async def upload_document(
    document: UploadFile = File(...),
    description: str = Form(default=""),
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_document_store),
):
    contents = await document.read()
    created = await DocumentService.upload_document(
        db,
        store,
        contents=contents,
        filename=document.filename,
        content_type=document.content_type,
        description=description,
        uploaded_by=user.id,
    )
    return DocumentUploadResponse(document=DocumentResponse.model_validate(created))


@router.get("/{document_id}/view")
async def view_document(
    document_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_document_store),
):
    """PDFs open inline; every other type is sent as a download."""
    document, path, content_type = await DocumentService.open_document(db, document_id, store)
    return FileResponse(
        path,
        media_type=content_type,
        filename=document.original_name,
        content_disposition_type="inline" if document.file_type == "pdf" else "attachment",
    )


@router.delete("/{document_id}")
async def delete_document(
    document_id: uuid.UUID,
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_document_store),
):
    await DocumentService.delete_document(db, document_id, store)
    return {"message": "Document deleted successfully"}
