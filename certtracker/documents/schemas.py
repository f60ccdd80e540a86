"""Company document schemas."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class DocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    original_name: str
    file_type: str
    file_size: int
    description: str = ""
    uploaded_by: Optional[uuid.UUID] = None
    uploaded_at: datetime


class DocumentUploadResponse(BaseModel):
    message: str = "Document uploaded successfully"
    document: DocumentResponse
