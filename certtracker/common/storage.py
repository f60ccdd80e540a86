"""Local-directory blob storage for certificate attachments and documents.

Blobs are addressed by opaque ids (``<uuid hex><ext>``); the original file
name is never used on disk.
"""

from __future__ import annotations

import logging
import os
import re
import uuid
from typing import Optional

from certtracker.config import settings

logger = logging.getLogger(__name__)

_BLOB_ID = re.compile(r"^[0-9a-f]{32}(\.[A-Za-z0-9]{1,10})?$")


class BlobStore:
    """Stores bytes under ``<root>/<bucket>/<blob id>``."""

    def __init__(self, root: Optional[str] = None, bucket: str = "attachments") -> None:
        self.root = root or settings.UPLOAD_DIR
        self.bucket = bucket

    @property
    def directory(self) -> str:
        return os.path.join(self.root, self.bucket)

    def _path(self, blob_id: str) -> str:
        if not _BLOB_ID.match(blob_id):
            raise ValueError(f"Invalid blob id: {blob_id!r}")
        return os.path.join(self.directory, blob_id)

    def save(self, contents: bytes, filename: Optional[str] = None) -> str:
        """Write *contents* and return the new blob id."""
        ext = os.path.splitext(filename or "")[1].lower()
        if ext and not re.fullmatch(r"\.[a-z0-9]{1,10}", ext):
            ext = ""
        blob_id = f"{uuid.uuid4().hex}{ext}"

        os.makedirs(self.directory, exist_ok=True)
        with open(self._path(blob_id), "wb") as f:
            f.write(contents)
        logger.debug("Stored blob %s/%s (%d bytes)", self.bucket, blob_id, len(contents))
        return blob_id

    def exists(self, blob_id: str) -> bool:
        return os.path.isfile(self._path(blob_id))

    def path_for(self, blob_id: str) -> str:
        """Filesystem path of an existing blob (for ``FileResponse``)."""
        path = self._path(blob_id)
        if not os.path.isfile(path):
            raise FileNotFoundError(blob_id)
        return path

    def read(self, blob_id: str) -> bytes:
        with open(self.path_for(blob_id), "rb") as f:
            return f.read()

    def delete(self, blob_id: str) -> bool:
        """Remove a blob. Returns ``False`` when it was already gone."""
        try:
            os.remove(self._path(blob_id))
        except FileNotFoundError:
            logger.warning("Blob %s/%s already missing", self.bucket, blob_id)
            return False
        return True


def get_attachment_store() -> BlobStore:
    """FastAPI dependency: certificate attachment storage."""
    return BlobStore(bucket="certificates")


def get_document_store() -> BlobStore:
    """FastAPI dependency: company document storage."""
    return BlobStore(bucket="documents")
