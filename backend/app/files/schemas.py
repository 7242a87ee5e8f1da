"""Pydantic schemas for file upload functionality.

This module defines the data models for media sharing in Huddle:
- StoredFile: Complete file information stored in DuckDB
- FileUploadResponse: API response after a successful upload
- FileUploadError: API response when no file was sent

Files are stored flat in the upload directory under UUID-based names to
prevent collisions. The chat room only ever sees the url, original
filename and media kind returned to the uploader.
"""
import time
import uuid

from pydantic import BaseModel, Field

from app.chat.protocol import MediaKind

# URL path under which stored files are served
UPLOADS_URL_PREFIX = "/uploads"


class StoredFile(BaseModel):
    """Metadata for an uploaded file.

    It includes both the original filename (for display) and the stored
    filename (UUID-based, for disk storage and the public url).
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Unique file ID")
    original_filename: str = Field(..., description="Original filename")
    stored_filename: str = Field(..., description="Filename on disk (UUID-based)")
    kind: MediaKind = Field(..., description="Media kind derived from the MIME type")
    mime_type: str = Field(..., description="MIME type of the file")
    size_bytes: int = Field(..., description="File size in bytes")
    uploaded_at: float = Field(default_factory=time.time, description="Upload timestamp")

    @property
    def url(self) -> str:
        return f"{UPLOADS_URL_PREFIX}/{self.stored_filename}"


class FileUploadResponse(BaseModel):
    """Response after a successful upload.

    The client forwards url, filename and type unchanged in its
    ``send_file`` event.
    """
    success: bool = True
    url: str = Field(..., description="URL to fetch the file")
    filename: str = Field(..., description="Original filename")
    type: MediaKind = Field(..., description="Media kind (image, video, other)")


class FileUploadError(BaseModel):
    success: bool = False
    error: str

