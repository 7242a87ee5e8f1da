"""FastAPI router for media upload endpoints."""
import asyncio
import logging
from typing import Optional, Union

from fastapi import APIRouter, File, HTTPException, UploadFile
from fastapi.responses import FileResponse

from .schemas import UPLOADS_URL_PREFIX, FileUploadError, FileUploadResponse
from .service import FileStorageService, FileTooLargeError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["files"])

# Upload body is read in chunks of this size
UPLOAD_CHUNK_SIZE = 64 * 1024


async def _read_limited(file: UploadFile, limit: int) -> bytes:
    """Read an upload, stopping as soon as it exceeds ``limit`` bytes.

    Raises:
        FileTooLargeError: If the upload is larger than ``limit``
    """
    chunks = []
    total = 0
    while True:
        chunk = await file.read(UPLOAD_CHUNK_SIZE)
        if not chunk:
            return b"".join(chunks)
        total += len(chunk)
        if total > limit:
            raise FileTooLargeError(f"File exceeds limit ({limit} bytes)")
        chunks.append(chunk)


@router.post("/upload", response_model=Union[FileUploadResponse, FileUploadError])
async def upload_file(file: Optional[UploadFile] = File(None)):
    """Upload a file to share in the chat.

    The response carries everything the client needs for its ``send_file``
    event: the url, the original filename, and a coarse media kind
    (image, video or other).

    Args:
        file: The file to upload (multipart field ``file``)

    Returns:
        FileUploadResponse, or FileUploadError if no file was sent

    Raises:
        HTTPException 413: If file exceeds the size limit
        HTTPException 500: If upload fails
    """
    if file is None:
        return FileUploadError(error="No file uploaded")

    try:
        service = FileStorageService.get_instance()
        content = await _read_limited(file, service.max_file_size_bytes)
        filename = file.filename or "unnamed"
        mime_type = file.content_type or "application/octet-stream"

        stored = await asyncio.get_event_loop().run_in_executor(
            None,
            lambda: service.save_file(
                filename=filename,
                content=content,
                mime_type=mime_type,
            ),
        )

        logger.info(
            f"File uploaded: {stored.original_filename} "
            f"({stored.size_bytes} bytes, {stored.kind.value})"
        )

        return FileUploadResponse(
            url=stored.url,
            filename=stored.original_filename,
            type=stored.kind,
        )

    except FileTooLargeError as e:
        raise HTTPException(status_code=413, detail=str(e))
    except Exception as e:
        logger.error(f"File upload failed: {e}")
        raise HTTPException(status_code=500, detail=f"Upload failed: {str(e)}")


@router.get(UPLOADS_URL_PREFIX + "/{stored_filename}")
async def download_file(stored_filename: str):
    """Serve an uploaded file by its stored name.

    Raises:
        HTTPException 404: If file not found
    """
    service = FileStorageService.get_instance()

    stored = service.get_file(stored_filename)
    if not stored:
        raise HTTPException(status_code=404, detail="File not found")

    file_path = service.get_file_path(stored_filename)
    if not file_path:
        raise HTTPException(status_code=404, detail="File not found on disk")

    return FileResponse(
        path=file_path,
        filename=stored.original_filename,
        media_type=stored.mime_type,
    )
