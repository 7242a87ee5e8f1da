"""File storage service for Huddle.

Handles file storage on disk and metadata tracking in DuckDB.
Files are stored in: {upload_dir}/{uuid}.{ext}
"""
import uuid
import logging
import threading
from pathlib import Path
from typing import Optional
from datetime import datetime

import duckdb

from app.chat.protocol import MediaKind

from .schemas import StoredFile

logger = logging.getLogger(__name__)

# Default upload size limit: 10MB
DEFAULT_MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024


class FileTooLargeError(ValueError):
    """Raised when an upload exceeds the configured size limit."""


class FileStorageService:
    """Service for managing uploaded media files."""

    _instance: Optional["FileStorageService"] = None
    _upload_dir: str = "uploads"
    _db_path: str = "uploads.duckdb"

    def __init__(
        self,
        upload_dir: Optional[str] = None,
        db_path: Optional[str] = None,
        max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE_BYTES,
    ):
        """Initialize the file storage service."""
        if upload_dir:
            self._upload_dir = upload_dir
        if db_path:
            self._db_path = db_path
        self.max_file_size_bytes = max_file_size_bytes

        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        # Uploads are saved from worker threads; DuckDB connections are not thread-safe.
        self._lock = threading.Lock()
        self._ensure_upload_dir()
        self._initialize_db()

    @classmethod
    def get_instance(
        cls,
        upload_dir: Optional[str] = None,
        db_path: Optional[str] = None,
        max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE_BYTES,
    ) -> "FileStorageService":
        """Get or create the singleton instance."""
        if cls._instance is None:
            cls._instance = cls(upload_dir, db_path, max_file_size_bytes)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset the singleton instance (for testing)."""
        if cls._instance:
            cls._instance.close()
        cls._instance = None

    @property
    def upload_dir(self) -> Path:
        return Path(self._upload_dir)

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    def _ensure_upload_dir(self) -> None:
        """Ensure the upload directory exists."""
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    def _get_connection(self) -> duckdb.DuckDBPyConnection:
        """Get or create database connection."""
        if self._connection is None:
            self._connection = duckdb.connect(self._db_path)
        return self._connection

    def _initialize_db(self) -> None:
        """Initialize the database schema."""
        conn = self._get_connection()
        conn.execute("""
            CREATE TABLE IF NOT EXISTS uploads (
                id VARCHAR PRIMARY KEY,
                original_filename VARCHAR NOT NULL,
                stored_filename VARCHAR NOT NULL UNIQUE,
                kind VARCHAR NOT NULL,
                mime_type VARCHAR NOT NULL,
                size_bytes BIGINT NOT NULL,
                uploaded_at TIMESTAMP NOT NULL
            )
        """)

    def save_file(self, filename: str, content: bytes, mime_type: str) -> StoredFile:
        """Save an uploaded file to disk and record metadata.

        Args:
            filename: Original filename
            content: File content as bytes
            mime_type: MIME type of the file

        Returns:
            StoredFile with the public url and media kind

        Raises:
            FileTooLargeError: If file exceeds size limit
        """
        size_bytes = len(content)
        if size_bytes > self.max_file_size_bytes:
            raise FileTooLargeError(
                f"File size ({size_bytes} bytes) exceeds limit "
                f"({self.max_file_size_bytes} bytes)"
            )

        file_id = str(uuid.uuid4())
        ext = Path(filename).suffix.lower()
        stored_filename = f"{file_id}{ext}"

        file_path = self.upload_dir / stored_filename
        file_path.write_bytes(content)

        logger.info(f"Saved file: {file_path} ({size_bytes} bytes)")

        stored = StoredFile(
            id=file_id,
            original_filename=filename,
            stored_filename=stored_filename,
            kind=MediaKind.from_mime_type(mime_type),
            mime_type=mime_type,
            size_bytes=size_bytes,
        )

        with self._lock:
            conn = self._get_connection()
            conn.execute(
                """
                INSERT INTO uploads
                (id, original_filename, stored_filename, kind, mime_type, size_bytes, uploaded_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    stored.id,
                    stored.original_filename,
                    stored.stored_filename,
                    stored.kind.value,
                    stored.mime_type,
                    stored.size_bytes,
                    datetime.fromtimestamp(stored.uploaded_at),
                ]
            )

        return stored

    def get_file(self, stored_filename: str) -> Optional[StoredFile]:
        """Get file metadata by its stored (public) name."""
        with self._lock:
            conn = self._get_connection()
            result = conn.execute(
                """
                SELECT id, original_filename, stored_filename, kind, mime_type,
                       size_bytes, uploaded_at
                FROM uploads
                WHERE stored_filename = ?
                """,
                [stored_filename]
            ).fetchone()

        if not result:
            return None

        return StoredFile(
            id=result[0],
            original_filename=result[1],
            stored_filename=result[2],
            kind=MediaKind(result[3]),
            mime_type=result[4],
            size_bytes=result[5],
            uploaded_at=result[6].timestamp() if result[6] else 0,
        )

    def get_file_path(self, stored_filename: str) -> Optional[Path]:
        """Get the file path on disk, or None if unknown or missing."""
        stored = self.get_file(stored_filename)
        if not stored:
            return None

        file_path = self.upload_dir / stored.stored_filename
        if not file_path.exists():
            return None

        return file_path
