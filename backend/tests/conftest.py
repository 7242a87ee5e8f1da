"""Shared test fixtures and configuration for backend tests."""
from typing import Any, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from app.chat.manager import manager
from app.chat.protocol import OutboundEvent
from app.files.service import FileStorageService
from app.main import app


class FakeConnection:
    """In-memory stand-in for a client connection.

    Records every event queued for it so tests can assert on exactly what
    a client would have received, in order.
    """

    def __init__(self, connection_id: str) -> None:
        self.connection_id = connection_id
        self.events: List[Tuple[str, Any]] = []
        self.closed_with: Optional[int] = None

    def send(self, event: OutboundEvent, data: Any) -> None:
        self.events.append((event.value, data))

    def close(self, code: int = 1000) -> None:
        self.closed_with = code

    def names(self) -> List[str]:
        return [name for name, _ in self.events]

    def last(self, event: str) -> Any:
        return [data for name, data in self.events if name == event][-1]

    def clear(self) -> None:
        self.events.clear()


@pytest.fixture
def make_connection():
    """Factory for FakeConnection instances."""
    return FakeConnection


@pytest.fixture(autouse=True)
def reset_room():
    """Start every test with an empty 3-person room."""
    manager.reset(max_users=3, replay_count=20, query_count=50)
    yield
    manager.reset()


@pytest.fixture(autouse=True)
def upload_store(tmp_path):
    """Point the upload store at a temp dir with an in-memory DuckDB."""
    FileStorageService.reset_instance()
    service = FileStorageService.get_instance(
        upload_dir=str(tmp_path / "uploads"),
        db_path=":memory:",
        max_file_size_bytes=1024,
    )
    yield service
    FileStorageService.reset_instance()


@pytest.fixture
def api_client():
    """Provide a TestClient for the main FastAPI app.

    Used as a context manager so that every WebSocket opened in a test
    runs on the same event loop, as they would under uvicorn.
    """
    with TestClient(app) as client:
        yield client
