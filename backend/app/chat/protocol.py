"""Wire protocol shared by the room coordinator and its transport.

Every WebSocket frame, in both directions, is a JSON object of the form::

    {"event": "<name>", "data": <payload>}

Inbound events (client -> server):
    - send_message: ``{text}``
    - send_file: ``{type, url, filename}``
    - typing / stop_typing: no payload

Outbound events (server -> clients):
    - welcome, room_full, user_joined, user_left
    - message_history, receive_message, receive_file
    - user_typing, user_stopped_typing

Connect and disconnect are implied by the WebSocket lifecycle and have no
frame of their own.
"""
import time
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class InboundEvent(str, Enum):
    """Events a client may send to the room."""
    SEND_MESSAGE = "send_message"
    SEND_FILE = "send_file"
    TYPING = "typing"
    STOP_TYPING = "stop_typing"


class OutboundEvent(str, Enum):
    """Events the room sends to clients."""
    WELCOME = "welcome"
    ROOM_FULL = "room_full"
    USER_JOINED = "user_joined"
    USER_LEFT = "user_left"
    MESSAGE_HISTORY = "message_history"
    RECEIVE_MESSAGE = "receive_message"
    RECEIVE_FILE = "receive_file"
    USER_TYPING = "user_typing"
    USER_STOPPED_TYPING = "user_stopped_typing"


class MediaKind(str, Enum):
    """Coarse classification of an uploaded file.

    Attributes:
        IMAGE: Rendered inline as an image.
        VIDEO: Rendered inline as a video player.
        OTHER: Offered as a download link.
    """
    IMAGE = "image"
    VIDEO = "video"
    OTHER = "other"

    @classmethod
    def from_mime_type(cls, mime_type: Optional[str]) -> "MediaKind":
        """Classify a MIME type by its top-level type (``image/png`` -> IMAGE)."""
        major = (mime_type or "").split("/", 1)[0].lower()
        try:
            return cls(major)
        except ValueError:
            return cls.OTHER


# =============================================================================
# Room state
# =============================================================================


class Member(BaseModel):
    """A connection currently occupying one of the room's slots.

    Attributes:
        connectionId: Opaque id assigned by the transport for this connection.
        displayName: Server-assigned name ("Friend N").
    """
    model_config = ConfigDict(frozen=True)

    connectionId: str = Field(..., description="Transport connection id")
    displayName: str = Field(..., description="Display name shown in UI")


def _now_ms() -> int:
    return int(time.time() * 1000)


def _display_time() -> str:
    return datetime.now().strftime("%I:%M %p")


class TextEntry(BaseModel):
    """A text message stored in the room history."""
    model_config = ConfigDict(frozen=True)

    id: int = Field(default_factory=_now_ms, description="Creation time in ms")
    username: str = Field(..., description="Display name of the author")
    text: str = Field(..., description="Message text")
    timestamp: str = Field(default_factory=_display_time, description="Local display time")


class MediaEntry(BaseModel):
    """A shared file stored in the room history.

    The url and filename come from the upload endpoint and are trusted as
    given; nothing checks that the referenced file still exists.
    """
    model_config = ConfigDict(frozen=True)

    id: int = Field(default_factory=_now_ms, description="Creation time in ms")
    username: str = Field(..., description="Display name of the author")
    type: MediaKind = Field(..., description="Media kind (image, video, other)")
    url: str = Field(..., description="URL returned by the upload endpoint")
    filename: str = Field(..., description="Original filename")
    timestamp: str = Field(default_factory=_display_time, description="Local display time")


ChatEntry = Union[TextEntry, MediaEntry]


# =============================================================================
# Inbound payloads
# =============================================================================


class InboundEnvelope(BaseModel):
    """A raw frame received from a client."""
    event: str
    data: Any = None


class SendMessagePayload(BaseModel):
    text: str


class SendFilePayload(BaseModel):
    type: MediaKind
    url: str
    filename: str


def envelope(event: OutboundEvent, data: Any) -> dict:
    """Build an outbound frame."""
    return {"event": event.value, "data": data}
