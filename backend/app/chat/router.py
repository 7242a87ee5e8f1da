"""Chat router providing the WebSocket endpoint and read-only HTTP queries.

This module provides:
    - GET /api/users-count: Current member count and room capacity
    - GET /api/messages: Recent message history
    - WebSocket /ws: Real-time chat

Protocol Flow (see ``protocol`` for payloads):
    1. Client connects → Server admits or rejects
       → Room full: {event: "room_full"} and the socket is closed (1008)
       → Admitted: {event: "welcome"}, then {event: "message_history"};
         other members get {event: "user_joined"}
    2. Client sends {event: "send_message", data: {text}}
       → All members get {event: "receive_message"}
    3. Client sends {event: "send_file", data: {type, url, filename}}
       → All members get {event: "receive_file"}
    4. Client sends {event: "typing"} / {event: "stop_typing"}
       → Other members get "user_typing" / "user_stopped_typing"
    5. On disconnect → Remaining members get {event: "user_left"}
"""
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from .manager import manager
from .protocol import InboundEnvelope
from .transport import WebSocketConnection
from app.config import get_config

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/api/users-count")
async def users_count() -> dict:
    """Number of members in the room and the room capacity.

    Returns:
        dict: ``{"count": int, "max": int}``
    """
    return await manager.user_count()


@router.get("/api/messages")
async def recent_messages() -> list:
    """Most recent chat entries (50 by default), oldest first."""
    return await manager.recent_messages()


@router.websocket("/ws")
async def websocket_chat_endpoint(websocket: WebSocket) -> None:
    """WebSocket endpoint for the chat room.

    Handles one client from connect to disconnect. Every inbound frame is
    handed to the room coordinator; outbound frames are written by the
    connection's own writer task.

    Args:
        websocket: The WebSocket connection.
    """
    await websocket.accept()

    connection = WebSocketConnection(
        websocket, outbox_size=get_config().room.outbox_size
    )
    connection.start()
    logger.info(f"[WS] New connection {connection.connection_id}")

    member = await manager.connect(connection)
    if member is None:
        # Flush room_full and the close frame before returning
        await connection.wait_closed()
        return

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))

            raw = message.get("text")
            if raw is None:
                logger.debug(f"[WS] Dropping binary frame from {member.displayName}")
                continue
            try:
                frame = InboundEnvelope.model_validate_json(raw)
            except ValidationError:
                logger.debug(f"[WS] Dropping malformed frame from {member.displayName}")
                continue
            await manager.dispatch(connection.connection_id, frame)
    except WebSocketDisconnect:
        logger.info(f"[WS] {member.displayName} closed the connection")
    finally:
        await manager.disconnect(connection.connection_id)
        await connection.stop()
