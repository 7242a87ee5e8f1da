"""Room coordinator for the single Huddle chat room.

This module owns the room's shared state: the session registry (who is in
the room) and the message log (what has been said). Every operation that
reads or mutates that state runs under one ``asyncio.Lock``, and the
notices it produces are queued on the members' connections before the
lock is released. As a result every member observes joins, leaves,
messages and typing notices in the same relative order, and the message
log order is the broadcast order.

Key features:
    - Capacity-bounded admission (default 3 members)
    - Server-assigned ephemeral names ("Friend 1", "Friend 2", ...)
    - History replay (last 20 entries) to newly admitted members
    - Text and media messages broadcast to everyone, sender included
    - Fire-and-forget typing presence

Failure Semantics:
    Events from connections that are not (or no longer) members are dropped
    silently, as are malformed payloads. Delivery is best-effort: a failed
    send affects only its own connection (see ``transport``).
"""
import asyncio
import logging
from typing import Any, List, Optional

from pydantic import ValidationError

from .message_log import DEFAULT_QUERY_COUNT, DEFAULT_REPLAY_COUNT, MessageLog
from .protocol import (
    ChatEntry,
    InboundEnvelope,
    InboundEvent,
    MediaEntry,
    MediaKind,
    Member,
    OutboundEvent,
    SendFilePayload,
    SendMessagePayload,
    TextEntry,
)
from .registry import RoomFullError, SessionRegistry
from .transport import CLOSE_ROOM_FULL, Connection

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

# Default room capacity
MAX_USERS = 3


def _dump(entries: List[ChatEntry]) -> List[dict]:
    return [entry.model_dump(mode="json") for entry in entries]


class RoomCoordinator:
    """The single authority over the room's registry and message log.

    Attributes:
        registry: Members currently admitted, with their connections.
        log: Append-only chat history.
        replay_count: Entries sent to a new member on admission.
        query_count: Entries returned by the history endpoint.
    """

    def __init__(
        self,
        max_users: int = MAX_USERS,
        replay_count: int = DEFAULT_REPLAY_COUNT,
        query_count: int = DEFAULT_QUERY_COUNT,
    ) -> None:
        self.registry = SessionRegistry(max_users)
        self.log = MessageLog()
        self.replay_count = replay_count
        self.query_count = query_count
        self._lock = asyncio.Lock()

    @property
    def max_users(self) -> int:
        return self.registry.max_users

    def reset(
        self,
        max_users: Optional[int] = None,
        replay_count: Optional[int] = None,
        query_count: Optional[int] = None,
    ) -> None:
        """Drop all members and history, optionally changing the limits.

        Only meant for application startup and tests; live connections are
        not notified.
        """
        if max_users is None:
            max_users = self.max_users
        if replay_count is not None:
            self.replay_count = replay_count
        if query_count is not None:
            self.query_count = query_count

        self.registry = SessionRegistry(max_users)
        self.log = MessageLog()
        self._lock = asyncio.Lock()

    # =========================================================================
    # Fan-out
    # =========================================================================

    def _broadcast(
        self, event: OutboundEvent, data: Any, exclude: Optional[str] = None
    ) -> None:
        """Queue an event for every member, optionally skipping one."""
        for connection in self.registry.connections():
            if connection.connection_id != exclude:
                connection.send(event, data)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def connect(self, connection: Connection) -> Optional[Member]:
        """Admit a new connection or turn it away.

        On admission the new member receives ``welcome`` followed by
        ``message_history``, and everyone else receives ``user_joined``.
        A rejected connection receives ``room_full`` and is closed.

        Args:
            connection: Transport handle of the connecting client.

        Returns:
            The new Member, or None if the room was full.
        """
        async with self._lock:
            try:
                member = self.registry.admit(connection)
            except RoomFullError as e:
                logger.info(f"[Room] Rejected {connection.connection_id}: {e}")
                connection.send(OutboundEvent.ROOM_FULL, {"message": str(e)})
                connection.close(CLOSE_ROOM_FULL)
                return None

            username = member.displayName
            count = self.registry.size()
            logger.info(f"[Room] {username} connected. Total: {count}/{self.max_users}")

            connection.send(OutboundEvent.WELCOME, {
                "username": username,
                "users": self.registry.list_display_names(),
                "message": f"Welcome {username}! There are {count}/{self.max_users} users online.",
            })
            self._broadcast(
                OutboundEvent.USER_JOINED,
                {"username": username, "message": f"{username} joined the chat"},
                exclude=member.connectionId,
            )
            connection.send(
                OutboundEvent.MESSAGE_HISTORY,
                _dump(self.log.recent_for_replay(self.replay_count)),
            )
            return member

    async def disconnect(self, connection_id: str) -> Optional[Member]:
        """Remove a member and tell the rest of the room.

        Repeated calls for the same id are harmless: only the first one
        removes anything or broadcasts ``user_left``.
        """
        async with self._lock:
            member = self.registry.remove(connection_id)
            if member is None:
                return None

            username = member.displayName
            logger.info(
                f"[Room] {username} disconnected. "
                f"Total: {self.registry.size()}/{self.max_users}"
            )
            self._broadcast(OutboundEvent.USER_LEFT, {
                "username": username,
                "message": f"{username} left the chat",
                "users": self.registry.list_display_names(),
            })
            return member

    # =========================================================================
    # Chat events
    # =========================================================================

    async def send_message(self, connection_id: str, text: str) -> Optional[TextEntry]:
        """Append a text entry and broadcast it to all members."""
        async with self._lock:
            member = self.registry.find(connection_id)
            if member is None:
                return None

            entry = TextEntry(username=member.displayName, text=text)
            self.log.append(entry)
            self._broadcast(OutboundEvent.RECEIVE_MESSAGE, entry.model_dump(mode="json"))
            return entry

    async def send_file(
        self, connection_id: str, kind: MediaKind, url: str, filename: str
    ) -> Optional[MediaEntry]:
        """Append a media entry and broadcast it to all members.

        The url and filename are whatever the upload endpoint returned to
        the client; they are not checked here.
        """
        async with self._lock:
            member = self.registry.find(connection_id)
            if member is None:
                return None

            entry = MediaEntry(
                username=member.displayName, type=kind, url=url, filename=filename
            )
            self.log.append(entry)
            logger.info(f"[Room] {member.displayName} shared {kind.value} file: {filename}")
            self._broadcast(OutboundEvent.RECEIVE_FILE, entry.model_dump(mode="json"))
            return entry

    async def typing(self, connection_id: str) -> None:
        async with self._lock:
            member = self.registry.find(connection_id)
            if member is not None:
                self._broadcast(
                    OutboundEvent.USER_TYPING, member.displayName, exclude=connection_id
                )

    async def stop_typing(self, connection_id: str) -> None:
        # Sent even when the sender is no longer a member.
        async with self._lock:
            self._broadcast(OutboundEvent.USER_STOPPED_TYPING, "", exclude=connection_id)

    async def dispatch(self, connection_id: str, frame: InboundEnvelope) -> None:
        """Route an inbound frame to its handler.

        Unknown events and invalid payloads are dropped.
        """
        try:
            event = InboundEvent(frame.event)
        except ValueError:
            logger.debug(f"[Room] Ignoring unknown event {frame.event!r} from {connection_id}")
            return

        try:
            if event is InboundEvent.SEND_MESSAGE:
                payload = SendMessagePayload.model_validate(frame.data)
                await self.send_message(connection_id, payload.text)
            elif event is InboundEvent.SEND_FILE:
                file_payload = SendFilePayload.model_validate(frame.data)
                await self.send_file(
                    connection_id,
                    file_payload.type,
                    file_payload.url,
                    file_payload.filename,
                )
            elif event is InboundEvent.TYPING:
                await self.typing(connection_id)
            elif event is InboundEvent.STOP_TYPING:
                await self.stop_typing(connection_id)
        except ValidationError as e:
            logger.debug(f"[Room] Dropping malformed {event.value} from {connection_id}: {e}")

    # =========================================================================
    # Read-only queries
    # =========================================================================

    async def user_count(self) -> dict:
        async with self._lock:
            return {"count": self.registry.size(), "max": self.max_users}

    async def recent_messages(self, count: Optional[int] = None) -> List[dict]:
        """Most recent entries for the out-of-band history query."""
        async with self._lock:
            limit = self.query_count if count is None else count
            return _dump(self.log.recent_for_query(limit))


# Global singleton instance used by all WebSocket handlers
manager = RoomCoordinator()
