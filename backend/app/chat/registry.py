"""Session registry: the set of members currently admitted to the room."""
import logging
from collections import OrderedDict
from typing import Dict, List, Optional

from .protocol import Member
from .transport import Connection

logger = logging.getLogger(__name__)

DISPLAY_NAME_PREFIX = "Friend"


class RoomFullError(Exception):
    """Raised when a connection is admitted to a room with no free slot."""

    def __init__(self, max_users: int) -> None:
        super().__init__(f"Chat room is full ({max_users}/{max_users} users)")
        self.max_users = max_users


class SessionRegistry:
    """Tracks admitted members and their connection handles.

    The registry does no locking of its own. The room coordinator is its
    only caller and serializes every access.
    """

    def __init__(self, max_users: int) -> None:
        self.max_users = max_users
        # connectionId -> Member, in admission order
        self._members: "OrderedDict[str, Member]" = OrderedDict()
        # connectionId -> transport handle
        self._connections: Dict[str, Connection] = {}

    def admit(self, connection: Connection) -> Member:
        """Admit a connection and assign it a display name.

        Raises:
            RoomFullError: If every slot is taken. State is left untouched.
        """
        if len(self._members) >= self.max_users:
            raise RoomFullError(self.max_users)

        member = Member(
            connectionId=connection.connection_id,
            displayName=f"{DISPLAY_NAME_PREFIX} {self._next_number()}",
        )
        self._members[member.connectionId] = member
        self._connections[member.connectionId] = connection
        return member

    def _next_number(self) -> int:
        # Lowest number not held by a current member; equals size + 1
        # until someone leaves, after which the freed number is reused.
        taken = {m.displayName for m in self._members.values()}
        number = 1
        while f"{DISPLAY_NAME_PREFIX} {number}" in taken:
            number += 1
        return number

    def remove(self, connection_id: str) -> Optional[Member]:
        """Remove a member. Returns None if the id is not registered."""
        self._connections.pop(connection_id, None)
        return self._members.pop(connection_id, None)

    def find(self, connection_id: str) -> Optional[Member]:
        return self._members.get(connection_id)

    def connection(self, connection_id: str) -> Optional[Connection]:
        return self._connections.get(connection_id)

    def connections(self) -> List[Connection]:
        """Connection handles of all members, in admission order."""
        return [self._connections[cid] for cid in self._members]

    def list_display_names(self) -> List[str]:
        return [m.displayName for m in self._members.values()]

    def size(self) -> int:
        return len(self._members)
