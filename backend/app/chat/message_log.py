"""Append-only message history for the room."""
from typing import List

from .protocol import ChatEntry

# Entries replayed to a newly admitted member
DEFAULT_REPLAY_COUNT = 20

# Entries returned by the out-of-band history query
DEFAULT_QUERY_COUNT = 50


class MessageLog:
    """Ordered chat history. The append order is the broadcast order.

    Growth is unbounded; history lives for the lifetime of the process.
    """

    def __init__(self) -> None:
        self._entries: List[ChatEntry] = []

    def append(self, entry: ChatEntry) -> ChatEntry:
        self._entries.append(entry)
        return entry

    def _tail(self, count: int) -> List[ChatEntry]:
        if count <= 0:
            return []
        return self._entries[-count:]

    def recent_for_replay(self, count: int = DEFAULT_REPLAY_COUNT) -> List[ChatEntry]:
        """Last ``count`` entries, oldest first, for join-time replay."""
        return self._tail(count)

    def recent_for_query(self, count: int = DEFAULT_QUERY_COUNT) -> List[ChatEntry]:
        """Last ``count`` entries, oldest first, for the history endpoint."""
        return self._tail(count)

    def __len__(self) -> int:
        return len(self._entries)
