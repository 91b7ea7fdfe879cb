"""Membership tracker: connection id -> display name.

The tracker never stores rosters. A room's roster is recomputed on every
call from the transport's live room membership, joined with the names
registered here, so a roster cannot drift from who is actually connected.
"""
import logging
import threading
from typing import Dict, List, Optional

from codesync.rooms.schemas import Participant

logger = logging.getLogger(__name__)


class MembershipTracker:
    """Display names for connected participants.

    Args:
        transport: Source of live room membership. Anything exposing
            ``room_members(room_id) -> List[str]`` in join order.
    """

    def __init__(self, transport) -> None:
        self._transport = transport
        self._names: Dict[str, str] = {}
        self._lock = threading.Lock()

    def register(self, connection_id: str, display_name: str) -> None:
        """Record (or overwrite) a connection's display name."""
        with self._lock:
            self._names[connection_id] = display_name

    def unregister(self, connection_id: str) -> None:
        """Forget a connection. Safe to call when already absent."""
        with self._lock:
            self._names.pop(connection_id, None)

    def lookup(self, connection_id: str) -> Optional[str]:
        with self._lock:
            return self._names.get(connection_id)

    def roster_for(self, room_id: str) -> List[Participant]:
        """Joined participants of a room, in join order.

        Connections that are in the room but not registered here (e.g. torn
        down between the two lookups) are left out.
        """
        members = self._transport.room_members(room_id)
        with self._lock:
            return [
                Participant(socketId=cid, username=self._names[cid])
                for cid in members
                if cid in self._names
            ]

    def clear(self) -> None:
        """Forget every name. Only test fixtures call this."""
        with self._lock:
            self._names.clear()
