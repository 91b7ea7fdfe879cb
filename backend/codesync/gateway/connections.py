"""Transport-level connection and room membership tracking.

This module owns the live WebSocket objects. It knows which connections
exist and which rooms each of them has joined, and it performs fan-out.
Display names live in the membership tracker; room contents live in the
registry.

Performance Notes:
    - Broadcasting uses asyncio.gather() for concurrent message delivery
    - A failed send is logged and reported, never raised into the caller;
      the failing connection is torn down by its own receive loop
"""
import asyncio
import logging
import threading
import uuid
from typing import Any, Dict, List, Optional

from codesync.errors import TransportError

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Live connections and their room memberships.

    Room membership is kept in join order so that rosters derived from it
    are ordered by arrival, not alphabetically.
    """

    def __init__(self) -> None:
        # connection_id -> websocket (anything with an async send_json)
        self.connections: Dict[str, Any] = {}

        # room_id -> {connection_id: None}, insertion ordered
        self.room_members_map: Dict[str, Dict[str, None]] = {}

        # connection_id -> {room_id: None}, insertion ordered
        self.connection_rooms: Dict[str, Dict[str, None]] = {}

        self._lock = threading.Lock()

    async def connect(self, websocket: Any) -> str:
        """Accept a WebSocket and assign it a fresh connection id."""
        await websocket.accept()
        return self.register(websocket)

    def register(self, websocket: Any, connection_id: Optional[str] = None) -> str:
        """Track an already-accepted connection."""
        connection_id = connection_id or str(uuid.uuid4())
        with self._lock:
            self.connections[connection_id] = websocket
            self.connection_rooms.setdefault(connection_id, {})
        logger.info(f"[WS] Connection {connection_id} registered")
        return connection_id

    def is_connected(self, connection_id: str) -> bool:
        with self._lock:
            return connection_id in self.connections

    def join(self, connection_id: str, room_id: str) -> None:
        """Add a connection to a room. Joining twice is a no-op."""
        with self._lock:
            if connection_id not in self.connections:
                raise TransportError(connection_id, "unknown connection")
            self.room_members_map.setdefault(room_id, {})[connection_id] = None
            self.connection_rooms.setdefault(connection_id, {})[room_id] = None

    def room_members(self, room_id: str) -> List[str]:
        """Connection ids joined to a room, in join order."""
        with self._lock:
            return list(self.room_members_map.get(room_id, {}))

    def rooms_of(self, connection_id: str) -> List[str]:
        """Rooms a connection has joined, in join order."""
        with self._lock:
            return list(self.connection_rooms.get(connection_id, {}))

    def get_room_size(self, room_id: str) -> int:
        with self._lock:
            return len(self.room_members_map.get(room_id, {}))

    def discard(self, connection_id: str) -> List[str]:
        """Forget a connection and every room membership it held.

        Returns:
            The rooms the connection belonged to.
        """
        with self._lock:
            self.connections.pop(connection_id, None)
            rooms = list(self.connection_rooms.pop(connection_id, {}))
            for room_id in rooms:
                members = self.room_members_map.get(room_id)
                if members is None:
                    continue
                members.pop(connection_id, None)
                if not members:
                    del self.room_members_map[room_id]
        logger.info(f"[WS] Connection {connection_id} discarded (rooms: {rooms})")
        return rooms

    def clear(self) -> None:
        """Drop every connection. Only test fixtures call this."""
        with self._lock:
            self.connections.clear()
            self.room_members_map.clear()
            self.connection_rooms.clear()

    # =========================================================================
    # Delivery
    # =========================================================================

    async def send(self, connection_id: str, message: dict) -> None:
        """Unicast to one connection.

        Raises:
            TransportError: The connection is unknown or the send failed.
        """
        with self._lock:
            websocket = self.connections.get(connection_id)
        if websocket is None:
            raise TransportError(connection_id, "unknown connection")
        try:
            await websocket.send_json(message)
        except Exception as e:
            raise TransportError(connection_id, f"send failed: {e}") from e

    async def _safe_send(self, connection_id: str, message: dict) -> bool:
        """Send to one connection, returning False instead of raising."""
        try:
            await self.send(connection_id, message)
            return True
        except TransportError as e:
            logger.debug(f"Failed to send to connection: {e}")
            return False

    async def broadcast(
        self, message: dict, room_id: str, exclude: Optional[str] = None
    ) -> int:
        """Send a message to every member of a room concurrently.

        Args:
            message: JSON-serializable message to broadcast.
            room_id: Room to broadcast to.
            exclude: Connection id to skip (typically the sender).

        Returns:
            Number of connections the message was delivered to.
        """
        targets = [cid for cid in self.room_members(room_id) if cid != exclude]
        return await self.send_many(targets, message)

    async def send_many(self, connection_ids: List[str], message: dict) -> int:
        """Send the same message to several connections concurrently."""
        if not connection_ids:
            return 0
        results = await asyncio.gather(
            *[self._safe_send(cid, message) for cid in connection_ids],
            return_exceptions=True
        )
        delivered = sum(1 for ok in results if ok is True)
        if delivered < len(connection_ids):
            logger.warning(
                f"[WS] {message.get('type')} reached {delivered}/{len(connection_ids)} connections"
            )
        return delivered


# Global singleton instance used by all WebSocket handlers
connections = ConnectionManager()
