"""Session gateway: applies protocol events to room state and fans out results.

Each connection is a two-state machine. It starts unjoined and becomes
joined on its first ``join``; there is no leave, only disconnect, which is
terminal for that connection id.

Event handling:
    - join: register the name, join the transport room, ensure the room
      exists, then broadcast ``joined`` (roster + file snapshot) to the whole
      room including the joiner
    - code-change: store the content, rebroadcast to everyone but the sender
    - sync-code / sync-files: unicast authoritative state to the requester
    - create/delete/rename/switch-file: mutate, then broadcast to the whole
      room including the initiator
    - disconnect: notify every room the connection was in, then forget it

Failure policy:
    Mutating file operations (create, delete, rename) that fail are answered
    with an ``error`` frame to the initiator only. Best-effort operations
    (code-change, sync-code, sync-files, switch-file) that reference an
    unknown room or file are dropped silently. Nothing raised by a handler
    ever escapes to the connection loop.
"""
import logging
from typing import Any, Optional

from codesync.config import get_config
from codesync.errors import (
    CodeSyncError,
    FileNotFound,
    InvalidEvent,
    InvalidName,
    RoomFull,
    RoomNotFound,
    TransportError,
)
from codesync.membership.tracker import MembershipTracker
from codesync.rooms.registry import RoomRegistry, registry

from .connections import ConnectionManager, connections
from .protocol import (
    CodeChangeEvent,
    CreateFileEvent,
    DeleteFileEvent,
    Events,
    JoinEvent,
    RenameFileEvent,
    SwitchFileEvent,
    SyncCodeEvent,
    SyncFilesEvent,
    error_frame,
    parse_event,
)

logger = logging.getLogger(__name__)

# Events whose lookup failures are reported back instead of dropped
ACKNOWLEDGED_EVENTS = frozenset({
    Events.JOIN,
    Events.CREATE_FILE,
    Events.DELETE_FILE,
    Events.RENAME_FILE,
})


def _require_name(name: Optional[str]) -> str:
    if name is None or not name.strip():
        raise InvalidName()
    return name


class SessionGateway:
    """Dispatches inbound events for every connection."""

    def __init__(
        self,
        registry: RoomRegistry,
        tracker: MembershipTracker,
        transport: ConnectionManager,
    ) -> None:
        self.registry = registry
        self.tracker = tracker
        self.transport = transport
        self._handlers = {
            JoinEvent: self._on_join,
            CodeChangeEvent: self._on_code_change,
            SyncCodeEvent: self._on_sync_code,
            SyncFilesEvent: self._on_sync_files,
            CreateFileEvent: self._on_create_file,
            DeleteFileEvent: self._on_delete_file,
            RenameFileEvent: self._on_rename_file,
            SwitchFileEvent: self._on_switch_file,
        }

    # =========================================================================
    # Entry points
    # =========================================================================

    async def handle_frame(self, connection_id: str, raw: Any) -> None:
        """Parse and dispatch one raw frame from a connection."""
        try:
            event = parse_event(raw)
        except InvalidEvent as exc:
            logger.debug(f"[Gateway] Invalid frame from {connection_id}: {exc.message}")
            await self._reject(connection_id, exc, exc.event)
            return
        if event is None:
            logger.debug(f"[Gateway] Ignoring unknown event from {connection_id}")
            return
        await self.dispatch(connection_id, event)

    async def dispatch(self, connection_id: str, event) -> None:
        """Run the handler for an already-parsed event."""
        handler = self._handlers.get(type(event))
        if handler is None:
            logger.warning(f"[Gateway] No handler for {type(event).__name__}")
            return
        try:
            await handler(connection_id, event)
        except (RoomNotFound, FileNotFound) as exc:
            if event.type in ACKNOWLEDGED_EVENTS:
                await self._reject(connection_id, exc, event.type)
            else:
                logger.debug(f"[Gateway] Dropped {event.type} from {connection_id}: {exc.message}")
        except TransportError as exc:
            logger.debug(f"[Gateway] Reply for {event.type} not delivered: {exc.message}")
        except CodeSyncError as exc:
            logger.info(f"[Gateway] Rejected {event.type} from {connection_id}: {exc.message}")
            await self._reject(connection_id, exc, event.type)
        except Exception:
            logger.exception(f"[Gateway] Handler for {event.type} failed (connection {connection_id})")

    async def handle_disconnect(self, connection_id: str) -> None:
        """Tear down a connection, notifying every room it had joined.

        Rooms, name and the other members of each room are captured at the
        start of teardown. State is removed before the first await; the
        departure notice goes to the captured members.
        """
        rooms = self.transport.rooms_of(connection_id)
        username = self.tracker.lookup(connection_id)
        recipients = {
            room_id: [cid for cid in self.transport.room_members(room_id) if cid != connection_id]
            for room_id in rooms
        }
        self.tracker.unregister(connection_id)
        self.transport.discard(connection_id)
        if rooms:
            logger.info(f"[Gateway] {username!r} ({connection_id}) left rooms {rooms}")

        for room_id, targets in recipients.items():
            await self.transport.send_many(targets, {
                "type": Events.DISCONNECTED,
                "roomId": room_id,
                "socketId": connection_id,
                "username": username,
            })

    # =========================================================================
    # Handlers
    # =========================================================================

    async def _on_join(self, connection_id: str, event: JoinEvent) -> None:
        room_id = event.roomId
        limit = get_config().session.max_participants
        if (
            limit > 0
            and room_id not in self.transport.rooms_of(connection_id)
            and self.transport.get_room_size(room_id) >= limit
        ):
            raise RoomFull(room_id, limit)

        self.tracker.register(connection_id, event.username)
        self.transport.join(connection_id, room_id)
        snapshot = self.registry.ensure_room(room_id)
        clients = self.tracker.roster_for(room_id)
        logger.info(
            f"[Gateway] {event.username!r} ({connection_id}) joined room {room_id}; "
            f"{len(clients)} participant(s)"
        )
        await self.transport.broadcast({
            "type": Events.JOINED,
            "roomId": room_id,
            "clients": [c.model_dump() for c in clients],
            "username": event.username,
            "socketId": connection_id,
            "files": [f.model_dump() for f in snapshot.files],
            "activeFileId": snapshot.activeFileId,
        }, room_id)

    async def _on_code_change(self, connection_id: str, event: CodeChangeEvent) -> None:
        self.registry.update_content(event.roomId, event.fileId, event.code)
        await self.transport.broadcast({
            "type": Events.CODE_CHANGE,
            "roomId": event.roomId,
            "fileId": event.fileId,
            "code": event.code,
        }, event.roomId, exclude=connection_id)

    async def _on_sync_code(self, connection_id: str, event: SyncCodeEvent) -> None:
        code_file = self.registry.get_file(event.roomId, event.fileId)
        await self.transport.send(connection_id, {
            "type": Events.CODE_CHANGE,
            "roomId": event.roomId,
            "fileId": code_file.id,
            "code": code_file.content,
        })

    async def _on_sync_files(self, connection_id: str, event: SyncFilesEvent) -> None:
        snapshot = self.registry.snapshot(event.roomId)
        await self.transport.send(connection_id, {
            "type": Events.FILES_SYNCED,
            "roomId": event.roomId,
            "files": [f.model_dump() for f in snapshot.files],
            "activeFileId": snapshot.activeFileId,
        })

    async def _on_create_file(self, connection_id: str, event: CreateFileEvent) -> None:
        name = _require_name(event.fileName)
        code_file = self.registry.create_file(event.roomId, name, event.language)
        await self.transport.broadcast({
            "type": Events.FILE_CREATED,
            "roomId": event.roomId,
            "file": code_file.model_dump(),
            "username": self._username(connection_id, event.username),
        }, event.roomId)

    async def _on_delete_file(self, connection_id: str, event: DeleteFileEvent) -> None:
        _, active_file_id = self.registry.delete_file(event.roomId, event.fileId)
        await self.transport.broadcast({
            "type": Events.FILE_DELETED,
            "roomId": event.roomId,
            "fileId": event.fileId,
            "activeFileId": active_file_id,
            "username": self._username(connection_id, event.username),
        }, event.roomId)

    async def _on_rename_file(self, connection_id: str, event: RenameFileEvent) -> None:
        new_name = _require_name(event.newName)
        code_file = self.registry.rename_file(event.roomId, event.fileId, new_name)
        await self.transport.broadcast({
            "type": Events.FILE_RENAMED,
            "roomId": event.roomId,
            "fileId": code_file.id,
            "newName": code_file.name,
            "username": self._username(connection_id, event.username),
        }, event.roomId)

    async def _on_switch_file(self, connection_id: str, event: SwitchFileEvent) -> None:
        code_file = self.registry.switch_active(event.roomId, event.fileId)
        await self.transport.broadcast({
            "type": Events.FILE_SWITCHED,
            "roomId": event.roomId,
            "fileId": code_file.id,
            "content": code_file.content,
            "username": self._username(connection_id, event.username),
        }, event.roomId)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _username(self, connection_id: str, claimed: Optional[str]) -> str:
        """Registered name wins over whatever the frame claims."""
        registered = self.tracker.lookup(connection_id)
        if registered is not None:
            return registered
        return claimed or ""

    async def _reject(self, connection_id: str, error: CodeSyncError, event: Optional[str]) -> None:
        try:
            await self.transport.send(connection_id, error_frame(error, event))
        except TransportError as exc:
            logger.debug(f"[Gateway] Could not deliver rejection: {exc.message}")


# Global singletons wired together for the WebSocket endpoint
tracker = MembershipTracker(connections)
gateway = SessionGateway(registry, tracker, connections)
