"""Client synchronization agent.

Holds a local mirror of one room (roster, ordered files, own connection id,
locally active file) and reconciles every inbound server frame into it.
Outbound helpers build the client -> server frames; ``SyncClient`` wires
both to a live ``websockets`` connection.

The active file is local UI state: it starts at the first file, follows
the user's own switches, and falls back to the server's hint (or the first
file) when the file being viewed disappears.
"""
import asyncio
import json
import logging
from typing import Any, Callable, Dict, List, Optional

import websockets

from codesync.errors import InvalidName
from codesync.gateway.protocol import Events

logger = logging.getLogger(__name__)


# =============================================================================
# Outbound frames
# =============================================================================


def _checked_name(name: Optional[str]) -> str:
    if name is None or not name.strip():
        raise InvalidName()
    return name.strip()


def join_frame(room_id: str, username: str) -> dict:
    return {"type": Events.JOIN, "roomId": room_id, "username": username}


def code_change_frame(room_id: str, file_id: str, code: str) -> dict:
    return {"type": Events.CODE_CHANGE, "roomId": room_id, "fileId": file_id, "code": code}


def sync_code_frame(room_id: str, file_id: str, socket_id: Optional[str] = None) -> dict:
    """The server answers the sender regardless of ``socket_id``."""
    frame = {"type": Events.SYNC_CODE, "roomId": room_id, "fileId": file_id}
    if socket_id:
        frame["socketId"] = socket_id
    return frame


def sync_files_frame(room_id: str) -> dict:
    return {"type": Events.SYNC_FILES, "roomId": room_id}


def create_file_frame(room_id: str, file_name: str, language: Optional[str] = None) -> dict:
    """Raises InvalidName for blank names before anything is sent."""
    frame = {"type": Events.CREATE_FILE, "roomId": room_id, "fileName": _checked_name(file_name)}
    if language:
        frame["language"] = language
    return frame


def delete_file_frame(room_id: str, file_id: str) -> dict:
    return {"type": Events.DELETE_FILE, "roomId": room_id, "fileId": file_id}


def rename_file_frame(room_id: str, file_id: str, new_name: str) -> dict:
    """Raises InvalidName for blank names before anything is sent."""
    return {
        "type": Events.RENAME_FILE,
        "roomId": room_id,
        "fileId": file_id,
        "newName": _checked_name(new_name),
    }


def switch_file_frame(room_id: str, file_id: str) -> dict:
    return {"type": Events.SWITCH_FILE, "roomId": room_id, "fileId": file_id}


# =============================================================================
# Local mirror
# =============================================================================


class RoomMirror:
    """Local copy of a room, kept consistent by applying server frames.

    Attributes:
        room_id: Room this mirror follows; frames for other rooms are ignored.
        socket_id: Own connection id, learned from the ``connected`` frame.
        clients: Roster entries ({socketId, username}) in join order.
        files: File dicts in creation order.
        active_file_id: File this client is looking at.
        focus: username -> file id last announced via ``file-switched``.
        errors: Rejection frames received from the server, oldest first.
    """

    def __init__(self, room_id: str) -> None:
        self.room_id = room_id
        self.socket_id: Optional[str] = None
        self.clients: List[Dict[str, Any]] = []
        self.files: List[Dict[str, Any]] = []
        self.active_file_id: Optional[str] = None
        self.focus: Dict[str, str] = {}
        self.errors: List[Dict[str, Any]] = []
        self._appliers: Dict[str, Callable[[Dict[str, Any]], None]] = {
            Events.CONNECTED: self._on_connected,
            Events.JOINED: self._on_joined,
            Events.DISCONNECTED: self._on_disconnected,
            Events.CODE_CHANGE: self._on_code_change,
            Events.FILES_SYNCED: self._on_files_synced,
            Events.FILE_CREATED: self._on_file_created,
            Events.FILE_DELETED: self._on_file_deleted,
            Events.FILE_RENAMED: self._on_file_renamed,
            Events.FILE_SWITCHED: self._on_file_switched,
            Events.ERROR: self._on_error,
        }

    # ---------------------------------------------------------------- queries

    def get_file(self, file_id: Optional[str]) -> Optional[Dict[str, Any]]:
        for code_file in self.files:
            if code_file.get("id") == file_id:
                return code_file
        return None

    @property
    def active_file(self) -> Optional[Dict[str, Any]]:
        return self.get_file(self.active_file_id)

    @property
    def usernames(self) -> List[str]:
        return [c.get("username", "") for c in self.clients]

    # ------------------------------------------------------------ local edits

    def select(self, file_id: str) -> None:
        """Make a file the locally active one (e.g. user clicked it)."""
        if self.get_file(file_id) is not None:
            self.active_file_id = file_id

    def set_local_content(self, file_id: str, code: str) -> None:
        """Record a local edit before it is sent; the server will not echo it."""
        code_file = self.get_file(file_id)
        if code_file is not None:
            code_file["content"] = code

    # ------------------------------------------------------------- reconcile

    def apply(self, frame: Dict[str, Any]) -> bool:
        """Reconcile one inbound frame.

        Returns:
            True if the frame changed or was consumed by the mirror, False
            if it was ignored (unknown type or another room).
        """
        applier = self._appliers.get(frame.get("type"))
        if applier is None:
            return False
        room_id = frame.get("roomId")
        if room_id is not None and room_id != self.room_id:
            return False
        applier(frame)
        return True

    def _ensure_active(self, preferred: Optional[str] = None) -> None:
        if self.get_file(self.active_file_id) is not None:
            return
        if self.get_file(preferred) is not None:
            self.active_file_id = preferred
        elif self.files:
            self.active_file_id = self.files[0]["id"]
        else:
            self.active_file_id = None

    def _on_connected(self, frame: Dict[str, Any]) -> None:
        self.socket_id = frame.get("socketId")

    def _on_joined(self, frame: Dict[str, Any]) -> None:
        self.clients = list(frame.get("clients", []))
        if "files" in frame:
            self.files = [dict(f) for f in frame["files"]]
            self._ensure_active(frame.get("activeFileId"))

    def _on_disconnected(self, frame: Dict[str, Any]) -> None:
        socket_id = frame.get("socketId")
        self.clients = [c for c in self.clients if c.get("socketId") != socket_id]

    def _on_code_change(self, frame: Dict[str, Any]) -> None:
        code_file = self.get_file(frame.get("fileId"))
        if code_file is not None:
            code_file["content"] = frame.get("code", "")

    def _on_files_synced(self, frame: Dict[str, Any]) -> None:
        self.files = [dict(f) for f in frame.get("files", [])]
        self._ensure_active(frame.get("activeFileId"))

    def _on_file_created(self, frame: Dict[str, Any]) -> None:
        new_file = frame.get("file") or {}
        if new_file.get("id") and self.get_file(new_file["id"]) is None:
            self.files.append(dict(new_file))
        self._ensure_active()

    def _on_file_deleted(self, frame: Dict[str, Any]) -> None:
        file_id = frame.get("fileId")
        self.files = [f for f in self.files if f.get("id") != file_id]
        self._ensure_active(frame.get("activeFileId"))

    def _on_file_renamed(self, frame: Dict[str, Any]) -> None:
        code_file = self.get_file(frame.get("fileId"))
        if code_file is not None:
            code_file["name"] = frame.get("newName", code_file.get("name"))

    def _on_file_switched(self, frame: Dict[str, Any]) -> None:
        file_id = frame.get("fileId")
        code_file = self.get_file(file_id)
        if code_file is not None and "content" in frame:
            code_file["content"] = frame["content"]
        username = frame.get("username")
        if username and file_id:
            self.focus[username] = file_id

    def _on_error(self, frame: Dict[str, Any]) -> None:
        logger.info(f"[Client] Server rejected {frame.get('event')}: {frame.get('error')}")
        self.errors.append(frame)


# =============================================================================
# Live connection
# =============================================================================


class SyncClient:
    """Async context manager joining a room over a real WebSocket.

    Example:
        async with SyncClient("ws://localhost:5000/ws", "r1", "alice") as client:
            await client.recv_until("joined")
            await client.edit(client.mirror.active_file_id, "x = 1")
    """

    def __init__(
        self,
        url: str,
        room_id: str,
        username: str,
        mirror: Optional[RoomMirror] = None,
        handshake_timeout: float = 10.0,
    ) -> None:
        self.url = url
        self.room_id = room_id
        self.username = username
        self.mirror = mirror or RoomMirror(room_id)
        self.handshake_timeout = handshake_timeout
        self._ws = None

    async def __aenter__(self) -> "SyncClient":
        self._ws = await websockets.connect(self.url)
        try:
            await self.recv_until(Events.CONNECTED, timeout=self.handshake_timeout)
            await self.send(join_frame(self.room_id, self.username))
        except BaseException:
            await self._ws.close()
            self._ws = None
            raise
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._ws is not None:
            await self._ws.close()
            self._ws = None

    async def send(self, frame: Dict[str, Any]) -> None:
        if self._ws is None:
            raise RuntimeError("SyncClient is not connected")
        await self._ws.send(json.dumps(frame))

    async def recv(self, timeout: Optional[float] = None) -> Dict[str, Any]:
        """Receive one frame and fold it into the mirror."""
        if self._ws is None:
            raise RuntimeError("SyncClient is not connected")
        raw = await asyncio.wait_for(self._ws.recv(), timeout)
        frame = json.loads(raw)
        self.mirror.apply(frame)
        return frame

    async def recv_until(self, event_type: str, timeout: float = 10.0) -> Dict[str, Any]:
        """Receive (and apply) frames until one of the given type arrives."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise asyncio.TimeoutError(f"no {event_type} frame within {timeout}s")
            frame = await self.recv(timeout=remaining)
            if frame.get("type") == event_type:
                return frame

    # ---------------------------------------------------------------- actions

    async def edit(self, file_id: str, code: str) -> None:
        self.mirror.set_local_content(file_id, code)
        await self.send(code_change_frame(self.room_id, file_id, code))

    async def request_code(self, file_id: str) -> None:
        await self.send(sync_code_frame(self.room_id, file_id))

    async def request_files(self) -> None:
        await self.send(sync_files_frame(self.room_id))

    async def create_file(self, file_name: str, language: Optional[str] = None) -> None:
        await self.send(create_file_frame(self.room_id, file_name, language))

    async def delete_file(self, file_id: str) -> None:
        await self.send(delete_file_frame(self.room_id, file_id))

    async def rename_file(self, file_id: str, new_name: str) -> None:
        await self.send(rename_file_frame(self.room_id, file_id, new_name))

    async def switch_file(self, file_id: str) -> None:
        self.mirror.select(file_id)
        await self.send(switch_file_frame(self.room_id, file_id))
