"""Room registry and per-room file store.

The registry is the single source of truth for every room's file set. Rooms
are created lazily on first join, seeded with exactly one default file, and
kept for the life of the process even after every participant has left.

Consistency model:
    Content updates are full replacements. Whichever update the registry
    applies last is the stored content (last write wins); there is no merge
    and no conflict detection.

Locking:
    A registry-level lock guards room creation so that concurrent first
    joins produce a single seeded file. Each room has its own lock guarding
    its file list and active-file hint. No lock is ever held across network
    I/O, so plain ``threading.Lock`` is enough and it stays valid when the
    ASGI server (or the test client) drives handlers from several threads.

Callers only ever receive copies of files and snapshots, never the live
containers.
"""
import logging
import threading
from typing import Dict, List, Optional, Tuple

from codesync.config import RoomsConfig, get_config
from codesync.errors import FileNotFound, InvalidName, LastFileRejected, RoomNotFound

from .schemas import CodeFile, RoomSnapshot

logger = logging.getLogger(__name__)


class Room:
    """Mutable room state. Only the registry touches instances of this class."""

    def __init__(self, room_id: str, seed: CodeFile) -> None:
        self.id = room_id
        self.files: List[CodeFile] = [seed]
        self.active_file_id: Optional[str] = seed.id
        self.lock = threading.Lock()

    def find(self, file_id: Optional[str]) -> Optional[CodeFile]:
        for code_file in self.files:
            if code_file.id == file_id:
                return code_file
        return None

    def require(self, file_id: Optional[str]) -> CodeFile:
        code_file = self.find(file_id)
        if code_file is None:
            raise FileNotFound(self.id, file_id)
        return code_file

    def snapshot(self) -> RoomSnapshot:
        return RoomSnapshot(
            roomId=self.id,
            files=[f.model_copy() for f in self.files],
            activeFileId=self.active_file_id,
        )


class RoomRegistry:
    """Maps room ids to rooms and implements the file store operations.

    Args:
        defaults: Seed values for new rooms/files. When omitted the
            ``rooms`` section of the process config is used at call time.
    """

    def __init__(self, defaults: Optional[RoomsConfig] = None) -> None:
        self._rooms: Dict[str, Room] = {}
        self._lock = threading.Lock()
        self._defaults = defaults

    @property
    def defaults(self) -> RoomsConfig:
        return self._defaults if self._defaults is not None else get_config().rooms

    # =========================================================================
    # Room lifecycle
    # =========================================================================

    def ensure_room(self, room_id: str) -> RoomSnapshot:
        """Return the room's snapshot, creating and seeding it if absent."""
        with self._lock:
            room = self._rooms.get(room_id)
            if room is None:
                defaults = self.defaults
                seed = CodeFile(
                    name=defaults.default_file_name,
                    content=defaults.default_file_content,
                    language=defaults.default_language,
                )
                room = Room(room_id, seed)
                self._rooms[room_id] = room
                logger.info(f"[Registry] Created room {room_id} with seed file {seed.name}")
        with room.lock:
            return room.snapshot()

    def has_room(self, room_id: str) -> bool:
        with self._lock:
            return room_id in self._rooms

    def room_ids(self) -> List[str]:
        with self._lock:
            return list(self._rooms)

    def snapshot(self, room_id: str) -> RoomSnapshot:
        room = self._get(room_id)
        with room.lock:
            return room.snapshot()

    def clear(self) -> None:
        """Forget every room. Only test fixtures call this."""
        with self._lock:
            self._rooms.clear()

    def _get(self, room_id: str) -> Room:
        with self._lock:
            room = self._rooms.get(room_id)
        if room is None:
            raise RoomNotFound(room_id)
        return room

    # =========================================================================
    # File store
    # =========================================================================

    def list_files(self, room_id: str) -> List[CodeFile]:
        """Files in creation order. Raises RoomNotFound for unknown rooms."""
        room = self._get(room_id)
        with room.lock:
            return [f.model_copy() for f in room.files]

    def get_file(self, room_id: str, file_id: str) -> CodeFile:
        room = self._get(room_id)
        with room.lock:
            return room.require(file_id).model_copy()

    def active_file_id(self, room_id: str) -> Optional[str]:
        room = self._get(room_id)
        with room.lock:
            return room.active_file_id

    def create_file(self, room_id: str, name: Optional[str], language: Optional[str] = None) -> CodeFile:
        """Append a new empty file. Duplicate names are allowed."""
        if name is None:
            raise InvalidName("File name is required")
        room = self._get(room_id)
        code_file = CodeFile(name=name, language=language or self.defaults.new_file_language)
        code_file.updatedAt = code_file.createdAt
        with room.lock:
            room.files.append(code_file)
            created = code_file.model_copy()
        logger.info(f"[Registry] Created file {created.id} ({created.name}) in room {room_id}")
        return created

    def rename_file(self, room_id: str, file_id: str, new_name: Optional[str]) -> CodeFile:
        """Rename a file. Blank-name policing happens at the protocol boundary."""
        if new_name is None:
            raise InvalidName("New file name is required")
        room = self._get(room_id)
        with room.lock:
            code_file = room.require(file_id)
            code_file.name = new_name
            code_file.touch()
            renamed = code_file.model_copy()
        logger.info(f"[Registry] Renamed file {file_id} to {new_name} in room {room_id}")
        return renamed

    def delete_file(self, room_id: str, file_id: str) -> Tuple[CodeFile, Optional[str]]:
        """Remove a file, refusing to empty the room.

        Returns:
            Tuple of (deleted_file, active_file_id) where active_file_id is
            the room's hint after the deletion. If the deleted file was the
            hint, it moves to the first remaining file.
        """
        room = self._get(room_id)
        with room.lock:
            code_file = room.require(file_id)
            if len(room.files) <= 1:
                raise LastFileRejected(room_id, file_id)
            room.files = [f for f in room.files if f.id != file_id]
            if room.active_file_id == file_id:
                room.active_file_id = room.files[0].id
            active = room.active_file_id
        logger.info(f"[Registry] Deleted file {file_id} ({code_file.name}) from room {room_id}")
        return code_file, active

    def update_content(self, room_id: str, file_id: str, content: str) -> CodeFile:
        """Replace a file's content wholesale (last write wins)."""
        room = self._get(room_id)
        with room.lock:
            code_file = room.require(file_id)
            code_file.content = content
            code_file.touch()
            return code_file.model_copy()

    def switch_active(self, room_id: str, file_id: str) -> CodeFile:
        """Move the room's advisory active-file hint."""
        room = self._get(room_id)
        with room.lock:
            code_file = room.require(file_id)
            room.active_file_id = code_file.id
            return code_file.model_copy()


# Global singleton shared by the gateway and the REST router
registry = RoomRegistry()
