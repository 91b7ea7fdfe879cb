"""Error taxonomy shared by the room store, the gateway and the client agent.

Every error carries a wire ``code``; the gateway turns rejections into
``{"type": "error", "code": ...}`` frames for the initiating connection.
"""
from typing import Optional


class CodeSyncError(Exception):
    """Base exception for collaboration errors."""
    code = "ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class RoomNotFound(CodeSyncError):
    """Raised when a room id was never created."""
    code = "ROOM_NOT_FOUND"

    def __init__(self, room_id: str):
        self.room_id = room_id
        super().__init__(f"Room {room_id} not found")


class FileNotFound(CodeSyncError):
    """Raised when a file id does not exist in the room."""
    code = "FILE_NOT_FOUND"

    def __init__(self, room_id: str, file_id: Optional[str]):
        self.room_id = room_id
        self.file_id = file_id
        super().__init__(f"File {file_id} not found in room {room_id}")


class LastFileRejected(CodeSyncError):
    """Raised when deleting the only remaining file of a room."""
    code = "LAST_FILE_REJECTED"

    def __init__(self, room_id: str, file_id: str):
        self.room_id = room_id
        self.file_id = file_id
        super().__init__("Cannot delete the last file in a room")


class InvalidName(CodeSyncError):
    """Raised for missing, empty or whitespace-only file names."""
    code = "INVALID_NAME"

    def __init__(self, message: str = "File name cannot be empty"):
        super().__init__(message)


class InvalidEvent(CodeSyncError):
    """Raised for frames that are not valid protocol events."""
    code = "INVALID_EVENT"

    def __init__(self, message: str, event: Optional[str] = None):
        self.event = event
        super().__init__(message)


class RoomFull(CodeSyncError):
    """Raised when a join would exceed the configured participant limit."""
    code = "ROOM_FULL"

    def __init__(self, room_id: str, limit: int):
        self.room_id = room_id
        self.limit = limit
        super().__init__(f"Room {room_id} is full ({limit} participants)")


class TransportError(CodeSyncError):
    """Raised when a frame cannot be delivered to a connection."""
    code = "TRANSPORT_ERROR"

    def __init__(self, connection_id: str, message: str = "send failed"):
        self.connection_id = connection_id
        super().__init__(f"Connection {connection_id}: {message}")
