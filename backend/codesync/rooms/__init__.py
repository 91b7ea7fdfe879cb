"""Room registry and per-room file store."""

from .registry import Room, RoomRegistry, registry
from .schemas import CodeFile, Participant, RoomSnapshot, RoomView

__all__ = [
    "CodeFile",
    "Participant",
    "Room",
    "RoomRegistry",
    "RoomSnapshot",
    "RoomView",
    "registry",
]
