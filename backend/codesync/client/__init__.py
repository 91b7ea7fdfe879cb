"""Python client that mirrors a room's roster and files locally."""

from .agent import RoomMirror, SyncClient

__all__ = ["RoomMirror", "SyncClient"]
