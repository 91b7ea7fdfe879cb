"""Pydantic schemas for rooms and their files.

Field names are camelCase because these models are dumped straight onto
the wire (``model_dump()``), the same shape the browser client consumes.
Timestamps are integer milliseconds since the epoch.
"""
import time
import uuid
from typing import List, Optional

from pydantic import BaseModel, Field


def now_ms() -> int:
    """Current wall-clock time in integer milliseconds."""
    return int(time.time() * 1000)


class CodeFile(BaseModel):
    """A single file inside a room.

    Attributes:
        id: Unique identifier, immutable for the file's lifetime.
        name: Display name including extension.
        content: Full text content (last write wins).
        language: Presentation tag; any string is accepted.
        createdAt: Creation time in ms.
        updatedAt: Last content or metadata mutation in ms.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Unique file ID")
    name: str = Field(..., description="Display name including extension")
    content: str = Field(default="", description="Full text content")
    language: str = Field(default="javascript", description="Presentation language tag")
    createdAt: int = Field(default_factory=now_ms, description="Creation timestamp (ms)")
    updatedAt: int = Field(default_factory=now_ms, description="Last mutation timestamp (ms)")

    def touch(self) -> None:
        """Bump updatedAt without ever moving it backwards."""
        self.updatedAt = max(self.updatedAt, now_ms())


class Participant(BaseModel):
    """One roster entry: a joined connection and its display name."""
    socketId: str
    username: str = ""


class RoomSnapshot(BaseModel):
    """Point-in-time copy of a room's file set."""
    roomId: str
    files: List[CodeFile] = Field(default_factory=list)
    activeFileId: Optional[str] = None


class RoomView(RoomSnapshot):
    """Snapshot plus live roster, returned by the inspection endpoint."""
    clients: List[Participant] = Field(default_factory=list)
