"""Wire protocol for the collaboration WebSocket.

Every frame is a JSON object whose ``type`` key names the event. Inbound
frames are validated into one tagged model per event kind; the gateway
dispatches on the model class.

Client -> server:
    join, code-change, sync-code, sync-files,
    create-file, delete-file, rename-file, switch-file

Server -> client:
    connected, joined, disconnected, code-change, files-synced,
    file-created, file-deleted, file-renamed, file-switched, error
"""
import json
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from codesync.errors import CodeSyncError, InvalidEvent


class Events:
    """Literal event identifiers."""
    CONNECTED = "connected"
    JOIN = "join"
    JOINED = "joined"
    DISCONNECTED = "disconnected"
    CODE_CHANGE = "code-change"
    SYNC_CODE = "sync-code"
    SYNC_FILES = "sync-files"
    FILES_SYNCED = "files-synced"
    CREATE_FILE = "create-file"
    FILE_CREATED = "file-created"
    DELETE_FILE = "delete-file"
    FILE_DELETED = "file-deleted"
    RENAME_FILE = "rename-file"
    FILE_RENAMED = "file-renamed"
    SWITCH_FILE = "switch-file"
    FILE_SWITCHED = "file-switched"
    ERROR = "error"


# =============================================================================
# Inbound events
# =============================================================================


class _Inbound(BaseModel):
    model_config = ConfigDict(extra="ignore")


class JoinEvent(_Inbound):
    type: Literal["join"]
    roomId: str = Field(..., min_length=1)
    username: str = ""


class CodeChangeEvent(_Inbound):
    type: Literal["code-change"]
    roomId: str
    fileId: str
    code: str


class SyncCodeEvent(_Inbound):
    type: Literal["sync-code"]
    roomId: str
    fileId: str
    # Older clients name themselves here; the reply always goes to the sender
    socketId: Optional[str] = None


class SyncFilesEvent(_Inbound):
    type: Literal["sync-files"]
    roomId: str


class CreateFileEvent(_Inbound):
    type: Literal["create-file"]
    roomId: str
    # Older clients send "filename"
    fileName: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("fileName", "filename")
    )
    language: Optional[str] = None
    username: Optional[str] = None


class DeleteFileEvent(_Inbound):
    type: Literal["delete-file"]
    roomId: str
    fileId: str
    username: Optional[str] = None


class RenameFileEvent(_Inbound):
    type: Literal["rename-file"]
    roomId: str
    fileId: str
    newName: Optional[str] = None
    username: Optional[str] = None


class SwitchFileEvent(_Inbound):
    type: Literal["switch-file"]
    roomId: str
    fileId: str
    username: Optional[str] = None


InboundEvent = Annotated[
    Union[
        JoinEvent,
        CodeChangeEvent,
        SyncCodeEvent,
        SyncFilesEvent,
        CreateFileEvent,
        DeleteFileEvent,
        RenameFileEvent,
        SwitchFileEvent,
    ],
    Field(discriminator="type"),
]

INBOUND_EVENT_TYPES = (
    JoinEvent,
    CodeChangeEvent,
    SyncCodeEvent,
    SyncFilesEvent,
    CreateFileEvent,
    DeleteFileEvent,
    RenameFileEvent,
    SwitchFileEvent,
)

INBOUND_EVENT_NAMES = frozenset({
    Events.JOIN,
    Events.CODE_CHANGE,
    Events.SYNC_CODE,
    Events.SYNC_FILES,
    Events.CREATE_FILE,
    Events.DELETE_FILE,
    Events.RENAME_FILE,
    Events.SWITCH_FILE,
})

_inbound_adapter = TypeAdapter(InboundEvent)


def parse_event(raw: Union[str, bytes, Dict[str, Any]]):
    """Turn a raw frame into an inbound event model.

    Returns:
        The validated event, or None when the frame names an event type
        this server does not handle (such frames are ignored).

    Raises:
        InvalidEvent: The frame is not a JSON object, or a known event has
            an invalid payload.
    """
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except (ValueError, RecursionError) as exc:
            raise InvalidEvent(f"Frame is not valid JSON: {exc}") from exc
    else:
        data = raw

    if not isinstance(data, dict):
        raise InvalidEvent("Frame must be a JSON object")

    event_type = data.get("type")
    if not isinstance(event_type, str) or event_type not in INBOUND_EVENT_NAMES:
        return None

    try:
        return _inbound_adapter.validate_python(data)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        raise InvalidEvent(f"Invalid {event_type} payload: {fields}", event=event_type) from exc


# =============================================================================
# Outbound helpers
# =============================================================================


def error_frame(error: CodeSyncError, event: Optional[str] = None) -> dict:
    """Rejection acknowledgment sent to the initiating connection only."""
    return {
        "type": Events.ERROR,
        "event": event,
        "code": error.code,
        "error": error.message,
    }
