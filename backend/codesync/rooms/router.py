"""Read-only room inspection API.

Endpoints:
    GET /rooms/{room_id} - Files, active-file hint and live roster
"""
import logging

from fastapi import APIRouter, HTTPException

from codesync.errors import RoomNotFound
from codesync.gateway.session import gateway

from .schemas import RoomView

logger = logging.getLogger(__name__)

router = APIRouter(tags=["rooms"])


@router.get("/rooms/{room_id}", response_model=RoomView)
async def get_room(room_id: str) -> RoomView:
    """Return a room's current state without creating it.

    Args:
        room_id: The room ID.

    Returns:
        RoomView with files in creation order, the active-file hint and the
        participants currently joined.

    Raises:
        HTTPException: 404 if the room was never created.
    """
    try:
        snapshot = gateway.registry.snapshot(room_id)
    except RoomNotFound:
        raise HTTPException(status_code=404, detail="Room not found")
    clients = gateway.tracker.roster_for(room_id)
    return RoomView(
        roomId=snapshot.roomId,
        files=snapshot.files,
        activeFileId=snapshot.activeFileId,
        clients=clients,
    )
