"""WebSocket endpoint for real-time collaborative editing.

Protocol Flow:
    1. Client connects -> server assigns a connection id
       -> server sends: {type: "connected", socketId}
    2. Client sends: {type: "join", roomId, username}
       -> server broadcasts: {type: "joined", clients, username, socketId,
          files, activeFileId}
    3. Client sends file events (code-change, create-file, ...)
       -> server applies them and fans out the results
    4. On disconnect -> server broadcasts: {type: "disconnected", socketId,
       username} to every room the connection had joined

See codesync.gateway.session for the per-event semantics.
"""
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from codesync.errors import TransportError

from .protocol import Events
from .session import gateway

logger = logging.getLogger(__name__)

router = APIRouter()


async def _receive_frame(websocket: WebSocket):
    """Next text or binary payload; raises WebSocketDisconnect on close."""
    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(message.get("code", 1000))
    if message.get("text") is not None:
        return message["text"]
    return message.get("bytes") or b""


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """Run the receive loop for one collaborating client.

    Args:
        websocket: The WebSocket connection.
    """
    connection_id = await gateway.transport.connect(websocket)
    logger.info(f"[WS] New connection {connection_id}")

    try:
        await gateway.transport.send(connection_id, {
            "type": Events.CONNECTED,
            "socketId": connection_id,
        })
        while True:
            raw = await _receive_frame(websocket)
            await gateway.handle_frame(connection_id, raw)
    except WebSocketDisconnect as exc:
        logger.info(f"[WS] Connection {connection_id} closed (code={exc.code})")
    except TransportError as exc:
        logger.warning(f"[WS] Connection {connection_id} failed: {exc.message}")
    finally:
        await gateway.handle_disconnect(connection_id)
