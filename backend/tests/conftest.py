"""Shared test fixtures and configuration for backend tests."""
import json

import pytest
from fastapi.testclient import TestClient

from codesync.config import AppConfig, RoomsConfig, reset_config, set_config
from codesync.gateway.connections import ConnectionManager
from codesync.gateway.session import SessionGateway, gateway
from codesync.main import app
from codesync.membership.tracker import MembershipTracker
from codesync.rooms.registry import RoomRegistry


class FakeSocket:
    """Stands in for a WebSocket: records every frame sent to it."""

    def __init__(self) -> None:
        self.accepted = False
        self.closed = False
        self.sent = []

    async def accept(self) -> None:
        self.accepted = True

    async def send_json(self, message: dict) -> None:
        if self.closed:
            raise RuntimeError("socket is closed")
        self.sent.append(message)

    def of_type(self, event_type: str) -> list:
        return [m for m in self.sent if m["type"] == event_type]

    def drain(self) -> list:
        frames, self.sent = self.sent, []
        return frames


class Hub:
    """A fully wired, isolated gateway driven with fake sockets."""

    def __init__(self, defaults: RoomsConfig = None) -> None:
        self.registry = RoomRegistry(defaults or RoomsConfig())
        self.transport = ConnectionManager()
        self.tracker = MembershipTracker(self.transport)
        self.gateway = SessionGateway(self.registry, self.tracker, self.transport)

    async def connect(self):
        sock = FakeSocket()
        connection_id = await self.transport.connect(sock)
        return connection_id, sock

    async def send(self, connection_id: str, frame) -> None:
        raw = frame if isinstance(frame, str) else json.dumps(frame)
        await self.gateway.handle_frame(connection_id, raw)

    async def join(self, room_id: str, username: str):
        connection_id, sock = await self.connect()
        await self.send(connection_id, {"type": "join", "roomId": room_id, "username": username})
        return connection_id, sock


@pytest.fixture(autouse=True)
def reset_state():
    """Default config and empty global state for every test."""
    set_config(AppConfig())
    gateway.registry.clear()
    gateway.tracker.clear()
    gateway.transport.clear()
    yield
    gateway.registry.clear()
    gateway.tracker.clear()
    gateway.transport.clear()
    reset_config()


@pytest.fixture
def hub():
    """Provide an isolated gateway wired to fake sockets."""
    return Hub()


@pytest.fixture
def api_client():
    """Provide a TestClient for the main FastAPI app.

    Entering the client runs every WebSocket session on one shared event
    loop, so frames broadcast by one session's handler reach the others
    in order.
    """
    with TestClient(app) as client:
        yield client
