"""End-to-end tests for the /ws endpoint and the REST surface.

Uses FastAPI's TestClient as in-process WebSocket clients. Negative checks
("nobody else got a frame") are made by having the client ask for a
``files-synced`` reply and asserting it is the very next frame received.
"""


def _join(ws, room_id, username):
    connected = ws.receive_json()
    assert connected["type"] == "connected"
    ws.send_json({"type": "join", "roomId": room_id, "username": username})
    joined = ws.receive_json()
    assert joined["type"] == "joined"
    return connected["socketId"], joined


def _assert_quiet(ws, room_id):
    ws.send_json({"type": "sync-files", "roomId": room_id})
    frame = ws.receive_json()
    assert frame["type"] == "files-synced", frame
    return frame


def test_health(api_client):
    response = api_client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_unknown_room_is_404(api_client):
    response = api_client.get("/rooms/nope")
    assert response.status_code == 404
    assert response.json() == {"detail": "Room not found"}


def test_connected_frame_carries_socket_id(api_client):
    with api_client.websocket_connect("/ws") as ws:
        frame = ws.receive_json()
        assert frame["type"] == "connected"
        assert frame["socketId"]


def test_invalid_json_answered_with_error(api_client):
    with api_client.websocket_connect("/ws") as ws:
        ws.receive_json()
        ws.send_text("{not json")
        frame = ws.receive_json()
        assert frame["type"] == "error"
        assert frame["code"] == "INVALID_EVENT"


def test_deeply_nested_frame_does_not_drop_connection(api_client):
    with api_client.websocket_connect("/ws") as ws:
        _join(ws, "r1", "alice")
        ws.send_text("[" * 200000 + "]" * 200000)
        frame = ws.receive_json()
        assert frame["type"] == "error"
        assert frame["code"] == "INVALID_EVENT"
        _assert_quiet(ws, "r1")


def test_unknown_event_type_ignored(api_client):
    with api_client.websocket_connect("/ws") as ws:
        _join(ws, "r1", "alice")
        ws.send_json({"type": "cursor-move", "roomId": "r1", "line": 3})
        _assert_quiet(ws, "r1")


def test_room_state_visible_over_rest(api_client):
    with api_client.websocket_connect("/ws") as ws:
        socket_id, joined = _join(ws, "r1", "alice")
        response = api_client.get("/rooms/r1")
        assert response.status_code == 200
        body = response.json()
        assert body["roomId"] == "r1"
        assert body["clients"] == [{"socketId": socket_id, "username": "alice"}]
        assert [f["id"] for f in body["files"]] == [f["id"] for f in joined["files"]]
        assert body["activeFileId"] == joined["activeFileId"]


def test_two_participant_session(api_client):
    with api_client.websocket_connect("/ws") as ws_a:
        a_id, joined = _join(ws_a, "r1", "A")
        assert joined["clients"] == [{"socketId": a_id, "username": "A"}]
        assert [f["name"] for f in joined["files"]] == ["index.js"]
        f1 = joined["files"][0]["id"]

        with api_client.websocket_connect("/ws") as ws_b:
            b_id, joined_b = _join(ws_b, "r1", "B")
            assert [c["username"] for c in joined_b["clients"]] == ["A", "B"]
            joined_a = ws_a.receive_json()
            assert joined_a["type"] == "joined"
            assert joined_a["socketId"] == b_id
            assert [c["username"] for c in joined_a["clients"]] == ["A", "B"]

            # Edits go to the others only
            ws_a.send_json({"type": "code-change", "roomId": "r1", "fileId": f1, "code": "x=1"})
            assert ws_b.receive_json() == {"type": "code-change", "roomId": "r1", "fileId": f1, "code": "x=1"}
            synced = _assert_quiet(ws_a, "r1")
            assert synced["files"][0]["content"] == "x=1"

            # sync-code answers only the requester
            ws_b.send_json({"type": "sync-code", "roomId": "r1", "fileId": f1, "socketId": b_id})
            assert ws_b.receive_json()["code"] == "x=1"
            _assert_quiet(ws_a, "r1")

            # File creation reaches both, initiator included
            ws_b.send_json({"type": "create-file", "roomId": "r1", "fileName": "util.js", "language": "javascript"})
            created_b = ws_b.receive_json()
            created_a = ws_a.receive_json()
            assert created_a["type"] == created_b["type"] == "file-created"
            assert created_a["file"] == created_b["file"]
            assert created_a["username"] == "B"
            f2 = created_a["file"]["id"]

            ws_b.send_json({"type": "delete-file", "roomId": "r1", "fileId": f1})
            for ws in (ws_a, ws_b):
                deleted = ws.receive_json()
                assert deleted["type"] == "file-deleted"
                assert deleted["fileId"] == f1
                assert deleted["activeFileId"] == f2

            # Deleting the last file is refused, and only B hears about it
            ws_b.send_json({"type": "delete-file", "roomId": "r1", "fileId": f2})
            error = ws_b.receive_json()
            assert error["type"] == "error"
            assert error["code"] == "LAST_FILE_REJECTED"
            synced = _assert_quiet(ws_a, "r1")
            assert [f["id"] for f in synced["files"]] == [f2]

            ws_a.send_json({"type": "rename-file", "roomId": "r1", "fileId": f2, "newName": "app.js"})
            for ws in (ws_a, ws_b):
                renamed = ws.receive_json()
                assert renamed["type"] == "file-renamed"
                assert renamed["newName"] == "app.js"
                assert renamed["username"] == "A"

    body = api_client.get("/rooms/r1").json()
    assert [f["name"] for f in body["files"]] == ["app.js"]
