"""End-to-end tests through the FastAPI websocket and HTTP routes."""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from app import create_app


@pytest.fixture
def execution_client():
    client = AsyncMock()
    client.execute.return_value = {"run": {"output": "42\n"}}
    return client


@pytest.fixture
def client(execution_client):
    app = create_app(execution_client=execution_client, cleanup_delay_seconds=60)
    with TestClient(app) as test_client:
        yield test_client


def send(ws, event, **data):
    ws.send_json({"event": event, "data": data})


def test_join_handshake_and_code_sync(client):
    with client.websocket_connect("/ws") as alice:
        send(alice, "join", roomId="r1", userName="alice")
        assert alice.receive_json() == {"event": "userJoined", "data": ["alice"]}
        sync = alice.receive_json()
        assert sync["event"] == "fileSystemSync"
        assert sorted(sync["data"]) == ["README.md", "src/App.js", "src/utils.js"]

        with client.websocket_connect("/ws") as bob:
            send(bob, "join", roomId="r1", userName="bob")
            assert bob.receive_json() == {"event": "userJoined", "data": ["alice", "bob"]}
            assert bob.receive_json()["event"] == "fileSystemSync"
            assert alice.receive_json() == {"event": "userJoined", "data": ["alice", "bob"]}

            send(alice, "codeChange", roomId="r1", code="// edited", fileName="src/App.js")
            assert bob.receive_json() == {
                "event": "codeUpdate",
                "data": {"fileName": "src/App.js", "content": "// edited", "user": "alice"},
            }

            send(bob, "getRoomInfo", roomId="r1")
            info = bob.receive_json()
            assert info["event"] == "roomInfo"
            assert info["data"]["memberCount"] == 2
            assert info["data"]["activeFiles"] == {"alice": "src/App.js"}

            bob.close()
            assert alice.receive_json() == {"event": "userJoined", "data": ["alice"]}


def test_compile_result_is_broadcast(client, execution_client):
    with client.websocket_connect("/ws") as alice:
        send(alice, "join", roomId="r1", userName="alice")
        alice.receive_json()
        alice.receive_json()

        send(alice, "compileCode", roomId="r1", language="python", version="3.10.0", fileName="main.py", code="print(42)")
        response = alice.receive_json()

    assert response == {
        "event": "codeResponse",
        "data": {"run": {"output": "42\n"}, "fileName": "main.py", "executedBy": "alice"},
    }
    execution_client.execute.assert_awaited_once()


def test_malformed_frame_does_not_close_socket(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_text("garbage")
        send(ws, "join", roomId="r1", userName="alice")
        assert ws.receive_json()["event"] == "userJoined"


def test_stats_and_room_details(client):
    with client.websocket_connect("/ws") as ws:
        send(ws, "join", roomId="r1", userName="alice")
        ws.receive_json()
        ws.receive_json()

        stats = client.get("/api/stats").json()
        assert stats["totalRooms"] == 1
        assert stats["totalUsers"] == 1
        assert stats["rooms"][0]["roomId"] == "r1"
        assert stats["rooms"][0]["userCount"] == 1
        assert stats["rooms"][0]["fileCount"] == 3

        details = client.get("/rooms/r1").json()
        assert details["roomId"] == "r1"
        assert details["members"] == ["alice"]
        assert details["connectionCount"] == 1


def test_room_details_unknown_room(client):
    response = client.get("/rooms/missing")
    assert response.status_code == 404
    assert response.json()["detail"] == "Room not found"


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_rooms_survive_disconnect_until_cleanup(client):
    with client.websocket_connect("/ws") as ws:
        send(ws, "join", roomId="r1", userName="alice")
        ws.receive_json()
        ws.receive_json()

    stats = client.get("/api/stats").json()
    assert stats["totalRooms"] == 1
    assert stats["totalUsers"] == 0


def test_leave_room_reply_reaches_leaver(client):
    with client.websocket_connect("/ws") as ws:
        send(ws, "join", roomId="r1", userName="alice")
        ws.receive_json()
        ws.receive_json()

        send(ws, "leaveRoom", roomId="r1")
        assert ws.receive_json() == {"event": "userJoined", "data": []}
