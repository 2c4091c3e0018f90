"""
End-to-end tests over real WebSockets using FastAPI TestClient.
Tests: identify, full poll round, late join, host/player disconnect, REST.
"""
import pytest
from fastapi.testclient import TestClient

from config import Settings
from main import create_app


@pytest.fixture
def client():
    with TestClient(create_app()) as c:
        yield c


def recv_until(ws, msg_type, max_messages=20):
    """Receive WS messages until we get the expected type."""
    for _ in range(max_messages):
        data = ws.receive_json()
        if data.get("type") == msg_type:
            return data
    raise TimeoutError(f"Never received {msg_type} after {max_messages} messages")


def identify(ws, role):
    ws.send_json({"type": "identify", "role": role})
    assert ws.receive_json() == {"type": "identified", "role": role}


def create_game(ws, question="Pick a color", options=("Red", "Blue")):
    ws.send_json({"type": "host:create_game", "question": question, "options": list(options)})
    msg = ws.receive_json()
    assert msg["type"] == "host:game_created"
    return msg["code"]


def join(ws, code, name):
    ws.send_json({"type": "player:join", "code": code, "name": name})
    return ws.receive_json()


# =====================================================================
# Full round
# =====================================================================

class TestPollRound:
    def test_pick_a_color(self, client):
        with client.websocket_connect("/ws") as host, client.websocket_connect("/ws") as ann:
            identify(host, "host")
            code = create_game(host)
            assert len(code) == 6 and code.isdigit()

            identify(ann, "player")
            assert join(ann, code, "Ann") == {
                "type": "player:joined", "code": code, "question": None, "options": None,
            }
            players = recv_until(host, "host:players_updated")["players"]
            assert [(p["name"], p["hasVoted"]) for p in players] == [("Ann", False)]

            host.send_json({"type": "host:start_poll"})
            recv_until(host, "host:poll_started")
            assert ann.receive_json() == {
                "type": "poll:start", "question": "Pick a color", "options": ["Red", "Blue"],
            }

            ann.send_json({"type": "player:vote", "choiceIndex": 0})
            assert ann.receive_json() == {"type": "player:voted", "choiceIndex": 0}
            assert recv_until(host, "host:poll_progress")["results"] == [1, 0]

            host.send_json({"type": "host:end_poll"})
            assert recv_until(host, "host:poll_results")["results"] == [1, 0]
            final = ann.receive_json()
            assert final["type"] == "poll:results"
            assert final["results"] == [1, 0]
            assert final["options"] == ["Red", "Blue"]

    def test_late_joiner_gets_live_question(self, client):
        with client.websocket_connect("/ws") as host, client.websocket_connect("/ws") as late:
            identify(host, "host")
            code = create_game(host)
            host.send_json({"type": "host:start_poll"})
            recv_until(host, "host:poll_started")

            identify(late, "player")
            joined = join(late, code, "Late")
            assert joined["question"] == "Pick a color"
            assert late.receive_json()["type"] == "poll:start"

    def test_update_with_one_option_is_rejected(self, client):
        with client.websocket_connect("/ws") as host:
            identify(host, "host")
            code = create_game(host)
            host.send_json({"type": "host:update_poll", "question": "New?", "options": ["Only"]})
            assert host.receive_json()["type"] == "error"

            host.send_json({"type": "host:start_poll"})
            recv_until(host, "host:poll_started")
            with client.websocket_connect("/ws") as ann:
                identify(ann, "player")
                joined = join(ann, code, "Ann")
                assert joined["question"] == "Pick a color"
                assert joined["options"] == ["Red", "Blue"]


# =====================================================================
# Errors
# =====================================================================

class TestErrors:
    def test_garbage_frame(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_text("definitely not json")
            assert ws.receive_json() == {"type": "error", "message": "Invalid JSON payload received."}
            # Connection survives a bad frame
            identify(ws, "player")

    def test_unknown_code(self, client):
        with client.websocket_connect("/ws") as ws:
            identify(ws, "player")
            msg = join(ws, "000000", "Ann")
            assert msg == {"type": "error", "message": "No game found with that code."}

    def test_player_cannot_start_poll(self, client):
        with client.websocket_connect("/ws") as ws:
            identify(ws, "player")
            ws.send_json({"type": "host:start_poll", "role": "host"})
            assert ws.receive_json() == {"type": "error", "message": "Only hosts can start polls."}


# =====================================================================
# Disconnects
# =====================================================================

class TestDisconnects:
    def test_host_disconnect_ends_game(self, client):
        with client.websocket_connect("/ws") as ann, client.websocket_connect("/ws") as bob:
            with client.websocket_connect("/ws") as host:
                identify(host, "host")
                code = create_game(host)
                for ws, name in ((ann, "Ann"), (bob, "Bob")):
                    identify(ws, "player")
                    assert join(ws, code, name)["type"] == "player:joined"
                host.send_json({"type": "host:start_poll"})
                recv_until(host, "host:poll_started")
                assert ann.receive_json()["type"] == "poll:start"
                assert bob.receive_json()["type"] == "poll:start"

            for ws in (ann, bob):
                assert ws.receive_json() == {
                    "type": "game:ended",
                    "message": "The host has disconnected. The poll has ended.",
                }
            assert client.get(f"/api/games/{code}").status_code == 404

    def test_player_disconnect_updates_roster(self, client):
        with client.websocket_connect("/ws") as host:
            identify(host, "host")
            code = create_game(host)
            with client.websocket_connect("/ws") as ann:
                identify(ann, "player")
                join(ann, code, "Ann")
                recv_until(host, "host:players_updated")

            assert recv_until(host, "host:players_updated")["players"] == []
            assert client.get(f"/api/games/{code}").json()["players"] == 0


# =====================================================================
# REST
# =====================================================================

class TestRest:
    def test_health(self, client):
        res = client.get("/api/health")
        assert res.status_code == 200
        assert res.json() == {"status": "ok", "sessions": 0, "ws_clients": 0}

    def test_game_lookup(self, client):
        with client.websocket_connect("/ws") as host:
            identify(host, "host")
            code = create_game(host)
            res = client.get(f"/api/games/{code}")
            assert res.status_code == 200
            assert res.json() == {"code": code, "state": "lobby", "players": 0}

    def test_unknown_game_lookup(self, client):
        assert client.get("/api/games/999999").status_code == 404

    def test_apps_do_not_share_sessions(self):
        with TestClient(create_app()) as a, TestClient(create_app()) as b:
            with a.websocket_connect("/ws") as host:
                identify(host, "host")
                code = create_game(host)
                assert b.get(f"/api/games/{code}").status_code == 404


# =====================================================================
# Binary frames
# =====================================================================

class TestBinaryFrames:
    def test_binary_json_from_host_is_applied(self, client):
        with client.websocket_connect("/ws") as host, client.websocket_connect("/ws") as ann:
            identify(host, "host")
            code = create_game(host)
            identify(ann, "player")
            assert join(ann, code, "Ann")["type"] == "player:joined"
            recv_until(host, "host:players_updated")

            host.send_bytes(b'{"type": "host:start_poll"}')
            recv_until(host, "host:poll_started")
            assert ann.receive_json()["type"] == "poll:start"
            assert client.get(f"/api/games/{code}").json()["state"] == "active"

    def test_undecodable_binary_frame_keeps_session(self, client):
        with client.websocket_connect("/ws") as host, client.websocket_connect("/ws") as ann:
            identify(host, "host")
            code = create_game(host)
            identify(ann, "player")
            join(ann, code, "Ann")
            recv_until(host, "host:players_updated")

            host.send_bytes(b"\x80\x81\x82 not utf-8")
            assert host.receive_json() == {"type": "error", "message": "Invalid JSON payload received."}

            # Host is still connected and still in charge
            host.send_json({"type": "host:start_poll"})
            recv_until(host, "host:poll_started")
            assert ann.receive_json()["type"] == "poll:start"


# =====================================================================
# Disconnect ordering
# =====================================================================

def test_session_is_cleaned_up_before_writer_shutdown():
    app = create_app()
    store = app.state.store
    manager = app.state.manager
    live_at_shutdown = []
    original = manager.disconnect

    async def recording_disconnect(conn):
        live_at_shutdown.append(conn.session_code in store)
        await original(conn)

    manager.disconnect = recording_disconnect
    with TestClient(app) as client:
        with client.websocket_connect("/ws") as ann:
            with client.websocket_connect("/ws") as host:
                identify(host, "host")
                code = create_game(host)
                identify(ann, "player")
                assert join(ann, code, "Ann")["type"] == "player:joined"
            assert ann.receive_json()["type"] == "game:ended"

    assert live_at_shutdown and not any(live_at_shutdown)


def test_custom_settings_reach_poll_rules():
    class ThreeOptions(Settings):
        MAX_OPTIONS = 3

    with TestClient(create_app(ThreeOptions())) as client:
        with client.websocket_connect("/ws") as host:
            identify(host, "host")
            host.send_json({"type": "host:create_game", "question": "Q", "options": list("abcde")})
            assert host.receive_json()["options"] == ["a", "b", "c"]
