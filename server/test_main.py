"""
Tests for broadcast orchestration, deferred callbacks and the HTTP/WebSocket
surface in main.py.

Run with: pytest test_main.py -v
"""

import pytest
from fastapi.testclient import TestClient

import main
from ai import reset_all_profiles
from config import config
from games import GamePhase, GameType
from room import RoomManager
from services.chat import ChatHistory
from services.ledger import Ledger


# =============================================================================
# Mock helpers
# =============================================================================

class MockWebSocket:
    """Mock WebSocket that collects sent messages."""

    def __init__(self):
        self.messages: list[dict] = []

    async def send_json(self, data: dict):
        self.messages.append(data)

    def messages_of_type(self, msg_type: str) -> list[dict]:
        return [m for m in self.messages if m.get("type") == msg_type]


@pytest.fixture
def rm(monkeypatch):
    """Fresh process-wide state for main's module globals."""
    ledger = Ledger(starting_wealth=10000)
    chat = ChatHistory(size=10)
    manager = RoomManager(ledger, chat)
    monkeypatch.setattr(main, "ledger", ledger)
    monkeypatch.setattr(main, "room_manager", manager)
    monkeypatch.setattr(main, "chat_history", chat)
    monkeypatch.setattr(config.timing, "teardown_delay", 0.0)
    monkeypatch.setattr(config.timing, "next_round_delay", 0.0)
    monkeypatch.setattr(config.timing, "cpu_think_min", 0.0)
    monkeypatch.setattr(config.timing, "cpu_think_max", 0.0)
    reset_all_profiles()
    yield manager
    reset_all_profiles()


def seat(rm, room_id, game_type, *names, buy_in=None):
    room = rm.get_or_create_room(room_id, game_type)
    sockets = {}
    for i, name in enumerate(names):
        ws = MockWebSocket()
        rm.join(room, f"p{i + 1}", name, ws, ledger_key=name, buy_in=buy_in)
        sockets[f"p{i + 1}"] = ws
    return room, sockets


# =============================================================================
# broadcast_game_state
# =============================================================================

class TestBroadcastGameState:

    @pytest.mark.asyncio
    async def test_events_then_private_views(self, rm):
        room, sockets = seat(rm, "den", GameType.UNO, "Alice", "Bob")
        for p in room.players.values():
            p.ready = True
        room.start_game()

        await main.broadcast_game_state(room)

        for pid, ws in sockets.items():
            started = ws.messages_of_type("game_started")[0]
            assert started["room_id"] == "den"
            state = ws.messages_of_type("game_state")[0]["game_state"]
            own = [c["id"] for c in room.game.get_player(pid).hand]
            assert [c["id"] for c in state["hand"]] == own
        assert room.game.events == []

    @pytest.mark.asyncio
    async def test_round_over_schedules_next_round(self, rm):
        room, sockets = seat(rm, "den", GameType.OVERRIDE, "Alice", buy_in=1000)
        room.players["p1"].ready = True
        room.start_game()
        room.game.place_bet("p1", 100)
        room.game.lock_guess("p1", "high")
        assert room.game.phase == GamePhase.ROUND_OVER

        await main.broadcast_game_state(room)
        await room.next_round_task

        assert room.game.phase == GamePhase.BETTING
        assert room.game.current_round == 2

    @pytest.mark.asyncio
    async def test_finished_settles_and_tears_down(self, rm):
        room, sockets = seat(rm, "den", GameType.OVERRIDE, "Alice", buy_in=1000)
        room.game.get_player("p1").score = 1500
        room.game.phase = GamePhase.FINISHED

        await main.broadcast_game_state(room)

        record = rm.ledger.records["Alice"]
        assert record.total_wealth == 9000 + 1500
        assert record.cumulative_score == 500

        await room.teardown_task
        assert rm.get_room("den") is None
        assert sockets["p1"].messages_of_type("room_destroyed")
        # Settled once even though teardown settles again
        assert rm.ledger.records["Alice"].games_played == 1

    @pytest.mark.asyncio
    async def test_teardown_skips_replaced_room(self, rm):
        room, _ = seat(rm, "den", GameType.OTHELLO, "Alice")
        rm.remove_room("den")
        replacement = rm.get_or_create_room("den", GameType.CONNECT4)

        await main._teardown_after(room, 0)

        assert rm.get_room("den") is replacement


# =============================================================================
# Leaving
# =============================================================================

class TestPlayerLeave:

    @pytest.mark.asyncio
    async def test_leave_mid_match_aborts_and_notifies(self, rm):
        room, sockets = seat(rm, "den", GameType.OTHELLO, "Alice", "Bob")
        room.start_game()

        await main.handle_player_leave(room, "p1")

        assert room.game.phase == GamePhase.LOBBY
        bob = sockets["p2"]
        assert bob.messages_of_type("player_list")[-1]["left"] == "Alice"
        assert bob.messages_of_type("game_aborted")

    @pytest.mark.asyncio
    async def test_last_leave_removes_room(self, rm):
        room, _ = seat(rm, "den", GameType.CONNECT4, "Alice")
        await main.handle_player_leave(room, "p1")
        assert rm.get_room("den") is None

    @pytest.mark.asyncio
    async def test_leave_after_teardown_is_noop(self, rm):
        room, _ = seat(rm, "den", GameType.CONNECT4, "Alice")
        rm.destroy_room(room)
        await main.handle_player_leave(room, "p1")
        assert rm.rooms == {}


# =============================================================================
# CPU turns
# =============================================================================

class TestCpuTurns:

    @pytest.mark.asyncio
    async def test_runs_until_a_human_is_up(self, rm):
        room, _ = seat(rm, "den", GameType.UNO, "Alice")
        room.players["p1"].ready = True
        room.start_game()
        room.game.current_index = 1

        main.check_and_run_cpu_turn(room)
        await room.cpu_task

        current = room.game.current_player()
        assert room.game.phase != GamePhase.PLAYING or not current.is_cpu

    @pytest.mark.asyncio
    async def test_not_started_for_human_turn(self, rm):
        room, _ = seat(rm, "den", GameType.UNO, "Alice")
        room.players["p1"].ready = True
        room.start_game()

        main.check_and_run_cpu_turn(room)

        assert room.cpu_task is None

    @pytest.mark.asyncio
    async def test_not_started_outside_uno(self, rm):
        room, _ = seat(rm, "den", GameType.OTHELLO, "Alice", "Bob")
        room.start_game()
        main.check_and_run_cpu_turn(room)
        assert room.cpu_task is None


# =============================================================================
# HTTP and WebSocket surface
# =============================================================================

@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(config, "REDIS_URL", "")
    with TestClient(main.app) as test_client:
        yield test_client


class TestHttp:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_ready_without_redis(self, client):
        response = client.get("/ready")
        assert response.status_code == 200
        assert response.json()["checks"]["redis"]["status"] == "not_configured"

    def test_metrics(self, client):
        data = client.get("/metrics").json()
        assert "active_rooms" in data
        assert set(data["queued"]) == {t.value for t in GameType}

    def test_leaderboard(self, client):
        main.ledger.get_record("http-test-player")
        data = client.get("/api/leaderboard", params={"limit": 100}).json()
        assert data["total_players"] >= 1
        assert any(e["key"] == "http-test-player" for e in data["entries"])

    def test_leaderboard_limit_validated(self, client):
        assert client.get("/api/leaderboard", params={"limit": 0}).status_code == 422

    def test_unknown_player_404(self, client):
        assert client.get("/api/players/nobody-at-all").status_code == 404


class TestWebSocket:

    def test_join_and_disconnect(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "join_room", "username": "Alice", "room": "ws-den", "game_type": "othello"})
            joined = ws.receive_json()
            assert joined["type"] == "joined"
            assert joined["room_id"] == "ws-den"
            assert ws.receive_json()["type"] == "player_list"
            assert ws.receive_json()["type"] == "waiting"
            assert main.room_manager.get_room("ws-den") is not None

        # Disconnect removes the seat; the empty room goes with it
        assert main.room_manager.get_room("ws-den") is None

    def test_malformed_json_keeps_connection(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_text("{not json")
            error = ws.receive_json()
            assert error["type"] == "error"
            assert error["code"] == "invalid_input"

            ws.send_json({"type": "get_leaderboard"})
            assert ws.receive_json()["type"] == "leaderboard"
