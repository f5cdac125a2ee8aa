"""FastAPI WebSocket server for the Arcade game host."""

import asyncio
import json
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from ai import process_cpu_turn, reset_all_profiles
from config import config
from errors import InvalidInput
from games import GamePhase, GameType
from handlers import ConnectionContext, dispatch
from logging_config import connection_id_var, room_id_var, setup_logging
from room import Room, RoomManager
from services.chat import ChatHistory
from services.ledger import Ledger
from services.matchmaking import MatchmakingService
from stores.snapshot_store import SnapshotStore

setup_logging(
    level=config.LOG_LEVEL,
    environment=config.ENVIRONMENT,
)
logger = logging.getLogger(__name__)


# =============================================================================
# Process-wide state
# =============================================================================

ledger = Ledger()
chat_history = ChatHistory()
room_manager = RoomManager(ledger, chat_history)
matchmaking_service = MatchmakingService()
_snapshot_store: Optional[SnapshotStore] = None


async def _init_snapshot_store() -> None:
    global _snapshot_store
    try:
        _snapshot_store = await SnapshotStore.create(config.REDIS_URL, config.SNAPSHOT_KEY_PREFIX)
    except Exception as e:
        logger.warning(f"Redis connection failed: {e} - ledger will not persist")
        _snapshot_store = None
        return

    await _snapshot_store.load(ledger, chat_history)
    _snapshot_store.start(ledger, chat_history, config.SNAPSHOT_INTERVAL_SECONDS)


async def _shutdown_services() -> None:
    """Stop background work, settle every seat and write a final snapshot."""
    await matchmaking_service.stop()

    await _close_all_websockets()
    for room in list(room_manager.rooms.values()):
        room_manager.destroy_room(room)
    reset_all_profiles()
    logger.info("All rooms settled and closed")

    if _snapshot_store:
        await _snapshot_store.save(ledger, chat_history, force=True)
        await _snapshot_store.close()
        logger.info("Redis connection closed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for async service initialization."""
    if config.REDIS_URL:
        await _init_snapshot_store()
    else:
        logger.warning("REDIS_URL not configured - ledger and chat are in-memory only")

    from routers.health import set_health_dependencies
    from routers.leaderboard import set_ledger
    set_health_dependencies(
        redis_client=_snapshot_store.redis if _snapshot_store else None,
        room_manager=room_manager,
        matchmaking_service=matchmaking_service,
    )
    set_ledger(ledger)

    await matchmaking_service.start()
    logger.info(f"Arcade server started (environment={config.ENVIRONMENT})")

    yield

    logger.info("Shutdown initiated...")
    await _shutdown_services()
    logger.info("Shutdown complete")


async def _close_all_websockets() -> None:
    for room in list(room_manager.rooms.values()):
        for player in room.players.values():
            if player.websocket and not player.is_cpu:
                try:
                    await player.websocket.close(code=1001, reason="Server shutting down")
                except Exception as e:
                    logger.debug(f"Close for {player.id[:8]} failed: {e}")


app = FastAPI(
    title="Arcade Game Host",
    debug=config.DEBUG,
    version="1.0.0",
    lifespan=lifespan,
)


# =============================================================================
# Routers
# =============================================================================

from routers.health import router as health_router
from routers.leaderboard import router as leaderboard_router
app.include_router(health_router)
app.include_router(leaderboard_router)


# =============================================================================
# Broadcast and deferred callbacks
# =============================================================================

def _room_alive(room: Room) -> bool:
    return room_manager.get_room(room.id) is room


async def broadcast_game_state(room: Room) -> None:
    """
    Push queued engine notifications, then each human's own view of the state.

    Also schedules whatever the new phase implies: the next-round countdown
    after a round, or settlement and teardown after the match.
    """
    for event in room.game.drain_events():
        await room.broadcast({"room_id": room.id, **event})

    for pid, player in list(room.players.items()):
        if player.is_cpu or not player.websocket:
            continue
        await room.send_to(pid, {
            "type": "game_state",
            "room_id": room.id,
            "game_state": room.game.get_state(pid),
        })

    if room.game.phase == GamePhase.ROUND_OVER:
        _schedule_next_round(room)
    elif room.game.phase == GamePhase.FINISHED:
        room.settle_all(ledger)
        _schedule_teardown(room)


def _schedule_next_round(room: Room) -> None:
    if room.next_round_task is None or room.next_round_task.done():
        room.next_round_task = asyncio.create_task(
            _next_round_after(room, config.timing.next_round_delay)
        )


async def _next_round_after(room: Room, delay: float) -> None:
    await asyncio.sleep(delay)
    if not _room_alive(room):
        return
    async with room.game_lock:
        if not _room_alive(room):
            return
        room.next_round_task = None
        if room.game.start_next_round():
            await broadcast_game_state(room)


def _schedule_teardown(room: Room) -> None:
    if room.teardown_task is None:
        room.teardown_task = asyncio.create_task(
            _teardown_after(room, config.timing.teardown_delay)
        )


async def _teardown_after(room: Room, delay: float) -> None:
    await asyncio.sleep(delay)
    if not _room_alive(room):
        return
    async with room.game_lock:
        if not _room_alive(room):
            return
        room.teardown_task = None
        await room.broadcast({"type": "room_destroyed", "room_id": room.id, "reason": "Game over"})
        room_manager.destroy_room(room)


def check_and_run_cpu_turn(room: Room) -> None:
    """Start the CPU turn runner if a CPU seat is up and none is running."""
    if room.game_type != GameType.UNO:
        return
    if room.cpu_task and not room.cpu_task.done():
        return
    current = room.game.current_player()
    if room.game.phase != GamePhase.PLAYING or not current or not current.is_cpu:
        return
    room.cpu_task = asyncio.create_task(_run_cpu_turns(room))


async def _run_cpu_turns(room: Room) -> None:
    """Play CPU turns back to back until a human is up or the match ends."""

    async def broadcast_cb():
        await broadcast_game_state(room)

    while True:
        async with room.game_lock:
            if not _room_alive(room):
                return
            current = room.game.current_player()
            if room.game.phase != GamePhase.PLAYING or not current or not current.is_cpu:
                return
            try:
                await process_cpu_turn(room.game, current, broadcast_cb)
            except Exception:
                logger.exception(f"CPU turn failed in room {room.id}", extra={"room_id": room.id})
                return


async def handle_player_leave(room: Room, player_id: str) -> None:
    """Remove a player (leave or disconnect) and tell whoever remains."""
    async with room.game_lock:
        if not _room_alive(room):
            return
        was_active = room.game.is_active
        room_player = room_manager.leave(room, player_id)
        if room_player is None or not _room_alive(room):
            return

        if was_active:
            for task in (room.next_round_task, room.cpu_task):
                if task and not task.done():
                    task.cancel()
            room.next_round_task = None
            room.cpu_task = None

        logger.info(f"{room_player.name} left room {room.id}", extra={"room_id": room.id})
        await room.broadcast({
            "type": "player_list",
            "players": room.player_list(),
            "left": room_player.name,
        })
        await broadcast_game_state(room)


# =============================================================================
# WebSocket endpoint
# =============================================================================

@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    await websocket.accept()

    connection_id = str(uuid.uuid4())
    token = connection_id_var.set(connection_id)
    logger.debug(f"WebSocket connected as {connection_id}")

    ctx = ConnectionContext(
        websocket=websocket,
        connection_id=connection_id,
        player_id=connection_id,
        account_id=websocket.query_params.get("account_id"),
    )

    # Shared dependencies passed to every handler
    handler_deps = dict(
        room_manager=room_manager,
        broadcast_game_state=broadcast_game_state,
        check_and_run_cpu_turn=check_and_run_cpu_turn,
        handle_player_leave=handle_player_leave,
        matchmaking_service=matchmaking_service,
        chat_history=chat_history,
    )

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                data = json.loads(raw)
            except ValueError:
                await websocket.send_json(InvalidInput("Malformed JSON").to_message())
                continue

            room_id_var.set(ctx.current_room.id if ctx.current_room else None)
            try:
                await dispatch(data, ctx, **handler_deps)
            except WebSocketDisconnect:
                raise
            except Exception:
                # One bad message must not take down the connection or its room
                logger.exception(f"Unhandled error for message {data.get('type') if isinstance(data, dict) else data!r}")
                await websocket.send_json({"type": "error", "code": "internal", "message": "Internal error"})
    except WebSocketDisconnect:
        logger.debug(f"WebSocket {connection_id} disconnected")
    finally:
        matchmaking_service.leave_queue(connection_id)
        if ctx.current_room:
            await handle_player_leave(ctx.current_room, ctx.player_id)
        connection_id_var.reset(token)


def run():
    """Run the server using uvicorn."""
    import uvicorn

    logger.info(f"Starting Arcade server on {config.HOST}:{config.PORT}")
    uvicorn.run(
        "main:app",
        host=config.HOST,
        port=config.PORT,
        reload=config.DEBUG,
        log_level=config.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
