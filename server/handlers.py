"""WebSocket message handlers for the Arcade server.

Each handler corresponds to a single message type from the client and is
dispatched via the HANDLERS dict. Rule violations surface as GameError
subclasses; dispatch() reports them to the acting connection only.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import WebSocket

from config import config
from errors import GameError, IllegalMove, InvalidInput
from games import GamePhase, GameType
from room import Room
from services.ledger import Ledger

logger = logging.getLogger(__name__)


@dataclass
class ConnectionContext:
    """State tracked per WebSocket connection."""

    websocket: WebSocket
    connection_id: str
    player_id: str
    account_id: Optional[str] = None
    name: Optional[str] = None
    current_room: Optional[Room] = None


def _clean_text(value, field_name: str, max_length: int) -> str:
    text = str(value or "").strip()
    if not text:
        raise InvalidInput(f"Missing {field_name}")
    return text[:max_length]


def _require_room(ctx: ConnectionContext, room_manager) -> Room:
    """The caller's room, dropping references to rooms already torn down."""
    room = ctx.current_room
    if room is not None and room_manager.get_room(room.id) is not room:
        ctx.current_room = None
        room = None
    if room is None:
        raise InvalidInput("Not in a room")
    return room


def _as_int(value, field_name: str, error: type[GameError] = IllegalMove) -> int:
    if isinstance(value, bool):
        raise error(f"Invalid {field_name}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise error(f"Invalid {field_name}")


# ---------------------------------------------------------------------------
# Lobby / Room handlers
# ---------------------------------------------------------------------------

async def handle_join_room(
    data: dict,
    ctx: ConnectionContext,
    *,
    room_manager,
    broadcast_game_state,
    matchmaking_service=None,
    chat_history=None,
    **kw,
) -> None:
    name = _clean_text(data.get("username") or data.get("name"), "username", config.MAX_NAME_LENGTH)
    room_id = _clean_text(data.get("room") or data.get("room_id"), "room", config.MAX_ROOM_ID_LENGTH)

    if ctx.current_room and room_manager.get_room(ctx.current_room.id) is ctx.current_room:
        raise InvalidInput("Leave your current room first")

    buy_in = data.get("buy_in")
    if buy_in is not None:
        buy_in = _as_int(buy_in, "buy_in", InvalidInput)

    requested = GameType.parse(data.get("game_type")) if data.get("game_type") else None
    account_id = data.get("account_id") or ctx.account_id

    while True:
        room = room_manager.get_room(room_id)
        if room is None:
            if requested is None:
                raise InvalidInput("Missing or unknown game_type")
            room = room_manager.get_or_create_room(room_id, requested)

        async with room.game_lock:
            # Torn down while we waited for the lock; resolve the id again
            if room_manager.get_room(room_id) is not room:
                continue
            await _seat_player(
                room, ctx, name, account_id, requested, buy_in,
                room_manager=room_manager,
                broadcast_game_state=broadcast_game_state,
                matchmaking_service=matchmaking_service,
                chat_history=chat_history,
            )
            return


async def _seat_player(
    room: Room,
    ctx: ConnectionContext,
    name: str,
    account_id: Optional[str],
    requested: Optional[GameType],
    buy_in: Optional[int],
    *,
    room_manager,
    broadcast_game_state,
    matchmaking_service,
    chat_history,
) -> None:
    """Seat the caller in `room`; the room lock must be held."""
    try:
        room_manager.join(
            room,
            ctx.player_id,
            name,
            ctx.websocket,
            requested_type=requested,
            ledger_key=Ledger.identity(name, account_id),
            buy_in=buy_in,
        )
    except GameError:
        if room.is_empty() and room_manager.get_room(room.id) is room:
            room_manager.remove_room(room.id)
        raise

    ctx.current_room = room
    ctx.name = name
    ctx.account_id = account_id
    if matchmaking_service:
        matchmaking_service.leave_queue(ctx.connection_id)

    game_player = room.game.get_player(ctx.player_id)
    await ctx.websocket.send_json({
        "type": "joined",
        "room_id": room.id,
        "player_id": ctx.player_id,
        "game_type": room.game_type.value,
        "color": game_player.color,
        "chips": game_player.score,
        "chat": chat_history.room_history(room.id) if chat_history else [],
    })
    await room.broadcast({"type": "player_list", "players": room.player_list()})
    logger.info(f"{name} joined {room.game_type.value} room {room.id}", extra={"room_id": room.id})

    if room.game_type.is_board_game and room.can_start():
        room.start_game()
        await broadcast_game_state(room)
    else:
        await ctx.websocket.send_json({
            "type": "waiting",
            "room_id": room.id,
            "players": len(room.players),
            "seats": room.seat_cap,
        })


async def handle_set_ready(
    data: dict, ctx: ConnectionContext, *, room_manager, broadcast_game_state, check_and_run_cpu_turn, **kw
) -> None:
    room = _require_room(ctx, room_manager)
    if room.game_type.is_board_game:
        raise InvalidInput("Board games start automatically")

    async with room.game_lock:
        if room.game.phase != GamePhase.LOBBY:
            raise IllegalMove("The match has already started")
        room_player = room.get_player(ctx.player_id)
        room_player.ready = bool(data.get("ready", True))
        await room.broadcast({"type": "player_list", "players": room.player_list()})

        if room.can_start():
            room.start_game()
            await room.broadcast({"type": "player_list", "players": room.player_list()})
            await broadcast_game_state(room)
            check_and_run_cpu_turn(room)


# ---------------------------------------------------------------------------
# Game action handlers
# ---------------------------------------------------------------------------

async def handle_place_bet(data: dict, ctx: ConnectionContext, *, room_manager, broadcast_game_state, **kw) -> None:
    room = _require_room(ctx, room_manager)
    if room.game_type not in (GameType.BLACKJACK, GameType.OVERRIDE):
        raise IllegalMove("This game has no betting")

    async with room.game_lock:
        room.game.place_bet(ctx.player_id, data.get("amount"))
        await broadcast_game_state(room)


def _apply_play(room: Room, player_id: str, data: dict) -> None:
    """Route a play_move payload to the room's engine."""
    game = room.game
    game_type = room.game_type

    if game_type == GameType.OTHELLO:
        row = data.get("row", data.get("y"))
        col = data.get("col", data.get("x"))
        game.apply_move(player_id, _as_int(row, "row"), _as_int(col, "col"))
    elif game_type == GameType.CONNECT4:
        game.drop(player_id, _as_int(data.get("col", data.get("column")), "column"))
    elif game_type == GameType.BLACKJACK:
        action = str(data.get("action", "")).lower()
        if action == "hit":
            game.hit(player_id)
        elif action == "stand":
            game.stand(player_id)
        else:
            raise IllegalMove("Action must be 'hit' or 'stand'")
    elif game_type == GameType.UNO:
        card_ids = data.get("card_ids")
        if card_ids is None and data.get("card_id") is not None:
            card_ids = [data["card_id"]]
        if not isinstance(card_ids, list):
            raise IllegalMove("Select at least one card")
        game.play_cards(player_id, card_ids, data.get("color"))
    elif game_type == GameType.OVERRIDE:
        game.lock_guess(player_id, data.get("guess", data.get("choice")))


async def handle_play_move(
    data: dict, ctx: ConnectionContext, *, room_manager, broadcast_game_state, check_and_run_cpu_turn, **kw
) -> None:
    room = _require_room(ctx, room_manager)
    async with room.game_lock:
        _apply_play(room, ctx.player_id, data)
        await broadcast_game_state(room)
        check_and_run_cpu_turn(room)


def _require_uno(room: Room) -> None:
    if room.game_type != GameType.UNO:
        raise IllegalMove(f"Not available in {room.game_type.value}")


async def handle_draw_card(
    data: dict, ctx: ConnectionContext, *, room_manager, broadcast_game_state, check_and_run_cpu_turn, **kw
) -> None:
    room = _require_room(ctx, room_manager)
    _require_uno(room)
    async with room.game_lock:
        drawn = room.game.draw_card(ctx.player_id)
        await ctx.websocket.send_json({"type": "cards_drawn", "cards": [c.to_dict() for c in drawn]})
        await broadcast_game_state(room)
        check_and_run_cpu_turn(room)


async def handle_pass_turn(
    data: dict, ctx: ConnectionContext, *, room_manager, broadcast_game_state, check_and_run_cpu_turn, **kw
) -> None:
    room = _require_room(ctx, room_manager)
    _require_uno(room)
    async with room.game_lock:
        room.game.pass_turn(ctx.player_id)
        await broadcast_game_state(room)
        check_and_run_cpu_turn(room)


async def handle_call_uno(data: dict, ctx: ConnectionContext, *, room_manager, broadcast_game_state, **kw) -> None:
    room = _require_room(ctx, room_manager)
    _require_uno(room)
    async with room.game_lock:
        room.game.call_uno(ctx.player_id)
        await broadcast_game_state(room)


# ---------------------------------------------------------------------------
# Chat / Leaderboard / Matchmaking
# ---------------------------------------------------------------------------

async def handle_chat(data: dict, ctx: ConnectionContext, *, room_manager, chat_history, **kw) -> None:
    room = _require_room(ctx, room_manager)
    room_player = room.get_player(ctx.player_id)
    message = chat_history.post(room.id, room_player.name, data.get("text") or data.get("message"))
    await room.broadcast({"type": "chat", **message.to_dict()})


async def handle_get_leaderboard(data: dict, ctx: ConnectionContext, *, room_manager, **kw) -> None:
    limit = data.get("limit")
    limit = max(1, min(100, _as_int(limit, "limit", InvalidInput))) if limit is not None else None
    await ctx.websocket.send_json({
        "type": "leaderboard",
        "entries": room_manager.ledger.leaderboard(limit),
    })


async def handle_join_queue(data: dict, ctx: ConnectionContext, *, room_manager, matchmaking_service=None, **kw) -> None:
    if not matchmaking_service:
        raise InvalidInput("Matchmaking is not available")
    if ctx.current_room and room_manager.get_room(ctx.current_room.id) is ctx.current_room:
        raise InvalidInput("Leave your current room first")

    game_type = GameType.parse(data.get("game_type"))
    if game_type is None:
        raise InvalidInput("Missing or unknown game_type")
    name = _clean_text(data.get("username") or ctx.name, "username", config.MAX_NAME_LENGTH)
    ctx.name = name

    status = matchmaking_service.join_queue(ctx.connection_id, name, game_type, ctx.websocket)
    await ctx.websocket.send_json({"type": "queue_status", **status})


async def handle_leave_queue(data: dict, ctx: ConnectionContext, *, matchmaking_service=None, **kw) -> None:
    if matchmaking_service:
        matchmaking_service.leave_queue(ctx.connection_id)
    await ctx.websocket.send_json({"type": "queue_status", "in_queue": False})


# ---------------------------------------------------------------------------
# Leave
# ---------------------------------------------------------------------------

async def handle_leave_room(data: dict, ctx: ConnectionContext, *, handle_player_leave, **kw) -> None:
    if ctx.current_room:
        await handle_player_leave(ctx.current_room, ctx.player_id)
        ctx.current_room = None


# ---------------------------------------------------------------------------
# Handler dispatch table
# ---------------------------------------------------------------------------

HANDLERS = {
    "join_room": handle_join_room,
    "set_ready": handle_set_ready,
    "place_bet": handle_place_bet,
    "play_move": handle_play_move,
    "draw_card": handle_draw_card,
    "call_uno": handle_call_uno,
    "pass_turn": handle_pass_turn,
    "chat": handle_chat,
    "get_leaderboard": handle_get_leaderboard,
    "join_queue": handle_join_queue,
    "leave_queue": handle_leave_queue,
    "leave_room": handle_leave_room,
}


async def dispatch(data: dict, ctx: ConnectionContext, **deps) -> None:
    """Run the handler for `data["type"]`, reporting rejections to the actor."""
    msg_type = data.get("type") if isinstance(data, dict) else None
    handler = HANDLERS.get(msg_type)
    if handler is None:
        await ctx.websocket.send_json(
            InvalidInput(f"Unknown message type: {msg_type}").to_message()
        )
        return

    try:
        await handler(data, ctx, **deps)
    except GameError as e:
        logger.debug(f"{msg_type} rejected for {ctx.player_id[:8]}: {e}")
        await ctx.websocket.send_json(e.to_message())
