"""
Room management for the Arcade server.

This module handles room creation, seating, and WebSocket fan-out for
multiplayer sessions.

A Room contains:
    - The identifier players typed to join it
    - A fixed game type chosen by whoever created it
    - A collection of RoomPlayers (human or CPU) in seat order
    - The engine instance holding the authoritative game state
    - Handles for deferred callbacks (teardown, next round, CPU turns)
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Optional

from fastapi import WebSocket

from ai import assign_profile, cleanup_room_profiles, release_profile
from config import config
from errors import GameInProgress, GameTypeMismatch, InvalidInput, RoomFull
from games import BaseGame, GamePhase, GameType, Player, create_game
from logging_config import ContextLogger, get_logger
from services.chat import ChatHistory
from services.ledger import Ledger

logger = get_logger(__name__)

SEAT_COLORS = ("red", "blue", "green", "gold", "purple", "teal")


@dataclass
class RoomPlayer:
    """
    A player in a room (lobby-level representation).

    This is separate from games.Player - RoomPlayer tracks room-level info
    like the WebSocket connection, ready flag and ledger identity, while
    games.Player tracks in-game state like cards and chips.

    Attributes:
        id: Connection id (also the game Player id).
        name: Display name.
        websocket: WebSocket connection (None for CPU players).
        is_cpu: Whether this is an AI-controlled seat.
        ready: Lobby ready flag.
        ledger_key: Ledger identity (account id, else display name).
        settled: Whether chips were already reconciled into the ledger.
    """

    id: str
    name: str
    websocket: Optional[WebSocket] = None
    is_cpu: bool = False
    ready: bool = False
    ledger_key: Optional[str] = None
    settled: bool = False


@dataclass
class Room:
    """
    A room hosting one game type.

    Attributes:
        id: Room identifier.
        game_type: Fixed at creation; every joiner plays it.
        players: Dict mapping player ids to RoomPlayers, in seat order.
        game: The engine for game_type.
        game_lock: Serializes every mutation of this room.
        teardown_task: Pending post-game teardown, if scheduled.
        next_round_task: Pending next-round countdown, if scheduled.
    """

    id: str
    game_type: GameType
    players: dict[str, RoomPlayer] = field(default_factory=dict)
    game: Optional[BaseGame] = None
    game_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    teardown_task: Optional[asyncio.Task] = field(default=None, repr=False)
    next_round_task: Optional[asyncio.Task] = field(default=None, repr=False)
    cpu_task: Optional[asyncio.Task] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.game is None:
            self.game = create_game(self.game_type)

    @property
    def log(self) -> ContextLogger:
        return logger.with_context(room_id=self.id, game_type=self.game_type.value)

    @property
    def seat_cap(self) -> int:
        return config.seat_caps.for_game(self.game_type.value)

    # -------------------------------------------------------------------------
    # Seating
    # -------------------------------------------------------------------------

    def _free_color(self) -> str:
        if self.game_type.is_board_game:
            palette = self.game.seat_color(0), self.game.seat_color(1)
        else:
            palette = SEAT_COLORS
        taken = {p.color for p in self.game.players}
        return next((c for c in palette if c not in taken), palette[len(taken) % len(palette)])

    def add_player(
        self,
        player_id: str,
        name: str,
        websocket: Optional[WebSocket],
        ledger_key: Optional[str] = None,
        chips: int = 0,
    ) -> RoomPlayer:
        """
        Seat a human player.

        Args:
            player_id: Connection id.
            name: Display name.
            websocket: The player's WebSocket connection.
            ledger_key: Ledger identity for buy-in/payout.
            chips: Bought-in balance (0 for board games).

        Returns:
            The created RoomPlayer.
        """
        room_player = RoomPlayer(id=player_id, name=name, websocket=websocket, ledger_key=ledger_key)
        self.players[player_id] = room_player

        game_player = Player(
            id=player_id,
            name=name,
            color=self._free_color(),
            score=chips,
            initial_score=chips,
        )
        self.game.add_player(game_player)
        return room_player

    def add_cpu_player(self) -> RoomPlayer:
        """Append a CPU seat (UNO fill)."""
        profile = assign_profile(self.id)
        cpu_id = f"cpu_{uuid.uuid4().hex[:8]}"
        room_player = RoomPlayer(id=cpu_id, name=profile.name, is_cpu=True, ready=True)
        self.players[cpu_id] = room_player

        points = config.game_defaults.cpu_starting_points
        self.game.add_player(Player(
            id=cpu_id,
            name=profile.name,
            color=self._free_color(),
            score=points,
            initial_score=points,
            is_cpu=True,
        ))
        return room_player

    def remove_player(self, player_id: str, ledger: Optional[Ledger] = None) -> Optional[RoomPlayer]:
        """
        Remove a player, reconciling their chips into the ledger first.

        Returns:
            The removed RoomPlayer, or None if not found.
        """
        if player_id not in self.players:
            return None

        if ledger is not None:
            self.settle_player(player_id, ledger)

        room_player = self.players.pop(player_id)
        self.game.remove_player(player_id)

        if room_player.is_cpu:
            release_profile(room_player.name, self.id)
        return room_player

    def remove_cpu_players(self) -> None:
        for cpu in self.get_cpu_players():
            self.remove_player(cpu.id)

    def settle_player(self, player_id: str, ledger: Ledger) -> None:
        """Credit a human seat's chips back to their ledger record (once)."""
        room_player = self.players.get(player_id)
        if not room_player or room_player.is_cpu or room_player.settled:
            return
        if not self.game_type.uses_ledger or not room_player.ledger_key:
            return
        game_player = self.game.get_player(player_id)
        if not game_player:
            return
        ledger.settle(room_player.ledger_key, game_player.initial_score, game_player.score)
        room_player.settled = True

    def settle_all(self, ledger: Ledger) -> None:
        for player_id in list(self.players):
            self.settle_player(player_id, ledger)

    def get_player(self, player_id: str) -> Optional[RoomPlayer]:
        return self.players.get(player_id)

    def is_empty(self) -> bool:
        return len(self.players) == 0

    def get_cpu_players(self) -> list[RoomPlayer]:
        return [p for p in self.players.values() if p.is_cpu]

    def human_player_count(self) -> int:
        return sum(1 for p in self.players.values() if not p.is_cpu)

    # -------------------------------------------------------------------------
    # Lobby
    # -------------------------------------------------------------------------

    def reset_ready(self) -> None:
        for player in self.players.values():
            if not player.is_cpu:
                player.ready = False

    def all_ready(self) -> bool:
        humans = [p for p in self.players.values() if not p.is_cpu]
        return bool(humans) and all(p.ready for p in humans)

    def can_start(self) -> bool:
        """Board games start on two seats; card games when every human is ready."""
        if self.game.phase != GamePhase.LOBBY:
            return False
        if self.game_type.is_board_game:
            return len(self.players) == 2
        return self.all_ready()

    def start_game(self) -> None:
        """Fill CPU seats if needed and start the engine."""
        if self.game_type == GameType.UNO:
            for _ in range(self.game.cpu_seats_needed(self.human_player_count())):
                self.add_cpu_player()
        self.game.start_game()
        self.log.info(f"Started with {len(self.players)} seats")

    def abort_game(self) -> None:
        """
        Drop back to the lobby after a mid-match departure.

        Board games lose their board; card games return bets, drop CPU seats
        and clear ready flags.
        """
        self.game.reset_to_lobby()
        if not self.game_type.is_board_game:
            self.remove_cpu_players()
        self.reset_ready()
        self.game._emit("game_aborted", reason="A player left the match")

    def cancel_tasks(self) -> None:
        for task in (self.teardown_task, self.next_round_task, self.cpu_task):
            if task and not task.done():
                task.cancel()
        self.teardown_task = None
        self.next_round_task = None
        self.cpu_task = None

    # -------------------------------------------------------------------------
    # Messaging
    # -------------------------------------------------------------------------

    def player_list(self) -> list[dict]:
        result = []
        for p in self.players.values():
            game_player = self.game.get_player(p.id)
            result.append({
                "id": p.id,
                "name": p.name,
                "is_cpu": p.is_cpu,
                "ready": p.ready,
                "color": game_player.color if game_player else None,
                "score": game_player.score if game_player else 0,
            })
        return result

    async def broadcast(self, message: dict, exclude: Optional[str] = None) -> None:
        """Send a message to all human players in the room."""
        for player_id, player in list(self.players.items()):
            if player_id != exclude and player.websocket and not player.is_cpu:
                try:
                    await player.websocket.send_json(message)
                except Exception as e:
                    self.log.debug(f"Send to {player_id[:8]} failed: {e}")

    async def send_to(self, player_id: str, message: dict) -> None:
        player = self.players.get(player_id)
        if player and player.websocket and not player.is_cpu:
            try:
                await player.websocket.send_json(message)
            except Exception as e:
                self.log.debug(f"Send to {player_id[:8]} failed: {e}")


class RoomManager:
    """
    Registry of all active rooms.

    Rooms are created on first join and removed when no human is left or
    after the post-game delay. A single RoomManager instance is used by the
    server; ledger updates on join/leave go through it.
    """

    def __init__(self, ledger: Optional[Ledger] = None, chat_history: Optional[ChatHistory] = None) -> None:
        self.rooms: dict[str, Room] = {}
        self.ledger = ledger or Ledger()
        self.chat_history = chat_history

    def get_room(self, room_id: str) -> Optional[Room]:
        return self.rooms.get(room_id)

    def get_or_create_room(self, room_id: str, game_type: GameType) -> Room:
        """
        Return the room for `room_id`, creating it with `game_type` if absent.

        An existing room keeps its own game type.
        """
        room = self.rooms.get(room_id)
        if room is None:
            room = Room(id=room_id, game_type=game_type)
            self.rooms[room_id] = room
            logger.info(f"Created {game_type.value} room {room_id}", extra={"room_id": room_id})
        return room

    def join(
        self,
        room: Room,
        player_id: str,
        name: str,
        websocket: Optional[WebSocket],
        *,
        requested_type: Optional[GameType] = None,
        ledger_key: Optional[str] = None,
        buy_in: Optional[int] = None,
    ) -> RoomPlayer:
        """
        Seat a player in `room`.

        Raises:
            GameTypeMismatch: Strict mode and the room hosts another game.
            GameInProgress: The room is mid-match.
            RoomFull: Seat cap reached.
            InvalidInput: Already seated, or buy-in not on the ladder.
            InsufficientFunds: Ledger wealth below the buy-in.
        """
        if config.STRICT_GAME_TYPE and requested_type and requested_type != room.game_type:
            raise GameTypeMismatch(f"Room {room.id} is playing {room.game_type.value}")
        if player_id in room.players:
            raise InvalidInput("Already in this room")
        if room.game.phase != GamePhase.LOBBY:
            raise GameInProgress("A match is already in progress")
        if len(room.players) >= room.seat_cap:
            raise RoomFull("This room is full")

        chips = 0
        if room.game_type.uses_ledger:
            amount = config.economy.default_buy_in if buy_in is None else buy_in
            if amount not in config.economy.buy_in_ladder:
                raise InvalidInput(f"Buy-in must be one of {config.economy.buy_in_ladder}")
            chips = self.ledger.buy_in(ledger_key or name, amount)

        return room.add_player(player_id, name, websocket, ledger_key=ledger_key or name, chips=chips)

    def leave(self, room: Room, player_id: str) -> Optional[RoomPlayer]:
        """
        Remove a player and reconcile their chips.

        Deletes the room when no human remains; otherwise any match in
        progress is aborted back to the lobby.
        """
        if player_id not in room.players:
            return None

        if room.game.is_active:
            room.abort_game()
        room_player = room.remove_player(player_id, self.ledger)

        if room.human_player_count() == 0:
            self.destroy_room(room)
        else:
            room.reset_ready()
        return room_player

    def destroy_room(self, room: Room) -> None:
        """Settle everyone still seated and drop the room."""
        room.settle_all(self.ledger)
        room.cancel_tasks()
        for player_id in list(room.players):
            room.remove_player(player_id)
        if self.rooms.get(room.id) is not room:
            return
        cleanup_room_profiles(room.id)
        if self.chat_history is not None:
            self.chat_history.forget_room(room.id)
        self.remove_room(room.id)

    def remove_room(self, room_id: str) -> None:
        if room_id in self.rooms:
            del self.rooms[room_id]
            logger.info(f"Removed room {room_id}", extra={"room_id": room_id})

    def find_player_room(self, player_id: str) -> Optional[Room]:
        for room in self.rooms.values():
            if player_id in room.players:
                return room
        return None
