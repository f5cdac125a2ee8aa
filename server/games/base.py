"""
Shared engine scaffolding.

Each game type is its own engine class holding only the state that game
needs (a tagged union selected by GameType). They all share:
    - Seat-ordered players (join order = seat order = turn order baseline)
    - A phase enum
    - An outbound event queue drained by the broadcast layer
    - get_state(for_player_id) producing a per-recipient view
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from errors import IllegalMove


class GameType(str, Enum):
    """Game types a room can host."""

    OTHELLO = "othello"
    CONNECT4 = "connect4"
    BLACKJACK = "blackjack"
    UNO = "uno"
    OVERRIDE = "override"

    @property
    def is_board_game(self) -> bool:
        return self in (GameType.OTHELLO, GameType.CONNECT4)

    @property
    def uses_ledger(self) -> bool:
        """Card games take a buy-in from the ledger and pay out on leave."""
        return not self.is_board_game

    @classmethod
    def parse(cls, value: Any) -> Optional["GameType"]:
        try:
            return cls(str(value).lower())
        except ValueError:
            return None


class GamePhase(str, Enum):
    """
    Match phases.

    Board games: LOBBY -> PLAYING -> FINISHED
    Casino games: LOBBY -> BETTING -> PLAYING -> ROUND_OVER -> BETTING ... -> FINISHED
    UNO: LOBBY -> PLAYING -> FINISHED
    """

    LOBBY = "lobby"
    BETTING = "betting"
    PLAYING = "playing"
    ROUND_OVER = "round_over"
    FINISHED = "finished"


class PlayerStatus(str, Enum):
    """Per-seat status within a round."""

    PLAYING = "playing"
    STAND = "stand"
    BUST = "bust"
    BLACKJACK = "blackjack"
    BANKRUPT = "bankrupt"
    LOCKED = "locked"
    FINISHED = "finished"


@dataclass
class Player:
    """
    A seated player (game-level representation).

    This is separate from room.RoomPlayer - RoomPlayer tracks the connection,
    ready flag and ledger identity, while Player tracks in-game state.

    Attributes:
        id: Connection/session identifier.
        name: Display name.
        color: Assigned color/seat marker.
        score: Chip or point balance for the active match.
        initial_score: Buy-in snapshot, for the net delta on leave.
        current_bet: Outstanding bet this round.
        hand: Cards held (game-specific card type).
        status: Seat status for the current round.
        is_cpu: Synthetic seat driven by the AI.
        guess: Override high/low guess for this round.
        said_uno: UNO verbal call flag for this turn.
    """

    id: str
    name: str
    color: Optional[str] = None
    score: int = 0
    initial_score: int = 0
    current_bet: int = 0
    hand: list = field(default_factory=list)
    status: PlayerStatus = PlayerStatus.PLAYING
    is_cpu: bool = False
    guess: Optional[str] = None
    said_uno: bool = False

    def public_dict(self) -> dict:
        """Fields every recipient may see."""
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "score": self.score,
            "current_bet": self.current_bet,
            "status": self.status.value,
            "is_cpu": self.is_cpu,
            "hand_count": len(self.hand),
        }


@dataclass
class BaseGame:
    """
    Common engine state.

    Attributes:
        players: Seated players in seat order.
        phase: Current match phase.
        game_id: Unique identifier for log correlation.
        events: Pending outbound notifications, drained after each action.
    """

    game_type: GameType = GameType.OTHELLO
    max_players: int = 2
    players: list[Player] = field(default_factory=list)
    phase: GamePhase = GamePhase.LOBBY
    game_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    events: list[dict] = field(default_factory=list, repr=False)

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def _emit(self, event_type: str, **data: Any) -> None:
        self.events.append({"type": event_type, **data})

    def drain_events(self) -> list[dict]:
        """Return and clear pending notifications."""
        events, self.events = self.events, []
        return events

    # -------------------------------------------------------------------------
    # Player Management
    # -------------------------------------------------------------------------

    def add_player(self, player: Player) -> bool:
        """
        Seat a player.

        Returns:
            True if seated, False if the game is full.
        """
        if len(self.players) >= self.max_players:
            return False
        self.players.append(player)
        return True

    def remove_player(self, player_id: str) -> Optional[Player]:
        for i, player in enumerate(self.players):
            if player.id == player_id:
                return self.players.pop(i)
        return None

    def get_player(self, player_id: str) -> Optional[Player]:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def seat_index(self, player_id: str) -> Optional[int]:
        for i, player in enumerate(self.players):
            if player.id == player_id:
                return i
        return None

    def _require_player(self, player_id: str) -> Player:
        player = self.get_player(player_id)
        if not player:
            raise IllegalMove("You are not seated in this game")
        return player

    def _require_phase(self, *phases: GamePhase) -> None:
        if self.phase not in phases:
            raise IllegalMove(f"Not allowed during {self.phase.value}")

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self.phase not in (GamePhase.LOBBY, GamePhase.FINISHED)

    def start_game(self) -> None:
        raise NotImplementedError

    def reset_to_lobby(self) -> None:
        """Abort any match in progress and wait for players again."""
        self.phase = GamePhase.LOBBY
        self.events = []

    def current_player(self) -> Optional[Player]:
        return None

    def get_state(self, for_player_id: Optional[str]) -> dict:
        current = self.current_player()
        return {
            "game_type": self.game_type.value,
            "phase": self.phase.value,
            "players": [p.public_dict() for p in self.players],
            "current_player_id": current.id if current else None,
        }
