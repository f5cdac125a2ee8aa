"""
Othello engine.

Two seats: the first joiner plays black and moves first, the second plays
white. After every accepted move the turn goes to the opponent if they can
move, stays with the mover (a pass) if only the mover can, and otherwise the
game ends on stone count.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from constants import OTHELLO_COLORS
from errors import IllegalMove
from games.base import BaseGame, GamePhase, GameType, Player
from games.rules import (
    Board,
    othello_counts,
    othello_flips,
    othello_has_legal_move,
    othello_initial_board,
    othello_opponent,
)

logger = logging.getLogger(__name__)


@dataclass
class OthelloGame(BaseGame):
    game_type: GameType = GameType.OTHELLO
    max_players: int = 2
    board: Board = field(default_factory=othello_initial_board)
    turn: Optional[str] = None
    winner: Optional[str] = None

    def seat_color(self, seat: int) -> str:
        return OTHELLO_COLORS[seat]

    def current_player(self) -> Optional[Player]:
        for player in self.players:
            if player.color == self.turn:
                return player
        return None

    def start_game(self) -> None:
        self.board = othello_initial_board()
        self.turn = OTHELLO_COLORS[0]
        self.winner = None
        self.phase = GamePhase.PLAYING
        self._emit(
            "game_started",
            players={p.color: p.name for p in self.players},
            turn=self.turn,
        )

    def reset_to_lobby(self) -> None:
        super().reset_to_lobby()
        self.board = othello_initial_board()
        self.turn = None
        self.winner = None

    def apply_move(self, player_id: str, row: int, col: int) -> list[tuple[int, int]]:
        """
        Place a stone for the player and flip every bracketed run.

        Returns:
            The flipped coordinates.

        Raises:
            IllegalMove: Inactive game, wrong turn, or no run is bracketed.
        """
        self._require_phase(GamePhase.PLAYING)
        player = self._require_player(player_id)
        if player.color != self.turn:
            raise IllegalMove("Not your turn")

        color = player.color
        flips = othello_flips(self.board, row, col, color)
        if not flips:
            raise IllegalMove("That move does not flip any stones")

        self.board[row][col] = color
        for r, c in flips:
            self.board[r][c] = color

        self._emit("move_applied", row=row, col=col, color=color, flips=[list(f) for f in flips])
        self._advance_turn(color)
        return flips

    def _advance_turn(self, mover: str) -> None:
        opponent = othello_opponent(mover)
        if othello_has_legal_move(self.board, opponent):
            self.turn = opponent
            self._emit("turn_changed", turn=self.turn)
        elif othello_has_legal_move(self.board, mover):
            self.turn = mover
            self._emit("turn_passed", passed=opponent, turn=self.turn)
        else:
            self._finish()

    def _finish(self) -> None:
        counts = othello_counts(self.board)
        black, white = OTHELLO_COLORS
        if counts[black] > counts[white]:
            self.winner = black
        elif counts[white] > counts[black]:
            self.winner = white
        else:
            self.winner = "draw"
        self.turn = None
        self.phase = GamePhase.FINISHED

        if self.winner == "draw":
            summary = f"Draw {counts[black]}-{counts[white]}"
        else:
            winner = next((p.name for p in self.players if p.color == self.winner), self.winner)
            summary = f"{winner} ({self.winner}) wins {counts[black]}-{counts[white]}"
        logger.info(f"Othello game {self.game_id[:8]} finished: {summary}")
        self._emit("game_over", winner=self.winner, scores=counts, summary=summary)

    def get_state(self, for_player_id: Optional[str]) -> dict:
        state = super().get_state(for_player_id)
        state.update({
            "board": [row[:] for row in self.board],
            "turn": self.turn,
            "winner": self.winner,
            "scores": othello_counts(self.board),
        })
        return state
