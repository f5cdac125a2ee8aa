"""
Connect-4 engine.

Red (first seat) drops first. Pieces fall to the lowest empty row; four in
a row on any axis wins and a full top row without a win is a draw.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from constants import CONNECT4_COLORS, CONNECT4_COLS, CONNECT4_ROWS
from errors import IllegalMove
from games.base import BaseGame, GamePhase, GameType, Player
from games.rules import Board, connect4_drop_row, connect4_is_full, connect4_is_win, empty_board

logger = logging.getLogger(__name__)


def _new_board() -> Board:
    return empty_board(CONNECT4_ROWS, CONNECT4_COLS)


@dataclass
class Connect4Game(BaseGame):
    game_type: GameType = GameType.CONNECT4
    max_players: int = 2
    board: Board = field(default_factory=_new_board)
    turn: Optional[str] = None
    winner: Optional[str] = None

    def seat_color(self, seat: int) -> str:
        return CONNECT4_COLORS[seat]

    def current_player(self) -> Optional[Player]:
        for player in self.players:
            if player.color == self.turn:
                return player
        return None

    def start_game(self) -> None:
        self.board = _new_board()
        self.turn = CONNECT4_COLORS[0]
        self.winner = None
        self.phase = GamePhase.PLAYING
        self._emit(
            "game_started",
            players={p.color: p.name for p in self.players},
            turn=self.turn,
        )

    def reset_to_lobby(self) -> None:
        super().reset_to_lobby()
        self.board = _new_board()
        self.turn = None
        self.winner = None

    def drop(self, player_id: str, col: int) -> int:
        """
        Drop the player's piece into `col`.

        Returns:
            The row the piece landed in.

        Raises:
            IllegalMove: Inactive game, wrong turn, or full/invalid column.
        """
        self._require_phase(GamePhase.PLAYING)
        player = self._require_player(player_id)
        if player.color != self.turn:
            raise IllegalMove("Not your turn")

        row = connect4_drop_row(self.board, col)
        if row is None:
            raise IllegalMove("Column is full")

        self.board[row][col] = player.color
        self._emit("move_applied", row=row, col=col, color=player.color)

        if connect4_is_win(self.board, row, col):
            self._finish(player.color, f"{player.name} ({player.color}) connects four")
        elif connect4_is_full(self.board):
            self._finish("draw", "Board full - draw")
        else:
            red, yellow = CONNECT4_COLORS
            self.turn = yellow if self.turn == red else red
            self._emit("turn_changed", turn=self.turn)
        return row

    def _finish(self, winner: str, summary: str) -> None:
        self.winner = winner
        self.turn = None
        self.phase = GamePhase.FINISHED
        logger.info(f"Connect-4 game {self.game_id[:8]} finished: {summary}")
        self._emit("game_over", winner=winner, summary=summary)

    def get_state(self, for_player_id: Optional[str]) -> dict:
        state = super().get_state(for_player_id)
        state.update({
            "board": [row[:] for row in self.board],
            "turn": self.turn,
            "winner": self.winner,
        })
        return state
