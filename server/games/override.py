"""
Override (high/low) engine.

Every active seat bets, a base card is revealed, then each seat locks in one
high/low guess. Once all have locked, the next card is drawn and the round
pays out: equal power pushes, the right direction doubles, otherwise the bet
is lost.
"""

from dataclasses import dataclass
from typing import Optional

from errors import IllegalMove
from games.base import GamePhase, GameType, PlayerStatus
from games.cards import Card
from games.casino import CasinoGame
from games.rules import HIGH, LOW, override_multiplier


@dataclass
class OverrideGame(CasinoGame):
    game_type: GameType = GameType.OVERRIDE
    max_players: int = 6
    base_card: Optional[Card] = None
    drawn_card: Optional[Card] = None

    def _reset_round_state(self) -> None:
        self.base_card = None
        self.drawn_card = None

    def _on_all_bets_placed(self) -> None:
        self.base_card = self._draw()
        self.phase = GamePhase.PLAYING
        self._emit("base_revealed", card=self.base_card.to_dict())

    def lock_guess(self, player_id: str, guess: str) -> None:
        """Lock a seat's high/low guess; the last lock resolves the round."""
        self._require_phase(GamePhase.PLAYING)
        player = self._require_player(player_id)
        if player.status == PlayerStatus.BANKRUPT or player.current_bet <= 0:
            raise IllegalMove("You have no bet this round")
        if player.guess is not None:
            raise IllegalMove("Guess already locked")
        choice = str(guess).lower()
        if choice not in (HIGH, LOW):
            raise IllegalMove("Guess must be 'high' or 'low'")

        player.guess = choice
        player.status = PlayerStatus.LOCKED
        self._emit("move_applied", player_id=player.id, action="lock")

        if all(p.guess is not None for p in self.active_players()):
            self._resolve()

    def _resolve(self) -> None:
        self.drawn_card = self._draw()
        results = []
        for player in self.active_players():
            multiplier = override_multiplier(self.base_card, self.drawn_card, player.guess)
            if multiplier == 1:
                outcome = "push"
            elif multiplier > 1:
                outcome = "win"
            else:
                outcome = "lose"
            results.append(self._pay_out(player, multiplier, outcome, guess=player.guess))

        self._end_round(
            results,
            base_card=self.base_card.to_dict(),
            drawn_card=self.drawn_card.to_dict(),
        )

    def get_state(self, for_player_id: Optional[str]) -> dict:
        state = super().get_state(for_player_id)
        revealed = self.phase in (GamePhase.ROUND_OVER, GamePhase.FINISHED)
        state.update({
            "base_card": self.base_card.to_dict() if self.base_card else None,
            "drawn_card": self.drawn_card.to_dict() if self.drawn_card and revealed else None,
            # Other seats' guesses stay private until the reveal
            "guesses": {
                p.id: (p.guess if revealed or p.id == for_player_id else ("locked" if p.guess else None))
                for p in self.players
            },
        })
        return state
