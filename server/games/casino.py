"""
Round/bet lifecycle shared by Blackjack and Override.

Flow per match:
    start_game -> start_round (BETTING) -> every active seat bets once
    -> game-specific play (PLAYING) -> payouts (ROUND_OVER)
    -> start_next_round ... -> FINISHED after the last round, or as soon as
    every seat is bankrupt.

Chips are conserved within a round: a bet leaves the balance when placed and
comes back as floor(bet * multiplier) at resolution.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from errors import IllegalMove
from games.base import BaseGame, GamePhase, Player, PlayerStatus
from games.cards import Card, Deck, standard_cards
from games.rules import apply_multiplier

logger = logging.getLogger(__name__)


def new_standard_deck() -> Deck[Card]:
    return Deck(standard_cards())


@dataclass
class CasinoGame(BaseGame):
    """
    Attributes:
        num_rounds: Rounds in the match.
        current_round: 1-indexed round number.
        min_bet: Smallest accepted bet before clamping to the balance.
        deck: Draw pile for the current round.
        deck_factory: Builds a fresh shuffled deck each round.
        winner_id: Highest-balance seat once the match is over.
    """

    num_rounds: int = 5
    current_round: int = 0
    min_bet: int = 1
    deck: Optional[Deck[Card]] = None
    deck_factory: Callable[[], Deck[Card]] = field(default=new_standard_deck, repr=False)
    winner_id: Optional[str] = None
    last_results: list[dict] = field(default_factory=list)

    # -------------------------------------------------------------------------
    # Seats
    # -------------------------------------------------------------------------

    def active_players(self) -> list[Player]:
        """Seats taking part in the current round."""
        return [p for p in self.players if p.status != PlayerStatus.BANKRUPT]

    def _draw(self) -> Card:
        card = self.deck.draw() if self.deck else None
        if card is None:
            self.deck = self.deck_factory()
            card = self.deck.draw()
        return card

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start_game(self) -> None:
        self.current_round = 1
        self.winner_id = None
        self.start_round()

    def start_round(self) -> None:
        """Fresh deck, cleared hands and bets, bankrupt seats sit out."""
        self.deck = self.deck_factory()
        self.last_results = []
        for player in self.players:
            player.hand = []
            player.current_bet = 0
            player.guess = None
            player.status = PlayerStatus.BANKRUPT if player.score <= 0 else PlayerStatus.PLAYING
        self._reset_round_state()

        if not self.active_players():
            self._finish()
            return

        self.phase = GamePhase.BETTING
        self._emit(
            "round_started",
            round=self.current_round,
            total_rounds=self.num_rounds,
            bankrupt=[p.id for p in self.players if p.status == PlayerStatus.BANKRUPT],
        )

    def start_next_round(self) -> bool:
        """Advance from ROUND_OVER to the next betting phase."""
        if self.phase != GamePhase.ROUND_OVER:
            return False
        self.current_round += 1
        self.start_round()
        return True

    def reset_to_lobby(self) -> None:
        # Outstanding bets go back to their owners
        for player in self.players:
            player.score += player.current_bet
            player.current_bet = 0
            player.hand = []
            player.guess = None
            player.status = PlayerStatus.PLAYING
        self._reset_round_state()
        self.current_round = 0
        self.winner_id = None
        super().reset_to_lobby()

    def _reset_round_state(self) -> None:
        """Clear game-specific round fields."""

    # -------------------------------------------------------------------------
    # Betting
    # -------------------------------------------------------------------------

    def place_bet(self, player_id: str, amount) -> int:
        """
        Place the seat's single bet for this round.

        The bet is clamped to the balance and deducted immediately.

        Returns:
            The amount actually bet.
        """
        self._require_phase(GamePhase.BETTING)
        player = self._require_player(player_id)
        if player.status == PlayerStatus.BANKRUPT:
            raise IllegalMove("Bankrupt seats sit this round out")
        if player.current_bet > 0:
            raise IllegalMove("Bet already placed")
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < self.min_bet:
            raise IllegalMove(f"Bet must be a whole number of at least {self.min_bet}")

        bet = min(amount, player.score)
        player.score -= bet
        player.current_bet = bet
        self._emit("bet_placed", player_id=player.id, amount=bet)

        if all(p.current_bet > 0 for p in self.active_players()):
            self._on_all_bets_placed()
        return bet

    def _on_all_bets_placed(self) -> None:
        raise NotImplementedError

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    def _pay_out(self, player: Player, multiplier: float, outcome: str, **extra) -> dict:
        payout = apply_multiplier(player.current_bet, multiplier)
        result = {
            "player_id": player.id,
            "name": player.name,
            "bet": player.current_bet,
            "multiplier": multiplier,
            "payout": payout,
            "net": payout - player.current_bet,
            "outcome": outcome,
            **extra,
        }
        player.score += payout
        player.current_bet = 0
        return result

    def _end_round(self, results: list[dict], **extra) -> None:
        self.last_results = results
        self.phase = GamePhase.ROUND_OVER
        summary = ", ".join(f"{r['name']} {r['outcome']} ({r['net']:+d})" for r in results)
        self._emit(
            "round_over",
            round=self.current_round,
            total_rounds=self.num_rounds,
            results=results,
            summary=summary,
            **extra,
        )

        if self.current_round >= self.num_rounds or all(p.score <= 0 for p in self.players):
            self._finish()

    def _finish(self) -> None:
        self.phase = GamePhase.FINISHED
        winner = max(self.players, key=lambda p: p.score, default=None)
        self.winner_id = winner.id if winner else None
        standings = [
            {"player_id": p.id, "name": p.name, "score": p.score}
            for p in sorted(self.players, key=lambda p: -p.score)
        ]
        summary = f"{winner.name} wins with {winner.score}" if winner else "No winner"
        logger.info(f"{self.game_type.value} game {self.game_id[:8]} finished: {summary}")
        self._emit("game_over", winner_id=self.winner_id, standings=standings, summary=summary)

    def get_state(self, for_player_id: Optional[str]) -> dict:
        state = super().get_state(for_player_id)
        state.update({
            "current_round": self.current_round,
            "total_rounds": self.num_rounds,
            "winner_id": self.winner_id,
            "last_results": self.last_results,
        })
        return state
