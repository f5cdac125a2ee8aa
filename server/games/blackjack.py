"""
Blackjack engine.

Seats act in seat order once every active seat has bet; bankrupt seats and
naturals are skipped. After the last seat the dealer draws to 17 and every
bet is paid by blackjack_multiplier. The dealer's hole card stays hidden in
state views until all seats have finished acting.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from constants import BLACKJACK_TARGET, DEALER_STAND_ON
from errors import IllegalMove
from games.base import GamePhase, GameType, Player, PlayerStatus
from games.cards import Card
from games.casino import CasinoGame
from games.rules import blackjack_multiplier, hand_value, is_natural

logger = logging.getLogger(__name__)


@dataclass
class BlackjackGame(CasinoGame):
    game_type: GameType = GameType.BLACKJACK
    max_players: int = 4
    dealer_hand: list[Card] = field(default_factory=list)
    turn_index: Optional[int] = None

    def _reset_round_state(self) -> None:
        self.dealer_hand = []
        self.turn_index = None

    def current_player(self) -> Optional[Player]:
        if self.phase != GamePhase.PLAYING or self.turn_index is None:
            return None
        if 0 <= self.turn_index < len(self.players):
            return self.players[self.turn_index]
        return None

    # -------------------------------------------------------------------------
    # Dealing
    # -------------------------------------------------------------------------

    def _on_all_bets_placed(self) -> None:
        active = self.active_players()
        for _ in range(2):
            for player in active:
                player.hand.append(self._draw())
            self.dealer_hand.append(self._draw())

        for player in active:
            if is_natural(player.hand):
                player.status = PlayerStatus.BLACKJACK

        self.phase = GamePhase.PLAYING
        self._emit("cards_dealt", round=self.current_round)
        self._advance_from(0)

    def _advance_from(self, start: int) -> None:
        """Give the turn to the first seat still playing at or after `start`."""
        for i in range(start, len(self.players)):
            if self.players[i].status == PlayerStatus.PLAYING:
                self.turn_index = i
                self._emit("turn_changed", player_id=self.players[i].id)
                return
        self.turn_index = None
        self._dealer_play()

    # -------------------------------------------------------------------------
    # Seat actions
    # -------------------------------------------------------------------------

    def _require_turn(self, player_id: str) -> Player:
        self._require_phase(GamePhase.PLAYING)
        current = self.current_player()
        if not current or current.id != player_id:
            raise IllegalMove("Not your turn")
        return current

    def hit(self, player_id: str) -> Card:
        player = self._require_turn(player_id)
        card = self._draw()
        player.hand.append(card)
        total = hand_value(player.hand)
        self._emit("move_applied", player_id=player.id, action="hit", card=card.to_dict(), total=total)

        if total > BLACKJACK_TARGET:
            player.status = PlayerStatus.BUST
            self._advance_from(self.turn_index + 1)
        return card

    def stand(self, player_id: str) -> None:
        player = self._require_turn(player_id)
        player.status = PlayerStatus.STAND
        self._emit("move_applied", player_id=player.id, action="stand", total=hand_value(player.hand))
        self._advance_from(self.turn_index + 1)

    # -------------------------------------------------------------------------
    # Dealer and payouts
    # -------------------------------------------------------------------------

    def _dealer_play(self) -> None:
        while hand_value(self.dealer_hand) < DEALER_STAND_ON:
            self.dealer_hand.append(self._draw())

        dealer_total = hand_value(self.dealer_hand)
        results = []
        for player in self.active_players():
            multiplier = blackjack_multiplier(player.hand, self.dealer_hand)
            if player.status == PlayerStatus.BUST:
                outcome = "bust"
            elif multiplier > 1:
                outcome = "blackjack" if player.status == PlayerStatus.BLACKJACK else "win"
            elif multiplier == 1:
                outcome = "push"
            else:
                outcome = "lose"
            results.append(self._pay_out(player, multiplier, outcome, total=hand_value(player.hand)))

        self._end_round(
            results,
            dealer_hand=[c.to_dict() for c in self.dealer_hand],
            dealer_total=dealer_total,
        )

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def dealer_revealed(self) -> bool:
        return self.phase in (GamePhase.ROUND_OVER, GamePhase.FINISHED)

    def get_state(self, for_player_id: Optional[str]) -> dict:
        state = super().get_state(for_player_id)

        if self.dealer_revealed:
            dealer_cards = [c.to_dict() for c in self.dealer_hand]
            dealer_total = hand_value(self.dealer_hand)
        else:
            dealer_cards = [
                c.to_dict() if i != 1 else {"hidden": True}
                for i, c in enumerate(self.dealer_hand)
            ]
            dealer_total = hand_value(self.dealer_hand[:1])

        hands = {p.id: [c.to_dict() for c in p.hand] for p in self.players}
        totals = {p.id: hand_value(p.hand) for p in self.players}
        state.update({
            "dealer_hand": dealer_cards,
            "dealer_total": dealer_total,
            "hands": hands,
            "totals": totals,
        })
        return state
