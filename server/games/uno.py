"""
UNO engine.

Seat order is join order with CPU seats appended to reach four. The turn
pointer moves by `direction` (+1/-1) over seats that have not finished.

Rules implemented here:
    - Legal play: a wildcard, the active color, or the top card's type. While
      a forced draw is pending only the same draw type may be played, which
      stacks onto the accumulator.
    - Chain play: one submitted batch of cards sharing the first card's type,
      each legal against the evolving top of the pile.
    - A hand may only be emptied by a plain digit.
    - Skip consumes the next seat's turn; reverse flips direction, or acts as
      a skip when exactly two seats remain.
    - One voluntary draw per turn; a playable drawn card may be played (or
      the turn passed), otherwise the turn ends.
    - Ending a turn on one card without calling UNO costs two cards.
    - Emptying a hand takes up to `finish_points` from every other remaining
      seat.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from constants import UNO_COLORS, UNO_DRAW_AMOUNTS, UNO_MISSED_CALL_PENALTY
from errors import IllegalMove
from games.base import BaseGame, GamePhase, GameType, Player, PlayerStatus
from games.cards import Deck, UnoCard, uno_cards

logger = logging.getLogger(__name__)


def new_uno_deck() -> Deck[UnoCard]:
    return Deck(uno_cards())


@dataclass
class UnoGame(BaseGame):
    """
    Attributes:
        target_seats: Seat count CPU fill tops up to.
        hand_size: Cards dealt to each seat.
        finish_points: Points each remaining seat forfeits to a finisher.
        discard_pile: Played cards, top last.
        current_index: Seat whose turn it is.
        direction: +1 clockwise, -1 after an odd number of reverses.
        active_color: Color the next card must match (set by wild declarations).
        pending_draw: Forced-draw accumulator.
        pending_type: Draw type that may answer the accumulator.
        has_drawn: Current seat already used its voluntary draw.
        drawn_card_id: The card that voluntary draw produced.
        finish_order: Seat ids in the order their hands emptied.
    """

    game_type: GameType = GameType.UNO
    max_players: int = 4
    target_seats: int = 4
    hand_size: int = 7
    finish_points: int = 200
    deck: Optional[Deck[UnoCard]] = None
    deck_factory: Callable[[], Deck[UnoCard]] = field(default=new_uno_deck, repr=False)
    discard_pile: list[UnoCard] = field(default_factory=list)
    current_index: int = 0
    direction: int = 1
    active_color: Optional[str] = None
    pending_draw: int = 0
    pending_type: Optional[str] = None
    has_drawn: bool = False
    drawn_card_id: Optional[str] = None
    finish_order: list[str] = field(default_factory=list)
    winner_id: Optional[str] = None

    # -------------------------------------------------------------------------
    # Seats
    # -------------------------------------------------------------------------

    def current_player(self) -> Optional[Player]:
        if self.phase != GamePhase.PLAYING or not self.players:
            return None
        return self.players[self.current_index]

    def remaining_players(self) -> list[Player]:
        return [p for p in self.players if p.status != PlayerStatus.FINISHED]

    def cpu_seats_needed(self, humans: int) -> int:
        """CPU seats to append so the table reaches target_seats."""
        return max(0, self.target_seats - humans)

    @property
    def top_card(self) -> Optional[UnoCard]:
        return self.discard_pile[-1] if self.discard_pile else None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start_game(self) -> None:
        if len(self.players) < 2:
            raise IllegalMove("UNO needs at least two seats")

        self.deck = self.deck_factory()
        self.discard_pile = []
        self.direction = 1
        self.current_index = 0
        self.pending_draw = 0
        self.pending_type = None
        self.has_drawn = False
        self.drawn_card_id = None
        self.finish_order = []
        self.winner_id = None

        first = self.deck.draw()
        while first.is_wild:
            self.deck.add_cards([first])
            first = self.deck.draw()
        self.discard_pile.append(first)
        self.active_color = first.color

        for player in self.players:
            player.hand = []
            player.status = PlayerStatus.PLAYING
            player.said_uno = False
        for _ in range(self.hand_size):
            for player in self.players:
                player.hand.append(self._draw_one())

        self.phase = GamePhase.PLAYING
        self._emit("game_started", top_card=first.to_dict(), seats=[p.id for p in self.players])
        self._emit("turn_changed", player_id=self.players[0].id, pending_draw=0)

    def reset_to_lobby(self) -> None:
        super().reset_to_lobby()
        for player in self.players:
            player.hand = []
            player.status = PlayerStatus.PLAYING
            player.said_uno = False
        self.deck = None
        self.discard_pile = []
        self.pending_draw = 0
        self.pending_type = None
        self.has_drawn = False
        self.drawn_card_id = None
        self.finish_order = []
        self.winner_id = None

    def _draw_one(self) -> Optional[UnoCard]:
        """Draw a card, recycling the discard pile (minus its top) when the deck runs dry."""
        if not self.deck.cards and len(self.discard_pile) > 1:
            top = self.discard_pile[-1]
            self.deck.add_cards(self.discard_pile[:-1])
            self.discard_pile = [top]
        return self.deck.draw()

    def _give_cards(self, player: Player, count: int) -> list[UnoCard]:
        drawn = []
        for _ in range(count):
            card = self._draw_one()
            if card is None:
                break
            drawn.append(card)
        player.hand.extend(drawn)
        return drawn

    # -------------------------------------------------------------------------
    # Legality
    # -------------------------------------------------------------------------

    def is_playable(self, card: UnoCard) -> bool:
        """Whether `card` may be played on the current top of the pile."""
        return self._legal_on(card, self.top_card, self.active_color, self.pending_draw, self.pending_type)

    @staticmethod
    def _legal_on(
        card: UnoCard,
        top: Optional[UnoCard],
        active_color: Optional[str],
        pending_draw: int,
        pending_type: Optional[str],
    ) -> bool:
        if pending_draw > 0:
            return card.type == pending_type
        if card.is_wild:
            return True
        return card.color == active_color or (top is not None and card.type == top.type)

    def playable_cards(self, player: Player) -> list[UnoCard]:
        """Single cards the seat could open a play with right now."""
        playable = []
        for card in player.hand:
            if self.has_drawn and card.id != self.drawn_card_id:
                continue
            if len(player.hand) == 1 and not card.is_digit:
                continue
            if self.is_playable(card):
                playable.append(card)
        return playable

    def _require_turn(self, player_id: str) -> Player:
        self._require_phase(GamePhase.PLAYING)
        current = self.current_player()
        if not current or current.id != player_id:
            raise IllegalMove("Not your turn")
        return current

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    def play_cards(self, player_id: str, card_ids: list, color: Optional[str] = None) -> list[UnoCard]:
        """
        Play one card or a chain of same-type cards.

        The whole batch is validated against a simulated pile before anything
        is mutated, so a rejected batch leaves the game untouched.

        Args:
            player_id: Acting seat.
            card_ids: Ids of the cards to play, in order.
            color: Declared color, required when the batch holds a wildcard.

        Returns:
            The played cards.
        """
        player = self._require_turn(player_id)

        if not isinstance(card_ids, list) or not card_ids:
            raise IllegalMove("Choose at least one card")
        if not all(isinstance(card_id, str) for card_id in card_ids):
            raise IllegalMove("Card ids must be strings")
        if len(set(card_ids)) != len(card_ids):
            raise IllegalMove("A card can only be played once")

        by_id = {c.id: c for c in player.hand}
        if any(card_id not in by_id for card_id in card_ids):
            raise IllegalMove("You do not hold that card")
        cards = [by_id[card_id] for card_id in card_ids]

        if self.has_drawn and cards[0].id != self.drawn_card_id:
            raise IllegalMove("After drawing you may only play the drawn card")
        if any(c.type != cards[0].type for c in cards):
            raise IllegalMove("Chained cards must share the same type")
        if any(c.is_wild for c in cards) and color not in UNO_COLORS:
            raise IllegalMove("Declare a color for the wildcard")
        if len(cards) == len(player.hand) and not cards[-1].is_digit:
            raise IllegalMove("You must finish on a number card")

        top, active, pending, pending_type = self.top_card, self.active_color, self.pending_draw, self.pending_type
        for card in cards:
            if not self._legal_on(card, top, active, pending, pending_type):
                raise IllegalMove(f"{card.color} {card.type} cannot be played now")
            top = card
            active = color if card.is_wild else card.color
            if card.type in UNO_DRAW_AMOUNTS:
                pending += UNO_DRAW_AMOUNTS[card.type]
                pending_type = card.type

        # Validated - apply
        skips = 0
        two_seats = len(self.remaining_players()) == 2
        for card in cards:
            player.hand.remove(card)
            self.discard_pile.append(card)
            if card.type == "skip":
                skips += 1
            elif card.type == "reverse":
                if two_seats:
                    skips += 1
                else:
                    self.direction = -self.direction
        self.active_color = active
        self.pending_draw = pending
        self.pending_type = pending_type

        self._emit(
            "move_applied",
            player_id=player.id,
            action="play",
            cards=[c.to_dict() for c in cards],
            active_color=self.active_color,
            pending_draw=self.pending_draw,
        )

        if not player.hand:
            self._finish_seat(player)
            if self.phase == GamePhase.FINISHED:
                return cards

        self._end_turn(player, skips)
        return cards

    def draw_card(self, player_id: str) -> list[UnoCard]:
        """
        Draw for the turn.

        With a forced draw pending the seat takes the whole accumulator and
        forfeits the turn. Otherwise one voluntary card; the turn ends unless
        that card is playable.
        """
        player = self._require_turn(player_id)

        if self.pending_draw > 0:
            amount = self.pending_draw
            drawn = self._give_cards(player, amount)
            self.pending_draw = 0
            self.pending_type = None
            self._emit("move_applied", player_id=player.id, action="forced_draw", count=len(drawn))
            self._end_turn(player)
            return drawn

        if self.has_drawn:
            raise IllegalMove("You already drew this turn")

        drawn = self._give_cards(player, 1)
        self._emit("move_applied", player_id=player.id, action="draw", count=len(drawn))
        if not drawn:
            self._end_turn(player)
            return drawn

        self.has_drawn = True
        self.drawn_card_id = drawn[0].id
        if not self.playable_cards(player):
            self._end_turn(player)
        return drawn

    def pass_turn(self, player_id: str) -> None:
        """Keep a playable drawn card and end the turn."""
        player = self._require_turn(player_id)
        if not self.has_drawn:
            raise IllegalMove("Draw before passing")
        self._emit("move_applied", player_id=player.id, action="pass")
        self._end_turn(player)

    def call_uno(self, player_id: str) -> None:
        self._require_phase(GamePhase.PLAYING)
        player = self._require_player(player_id)
        if player.status == PlayerStatus.FINISHED:
            raise IllegalMove("You have already finished")
        if len(player.hand) > 2:
            raise IllegalMove("UNO can only be called with two or fewer cards")
        player.said_uno = True
        self._emit("uno_called", player_id=player.id)

    # -------------------------------------------------------------------------
    # Turn flow
    # -------------------------------------------------------------------------

    def _end_turn(self, player: Player, skips: int = 0) -> None:
        if (
            player.status != PlayerStatus.FINISHED
            and len(player.hand) == 1
            and not player.said_uno
        ):
            penalty = self._give_cards(player, UNO_MISSED_CALL_PENALTY)
            self._emit("uno_penalty", player_id=player.id, count=len(penalty))

        self.has_drawn = False
        self.drawn_card_id = None

        self.current_index = self._next_index(1 + skips)
        nxt = self.players[self.current_index]
        nxt.said_uno = False
        self._emit(
            "turn_changed",
            player_id=nxt.id,
            direction=self.direction,
            pending_draw=self.pending_draw,
            skipped=skips,
        )

    def _next_index(self, steps: int) -> int:
        """(current + direction) mod seats, repeated `steps` times over unfinished seats."""
        if not self.remaining_players():
            return self.current_index
        n = len(self.players)
        idx = self.current_index
        moved = 0
        while moved < steps:
            idx = (idx + self.direction) % n
            if self.players[idx].status != PlayerStatus.FINISHED:
                moved += 1
        return idx

    def _finish_seat(self, player: Player) -> None:
        player.status = PlayerStatus.FINISHED
        self.finish_order.append(player.id)

        pool = 0
        for other in self.remaining_players():
            take = min(self.finish_points, max(other.score, 0))
            other.score -= take
            pool += take
        player.score += pool
        self._emit("seat_finished", player_id=player.id, place=len(self.finish_order), collected=pool)

        humans_left = [p for p in self.remaining_players() if not p.is_cpu]
        if len(humans_left) <= 1 or len(self.remaining_players()) <= 1:
            self._finish_match()

    def _finish_match(self) -> None:
        self.phase = GamePhase.FINISHED
        humans = [p for p in self.players if not p.is_cpu] or self.players
        winner = max(humans, key=lambda p: p.score)
        self.winner_id = winner.id
        standings = [
            {"player_id": p.id, "name": p.name, "score": p.score, "is_cpu": p.is_cpu}
            for p in sorted(self.players, key=lambda p: -p.score)
        ]
        summary = f"{winner.name} wins with {winner.score} points"
        logger.info(f"UNO game {self.game_id[:8]} finished: {summary}")
        self._emit("game_over", winner_id=self.winner_id, standings=standings, summary=summary)

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    def get_state(self, for_player_id: Optional[str]) -> dict:
        state = super().get_state(for_player_id)
        me = self.get_player(for_player_id) if for_player_id else None
        current = self.current_player()
        is_my_turn = bool(me and current and current.id == me.id)

        state.update({
            "top_card": self.top_card.to_dict() if self.top_card else None,
            "active_color": self.active_color,
            "direction": self.direction,
            "pending_draw": self.pending_draw,
            "pending_type": self.pending_type,
            "deck_remaining": self.deck.cards_remaining() if self.deck else 0,
            "hand": [c.to_dict() for c in me.hand] if me else [],
            "hand_counts": {p.id: len(p.hand) for p in self.players},
            "playable": [c.id for c in self.playable_cards(me)] if is_my_turn else [],
            "has_drawn": self.has_drawn if is_my_turn else False,
            "drawn_card_id": self.drawn_card_id if is_my_turn else None,
            "finish_order": list(self.finish_order),
            "winner_id": self.winner_id,
        })
        return state
