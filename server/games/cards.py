"""
Cards and decks for the card games.

Blackjack and Override share a standard 52-card French deck. UNO uses its own
108-card deck where every card carries a unique instance id: two red 7s are
distinct objects and the client refers to cards by id.
"""

import random
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from constants import (
    BLACKJACK_VALUES,
    OVERRIDE_POWER,
    RANKS,
    SUITS,
    UNO_ACTIONS,
    UNO_COLORS,
    UNO_COPIES_PER_WILD,
    UNO_DIGITS,
    UNO_WILD_COLOR,
    UNO_WILDS,
)


@dataclass(frozen=True)
class Card:
    """
    A standard playing card.

    Attributes:
        suit: hearts, diamonds, clubs or spades.
        rank: "2".."10", "J", "Q", "K" or "A".
        value: Blackjack value (faces 10, ace 11 before devaluation).
        power: Override ordering (2 lowest, ace 14).
    """

    suit: str
    rank: str
    value: int
    power: int

    @classmethod
    def of(cls, rank: str, suit: str = "spades") -> "Card":
        """Build a card with values derived from its rank."""
        return cls(suit=suit, rank=rank, value=BLACKJACK_VALUES[rank], power=OVERRIDE_POWER[rank])

    @property
    def is_ace(self) -> bool:
        return self.rank == "A"

    def to_dict(self) -> dict:
        return {"suit": self.suit, "rank": self.rank, "value": self.value, "power": self.power}


@dataclass(frozen=True)
class UnoCard:
    """
    An UNO card.

    Attributes:
        id: Unique instance identifier within one deck.
        color: red, yellow, green, blue, or "wild" for wildcards.
        type: "0".."9", "skip", "reverse", "draw2", "wild" or "draw4".
    """

    id: str
    color: str
    type: str

    @property
    def is_wild(self) -> bool:
        return self.type in UNO_WILDS

    @property
    def is_digit(self) -> bool:
        return self.type in UNO_DIGITS

    def to_dict(self) -> dict:
        return {"id": self.id, "color": self.color, "type": self.type}


def standard_cards() -> list[Card]:
    """One 52-card deck in suit/rank order."""
    return [Card.of(rank, suit) for suit in SUITS for rank in RANKS]


def uno_cards() -> list[UnoCard]:
    """
    The 108-card UNO deck.

    Per color: one 0, two each of 1-9, skip, reverse and draw-two.
    Plus four wild and four wild draw-four.
    """
    cards: list[UnoCard] = []

    def add(color: str, card_type: str) -> None:
        cards.append(UnoCard(id=f"u{len(cards)}", color=color, type=card_type))

    for color in UNO_COLORS:
        add(color, "0")
        for card_type in UNO_DIGITS[1:] + UNO_ACTIONS:
            add(color, card_type)
            add(color, card_type)

    for card_type in UNO_WILDS:
        for _ in range(UNO_COPIES_PER_WILD):
            add(UNO_WILD_COLOR, card_type)

    return cards


CardT = TypeVar("CardT")


class Deck(Generic[CardT]):
    """
    A draw pile that can be shuffled and drawn from.

    The pile is drawn from the end of the list. A seed is always recorded so
    a deal can be reproduced.
    """

    def __init__(self, cards: list[CardT], seed: Optional[int] = None, shuffle: bool = True) -> None:
        self.cards: list[CardT] = list(cards)
        self.seed: int = seed if seed is not None else random.randint(0, 2**31 - 1)
        self._rng = random.Random(self.seed)
        if shuffle:
            self.shuffle()

    def shuffle(self) -> None:
        """Uniform Fisher-Yates shuffle of the remaining cards."""
        self._rng.shuffle(self.cards)

    def draw(self) -> Optional[CardT]:
        """Draw the top card, or None if the pile is empty."""
        if self.cards:
            return self.cards.pop()
        return None

    def add_cards(self, cards: list[CardT]) -> None:
        """Return cards to the pile and reshuffle."""
        self.cards.extend(cards)
        self.shuffle()

    def cards_remaining(self) -> int:
        return len(self.cards)

    def __len__(self) -> int:
        return len(self.cards)
