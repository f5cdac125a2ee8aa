"""
Rule constants for the Arcade games.

This module is the single source of truth for board sizes, card values and
deck composition. Tunable settings (seat caps, buy-ins, delays) live in
config.py instead.

Blackjack Scoring:
    - 2-10: Face value
    - Jack, Queen, King: 10
    - Ace: 11, devalued to 1 while the hand is over 21

Override Ordering:
    - Cards compare by power only: 2 lowest, Ace highest (14)
    - Suits never break ties
"""

# =============================================================================
# Board Games
# =============================================================================

OTHELLO_SIZE = 8
OTHELLO_COLORS = ("black", "white")

CONNECT4_ROWS = 6
CONNECT4_COLS = 7
CONNECT4_COLORS = ("red", "yellow")
CONNECT4_WIN_LENGTH = 4

# Row/column deltas for the 8 compass directions
DIRECTIONS_8 = (
    (-1, -1), (-1, 0), (-1, 1),
    (0, -1), (0, 1),
    (1, -1), (1, 0), (1, 1),
)

# One delta per axis; win checks walk each axis both ways
AXES_4 = ((0, 1), (1, 0), (1, 1), (1, -1))


# =============================================================================
# French-suited Cards (Blackjack / Override)
# =============================================================================

SUITS = ("hearts", "diamonds", "clubs", "spades")
RANKS = ("2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K", "A")

BLACKJACK_VALUES: dict[str, int] = {
    "2": 2, "3": 3, "4": 4, "5": 5, "6": 6, "7": 7, "8": 8, "9": 9, "10": 10,
    "J": 10, "Q": 10, "K": 10,
    "A": 11,
}

OVERRIDE_POWER: dict[str, int] = {rank: i + 2 for i, rank in enumerate(RANKS)}

BLACKJACK_TARGET = 21
ACE_DEVALUATION = 10
DEALER_STAND_ON = 17

# Payout multipliers (applied to the bet, floored)
PAYOUT_BLACKJACK = 2.5
PAYOUT_WIN = 2.0
PAYOUT_PUSH = 1.0
PAYOUT_LOSS = 0.0


# =============================================================================
# UNO
# =============================================================================

UNO_COLORS = ("red", "yellow", "green", "blue")
UNO_WILD_COLOR = "wild"
UNO_DIGITS = tuple(str(n) for n in range(10))
UNO_ACTIONS = ("skip", "reverse", "draw2")
UNO_WILDS = ("wild", "draw4")

# Penalty per forced-draw card type
UNO_DRAW_AMOUNTS: dict[str, int] = {"draw2": 2, "draw4": 4}

UNO_COPIES_PER_WILD = 4
UNO_MISSED_CALL_PENALTY = 2
