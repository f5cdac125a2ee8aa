"""
Pure rule evaluators shared by the engines.

Nothing here touches engine state: every function takes plain boards, hands
or cards and returns a result, so the rules can be tested in isolation.

Board cells are None (empty) or a color string.
"""

from typing import Iterable, Optional, Sequence

from constants import (
    ACE_DEVALUATION,
    AXES_4,
    BLACKJACK_TARGET,
    CONNECT4_COLS,
    CONNECT4_ROWS,
    CONNECT4_WIN_LENGTH,
    DIRECTIONS_8,
    OTHELLO_COLORS,
    OTHELLO_SIZE,
    PAYOUT_BLACKJACK,
    PAYOUT_LOSS,
    PAYOUT_PUSH,
    PAYOUT_WIN,
)
from games.cards import Card

Board = list[list[Optional[str]]]


def empty_board(rows: int, cols: int) -> Board:
    return [[None] * cols for _ in range(rows)]


# =============================================================================
# Othello
# =============================================================================

def othello_initial_board() -> Board:
    """8x8 board with the standard four-stone center."""
    board = empty_board(OTHELLO_SIZE, OTHELLO_SIZE)
    black, white = OTHELLO_COLORS
    mid = OTHELLO_SIZE // 2
    board[mid - 1][mid - 1] = white
    board[mid - 1][mid] = black
    board[mid][mid - 1] = black
    board[mid][mid] = white
    return board


def othello_opponent(color: str) -> str:
    black, white = OTHELLO_COLORS
    return white if color == black else black


def othello_flips(board: Board, row: int, col: int, color: str) -> list[tuple[int, int]]:
    """
    Stones flipped by placing `color` at (row, col).

    A ray qualifies when it holds a non-empty run of opponent stones that is
    immediately closed by one of the mover's stones. The result is the union
    of all qualifying runs; empty means the move is illegal.
    """
    size = len(board)
    if not (0 <= row < size and 0 <= col < size) or board[row][col] is not None:
        return []

    opponent = othello_opponent(color)
    flips: list[tuple[int, int]] = []

    for dr, dc in DIRECTIONS_8:
        run: list[tuple[int, int]] = []
        r, c = row + dr, col + dc
        while 0 <= r < size and 0 <= c < size and board[r][c] == opponent:
            run.append((r, c))
            r += dr
            c += dc
        if run and 0 <= r < size and 0 <= c < size and board[r][c] == color:
            flips.extend(run)

    return flips


def othello_legal_moves(board: Board, color: str) -> list[tuple[int, int]]:
    size = len(board)
    return [
        (r, c)
        for r in range(size)
        for c in range(size)
        if othello_flips(board, r, c, color)
    ]


def othello_has_legal_move(board: Board, color: str) -> bool:
    size = len(board)
    return any(
        othello_flips(board, r, c, color)
        for r in range(size)
        for c in range(size)
    )


def othello_counts(board: Board) -> dict[str, int]:
    counts = {color: 0 for color in OTHELLO_COLORS}
    for row in board:
        for cell in row:
            if cell in counts:
                counts[cell] += 1
    return counts


# =============================================================================
# Connect-4
# =============================================================================

def connect4_drop_row(board: Board, col: int) -> Optional[int]:
    """Lowest empty row in `col`, or None if the column is full or out of range."""
    if not (0 <= col < CONNECT4_COLS):
        return None
    for row in range(CONNECT4_ROWS - 1, -1, -1):
        if board[row][col] is None:
            return row
    return None


def connect4_is_win(board: Board, row: int, col: int) -> bool:
    """Whether the stone at (row, col) completes four in a row on any axis."""
    color = board[row][col]
    if color is None:
        return False

    rows, cols = len(board), len(board[0])
    for dr, dc in AXES_4:
        count = 1
        for sign in (1, -1):
            r, c = row + dr * sign, col + dc * sign
            while 0 <= r < rows and 0 <= c < cols and board[r][c] == color:
                count += 1
                r += dr * sign
                c += dc * sign
        if count >= CONNECT4_WIN_LENGTH:
            return True
    return False


def connect4_is_full(board: Board) -> bool:
    return all(cell is not None for cell in board[0])


# =============================================================================
# Blackjack
# =============================================================================

def hand_value(cards: Iterable[Card]) -> int:
    """
    Blackjack hand total.

    Aces count 11 and are devalued to 1, one at a time, while the total
    exceeds 21.
    """
    total = 0
    aces = 0
    for card in cards:
        total += card.value
        if card.is_ace:
            aces += 1
    while total > BLACKJACK_TARGET and aces:
        total -= ACE_DEVALUATION
        aces -= 1
    return total


def is_natural(cards: Sequence[Card]) -> bool:
    """Two-card 21."""
    return len(cards) == 2 and hand_value(cards) == BLACKJACK_TARGET


def blackjack_multiplier(
    player_cards: Sequence[Card],
    dealer_cards: Sequence[Card],
) -> float:
    """
    Payout multiplier applied to a seat's bet once the dealer has played.

    Priority: bust, player natural (push against a dealer natural), dealer
    bust or higher total, equal totals, loss.
    """
    player_total = hand_value(player_cards)
    dealer_total = hand_value(dealer_cards)

    if player_total > BLACKJACK_TARGET:
        return PAYOUT_LOSS
    if is_natural(player_cards):
        return PAYOUT_PUSH if is_natural(dealer_cards) else PAYOUT_BLACKJACK
    if dealer_total > BLACKJACK_TARGET or player_total > dealer_total:
        return PAYOUT_WIN
    if player_total == dealer_total:
        return PAYOUT_PUSH
    return PAYOUT_LOSS


# =============================================================================
# Override (high/low)
# =============================================================================

HIGH = "high"
LOW = "low"


def override_multiplier(base: Card, drawn: Card, guess: str) -> float:
    """Push on equal power, double on a correct direction, lose otherwise."""
    if drawn.power == base.power:
        return PAYOUT_PUSH
    went_high = drawn.power > base.power
    if (guess == HIGH) == went_high:
        return PAYOUT_WIN
    return PAYOUT_LOSS


def apply_multiplier(bet: int, multiplier: float) -> int:
    """Chips returned for a bet, floored."""
    return int(bet * multiplier)
