"""Game engines, one per game type."""

from config import config

from .base import BaseGame, GamePhase, GameType, Player, PlayerStatus
from .blackjack import BlackjackGame
from .connect4 import Connect4Game
from .othello import OthelloGame
from .override import OverrideGame
from .uno import UnoGame


def create_game(game_type: GameType) -> BaseGame:
    """Build a fresh engine for `game_type` using the configured rule settings."""
    defaults = config.game_defaults
    seats = config.seat_caps.for_game(game_type.value)

    if game_type == GameType.OTHELLO:
        return OthelloGame()
    if game_type == GameType.CONNECT4:
        return Connect4Game()
    if game_type == GameType.BLACKJACK:
        return BlackjackGame(max_players=seats, num_rounds=defaults.blackjack_rounds, min_bet=defaults.min_bet)
    if game_type == GameType.OVERRIDE:
        return OverrideGame(max_players=seats, num_rounds=defaults.override_rounds, min_bet=defaults.min_bet)
    if game_type == GameType.UNO:
        target = max(defaults.uno_seats, seats)
        return UnoGame(
            max_players=target,
            target_seats=defaults.uno_seats,
            hand_size=defaults.uno_hand_size,
            finish_points=defaults.uno_finish_points,
        )
    raise ValueError(f"Unknown game type: {game_type}")


__all__ = [
    "BaseGame",
    "GamePhase",
    "GameType",
    "Player",
    "PlayerStatus",
    "BlackjackGame",
    "Connect4Game",
    "OthelloGame",
    "OverrideGame",
    "UnoGame",
    "create_game",
]
