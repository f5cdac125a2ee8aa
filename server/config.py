"""
Centralized configuration for the Arcade game server.

Configuration is loaded from (in order of precedence):
1. Environment variables
2. .env file (if exists)
3. Default values

Usage:
    from config import config
    print(config.PORT)
    print(config.seat_caps.for_game("uno"))
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


def get_env(key: str, default: str = "") -> str:
    """Get environment variable with default."""
    return os.environ.get(key, default)


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    val = os.environ.get(key, "").lower()
    if val in ("true", "1", "yes", "on"):
        return True
    if val in ("false", "0", "no", "off"):
        return False
    return default


def get_env_int(key: str, default: int = 0) -> int:
    """Get integer environment variable."""
    try:
        return int(os.environ.get(key, str(default)))
    except ValueError:
        return default


def get_env_float(key: str, default: float = 0.0) -> float:
    """Get float environment variable."""
    try:
        return float(os.environ.get(key, str(default)))
    except ValueError:
        return default


def get_env_int_list(key: str, default: list[int]) -> list[int]:
    """Get a comma-separated list of integers."""
    raw = os.environ.get(key, "")
    if not raw.strip():
        return list(default)
    try:
        return [int(part) for part in raw.split(",") if part.strip()]
    except ValueError:
        return list(default)


@dataclass
class SeatCaps:
    """Maximum seated players per game type (CPU fill excluded)."""
    OTHELLO: int = 2
    CONNECT4: int = 2
    BLACKJACK: int = 4
    UNO: int = 4
    OVERRIDE: int = 6

    def for_game(self, game_type: str) -> int:
        return getattr(self, game_type.upper(), 2)


@dataclass
class EconomySettings:
    """Ledger and buy-in settings."""
    starting_wealth: int = 10000
    relief_threshold: int = 100
    relief_amount: int = 1000
    buy_in_ladder: list[int] = field(default_factory=lambda: [100, 500, 1000, 5000])
    default_buy_in: int = 1000
    # "account" keys ledger records by account id when supplied, "name" always by display name
    ledger_key: str = "account"
    leaderboard_size: int = 10


@dataclass
class GameDefaults:
    """Default rule settings per game."""
    blackjack_rounds: int = 5
    override_rounds: int = 5
    uno_seats: int = 4
    uno_hand_size: int = 7
    uno_finish_points: int = 200
    cpu_starting_points: int = 1000
    min_bet: int = 1


@dataclass
class TimingSettings:
    """Deferred callback delays (seconds)."""
    teardown_delay: float = 15.0
    next_round_delay: float = 5.0
    cpu_think_min: float = 0.4
    cpu_think_max: float = 2.4


@dataclass
class ServerConfig:
    """Server configuration."""
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"

    # Persistence (empty disables snapshots)
    REDIS_URL: str = ""
    SNAPSHOT_INTERVAL_SECONDS: int = 60
    SNAPSHOT_KEY_PREFIX: str = "arcade"
    CHAT_HISTORY_SIZE: int = 50

    # Rooms
    MAX_ROOM_ID_LENGTH: int = 32
    MAX_NAME_LENGTH: int = 24
    STRICT_GAME_TYPE: bool = False

    # Matchmaking
    MATCHMAKING_ENABLED: bool = True
    MATCHMAKING_CARD_GAME_PLAYERS: int = 2
    MATCHMAKING_CHECK_INTERVAL: float = 2.0

    seat_caps: SeatCaps = field(default_factory=SeatCaps)
    economy: EconomySettings = field(default_factory=EconomySettings)
    game_defaults: GameDefaults = field(default_factory=GameDefaults)
    timing: TimingSettings = field(default_factory=TimingSettings)

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Load configuration from environment variables."""
        return cls(
            HOST=get_env("HOST", "0.0.0.0"),
            PORT=get_env_int("PORT", 8000),
            DEBUG=get_env_bool("DEBUG", False),
            LOG_LEVEL=get_env("LOG_LEVEL", "INFO"),
            ENVIRONMENT=get_env("ENVIRONMENT", "development"),
            REDIS_URL=get_env("REDIS_URL", ""),
            SNAPSHOT_INTERVAL_SECONDS=get_env_int("SNAPSHOT_INTERVAL_SECONDS", 60),
            SNAPSHOT_KEY_PREFIX=get_env("SNAPSHOT_KEY_PREFIX", "arcade"),
            CHAT_HISTORY_SIZE=get_env_int("CHAT_HISTORY_SIZE", 50),
            MAX_ROOM_ID_LENGTH=get_env_int("MAX_ROOM_ID_LENGTH", 32),
            MAX_NAME_LENGTH=get_env_int("MAX_NAME_LENGTH", 24),
            STRICT_GAME_TYPE=get_env_bool("STRICT_GAME_TYPE", False),
            MATCHMAKING_ENABLED=get_env_bool("MATCHMAKING_ENABLED", True),
            MATCHMAKING_CARD_GAME_PLAYERS=get_env_int("MATCHMAKING_CARD_GAME_PLAYERS", 2),
            MATCHMAKING_CHECK_INTERVAL=get_env_float("MATCHMAKING_CHECK_INTERVAL", 2.0),
            seat_caps=SeatCaps(
                OTHELLO=get_env_int("SEATS_OTHELLO", 2),
                CONNECT4=get_env_int("SEATS_CONNECT4", 2),
                BLACKJACK=get_env_int("SEATS_BLACKJACK", 4),
                UNO=get_env_int("SEATS_UNO", 4),
                OVERRIDE=get_env_int("SEATS_OVERRIDE", 6),
            ),
            economy=EconomySettings(
                starting_wealth=get_env_int("STARTING_WEALTH", 10000),
                relief_threshold=get_env_int("RELIEF_THRESHOLD", 100),
                relief_amount=get_env_int("RELIEF_AMOUNT", 1000),
                buy_in_ladder=get_env_int_list("BUY_IN_LADDER", [100, 500, 1000, 5000]),
                default_buy_in=get_env_int("DEFAULT_BUY_IN", 1000),
                ledger_key=get_env("LEDGER_KEY", "account"),
                leaderboard_size=get_env_int("LEADERBOARD_SIZE", 10),
            ),
            game_defaults=GameDefaults(
                blackjack_rounds=get_env_int("BLACKJACK_ROUNDS", 5),
                override_rounds=get_env_int("OVERRIDE_ROUNDS", 5),
                uno_seats=get_env_int("UNO_SEATS", 4),
                uno_hand_size=get_env_int("UNO_HAND_SIZE", 7),
                uno_finish_points=get_env_int("UNO_FINISH_POINTS", 200),
                cpu_starting_points=get_env_int("CPU_STARTING_POINTS", 1000),
                min_bet=get_env_int("MIN_BET", 1),
            ),
            timing=TimingSettings(
                teardown_delay=get_env_float("TEARDOWN_DELAY", 15.0),
                next_round_delay=get_env_float("NEXT_ROUND_DELAY", 5.0),
                cpu_think_min=get_env_float("CPU_THINK_MIN", 0.4),
                cpu_think_max=get_env_float("CPU_THINK_MAX", 2.4),
            ),
        )


# Global config instance - loaded once at module import
config = ServerConfig.from_env()


def reload_config() -> ServerConfig:
    """Reload configuration from environment (useful for testing)."""
    global config
    config = ServerConfig.from_env()
    return config
