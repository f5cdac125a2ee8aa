"""Services package: ledger, chat history and matchmaking."""

from .chat import ChatHistory, ChatMessage
from .ledger import Ledger, LedgerRecord
from .matchmaking import MatchmakingConfig, MatchmakingService, QueuedPlayer

__all__ = [
    "ChatHistory",
    "ChatMessage",
    "Ledger",
    "LedgerRecord",
    "MatchmakingConfig",
    "MatchmakingService",
    "QueuedPlayer",
]
