"""
Error taxonomy for room and game actions.

Every rejection carries a stable machine-readable code plus a human message.
Handlers catch GameError and report it to the acting connection only; no
error here ever changes room or ledger state.
"""


class GameError(Exception):
    """Base exception for game-related errors."""

    code = "game_error"

    def __init__(self, message: str = "", code: str = ""):
        self.message = message or self.__class__.__name__
        if code:
            self.code = code
        super().__init__(f"[{self.code}] {self.message}")

    def to_message(self) -> dict:
        """Outbound error payload for the actor."""
        return {"type": "error", "code": self.code, "message": self.message}


class InvalidInput(GameError):
    """Missing or malformed request fields (username, room, payload)."""

    code = "invalid_input"


class RoomFull(GameError):
    """The room has reached the seat cap for its game type."""

    code = "room_full"


class GameTypeMismatch(GameError):
    """Joining an existing room with a different game type (strict mode)."""

    code = "game_type_mismatch"


class GameInProgress(GameError):
    """The room is mid-match and not accepting new seats."""

    code = "game_in_progress"


class IllegalMove(GameError):
    """Wrong turn, rule violation, occupied cell, full column, unplayable card."""

    code = "illegal_move"


class InsufficientFunds(GameError):
    """Ledger wealth below the requested buy-in."""

    code = "insufficient_funds"
