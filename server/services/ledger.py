"""
Process-wide wealth ledger.

Each identity (account id when supplied on join, else display name) has a
persistent balance that card-game buy-ins draw from and payouts return to,
plus a running sum of net match results.

Relief: a balance below the configured threshold is topped up to the relief
amount whenever the record is touched, so nobody is locked out for good.

All mutations happen on the event loop thread between awaits, so the ledger
needs no locking of its own.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from config import config
from errors import InsufficientFunds, InvalidInput

logger = logging.getLogger(__name__)


@dataclass
class LedgerRecord:
    """
    One identity's standing.

    Attributes:
        key: Account id or display name.
        total_wealth: Balance outside any room.
        cumulative_score: Sum of net results of settled matches.
        games_played: Number of settlements.
    """

    key: str
    total_wealth: int
    cumulative_score: int = 0
    games_played: int = 0

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "total_wealth": self.total_wealth,
            "cumulative_score": self.cumulative_score,
            "games_played": self.games_played,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "LedgerRecord":
        return cls(
            key=d["key"],
            total_wealth=int(d.get("total_wealth", 0)),
            cumulative_score=int(d.get("cumulative_score", 0)),
            games_played=int(d.get("games_played", 0)),
        )


class Ledger:
    """Wealth records keyed by stable identity."""

    def __init__(
        self,
        starting_wealth: Optional[int] = None,
        relief_threshold: Optional[int] = None,
        relief_amount: Optional[int] = None,
    ):
        economy = config.economy
        self.starting_wealth = economy.starting_wealth if starting_wealth is None else starting_wealth
        self.relief_threshold = economy.relief_threshold if relief_threshold is None else relief_threshold
        self.relief_amount = economy.relief_amount if relief_amount is None else relief_amount
        self.records: dict[str, LedgerRecord] = {}
        self.dirty = False

    @staticmethod
    def identity(name: str, account_id: Optional[str] = None) -> str:
        """Ledger key for a joiner, honouring the configured key mode."""
        if config.economy.ledger_key == "account" and account_id:
            return str(account_id)
        return name

    def _apply_relief(self, record: LedgerRecord) -> None:
        if record.total_wealth < self.relief_threshold:
            logger.info(
                f"Relief for {record.key}: {record.total_wealth} -> {self.relief_amount}"
            )
            record.total_wealth = max(record.total_wealth, self.relief_amount)
            self.dirty = True

    def get_record(self, key: str) -> LedgerRecord:
        """Fetch (creating if new) and apply relief."""
        if not key:
            raise InvalidInput("Missing ledger identity")
        record = self.records.get(key)
        if record is None:
            record = LedgerRecord(key=key, total_wealth=self.starting_wealth)
            self.records[key] = record
            self.dirty = True
        self._apply_relief(record)
        return record

    def buy_in(self, key: str, amount: int) -> int:
        """
        Move `amount` from the record's wealth into a room's chip stack.

        Raises:
            InsufficientFunds: Wealth below the amount; the record is untouched.
        """
        record = self.get_record(key)
        if amount <= 0:
            raise InvalidInput("Buy-in must be positive")
        if record.total_wealth < amount:
            raise InsufficientFunds(
                f"Buy-in of {amount} exceeds your balance of {record.total_wealth}"
            )
        record.total_wealth -= amount
        self.dirty = True
        return amount

    def settle(self, key: str, initial: int, final: int) -> LedgerRecord:
        """Return the final chip count and record the net result."""
        record = self.get_record(key)
        record.total_wealth += max(0, final)
        record.cumulative_score += final - initial
        record.games_played += 1
        self.dirty = True
        self._apply_relief(record)
        logger.info(f"Settled {key}: {final - initial:+d}, wealth now {record.total_wealth}")
        return record

    def leaderboard(self, limit: Optional[int] = None) -> list[dict]:
        """Top records by total wealth, then cumulative score."""
        limit = config.economy.leaderboard_size if limit is None else limit
        ranked = sorted(
            self.records.values(),
            key=lambda r: (-r.total_wealth, -r.cumulative_score, r.key),
        )
        return [{"rank": i + 1, **r.to_dict()} for i, r in enumerate(ranked[:limit])]

    # -------------------------------------------------------------------------
    # Snapshot
    # -------------------------------------------------------------------------

    def to_snapshot(self) -> dict[str, dict]:
        return {key: record.to_dict() for key, record in self.records.items()}

    def load_snapshot(self, data: dict[str, dict]) -> int:
        """Replace records from a snapshot; returns how many were loaded."""
        loaded = {}
        for key, raw in data.items():
            try:
                loaded[key] = LedgerRecord.from_dict({"key": key, **raw})
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed ledger record {key!r}: {e}")
        self.records = loaded
        self.dirty = False
        return len(loaded)
