"""
Leaderboard API router.

Public, read-only view of the wealth ledger.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from services.ledger import Ledger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["leaderboard"])


# =============================================================================
# Response Models
# =============================================================================


class LeaderboardEntryResponse(BaseModel):
    """Single leaderboard entry."""
    rank: int
    key: str
    total_wealth: int
    cumulative_score: int
    games_played: int


class LeaderboardResponse(BaseModel):
    entries: list[LeaderboardEntryResponse]
    total_players: int


class LedgerRecordResponse(BaseModel):
    key: str
    total_wealth: int
    cumulative_score: int
    games_played: int


# =============================================================================
# Dependencies
# =============================================================================

_ledger: Ledger = None


def set_ledger(ledger: Ledger) -> None:
    """Set the ledger instance (called from main.py)."""
    global _ledger
    _ledger = ledger


def get_ledger_dep() -> Ledger:
    if _ledger is None:
        raise HTTPException(status_code=503, detail="Ledger not initialized")
    return _ledger


# =============================================================================
# Endpoints
# =============================================================================


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(
    limit: int = Query(10, ge=1, le=100),
    ledger: Ledger = Depends(get_ledger_dep),
):
    """Top identities by total wealth, ties broken by cumulative score."""
    return {
        "entries": ledger.leaderboard(limit),
        "total_players": len(ledger.records),
    }


@router.get("/players/{key}", response_model=LedgerRecordResponse)
async def get_player_record(key: str, ledger: Ledger = Depends(get_ledger_dep)):
    """One identity's record; unknown identities are not created."""
    if key not in ledger.records:
        raise HTTPException(status_code=404, detail="Player not found")
    return ledger.get_record(key).to_dict()
