"""
Health check endpoints.

Provides:
- /health - Liveness (is the process up?)
- /ready - Readiness (is the snapshot store reachable, when configured?)
- /metrics - Room and queue counts for dashboards
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from games import GameType

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

# Service references (set during app initialization)
_redis_client = None
_room_manager = None
_matchmaking_service = None


def set_health_dependencies(redis_client=None, room_manager=None, matchmaking_service=None):
    """Set dependencies for health checks."""
    global _redis_client, _room_manager, _matchmaking_service
    _redis_client = redis_client
    _room_manager = room_manager
    _matchmaking_service = matchmaking_service


@router.get("/health")
async def health_check():
    """Always 200 while the process is alive."""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/ready")
async def readiness_check():
    """503 when the configured Redis snapshot store cannot be reached."""
    checks = {}
    healthy = True

    if _redis_client is not None:
        try:
            await _redis_client.ping()
            checks["redis"] = {"status": "ok"}
        except Exception as e:
            logger.warning(f"Redis health check failed: {e}")
            checks["redis"] = {"status": "error", "message": str(e)}
            healthy = False
    else:
        checks["redis"] = {"status": "not_configured"}

    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "ok" if healthy else "degraded",
            "checks": checks,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


@router.get("/metrics")
async def metrics():
    metrics_data = {"timestamp": datetime.now(timezone.utc).isoformat()}

    if _room_manager is not None:
        rooms = list(_room_manager.rooms.values())
        by_type = {game_type.value: 0 for game_type in GameType}
        for room in rooms:
            by_type[room.game_type.value] += 1
        metrics_data.update({
            "active_rooms": len(rooms),
            "rooms_by_game": by_type,
            "total_players": sum(room.human_player_count() for room in rooms),
            "games_in_progress": sum(1 for room in rooms if room.game.is_active),
            "ledger_records": len(_room_manager.ledger.records),
        })

    if _matchmaking_service is not None:
        metrics_data["queued"] = {
            game_type.value: _matchmaking_service.queue_size(game_type) for game_type in GameType
        }

    return metrics_data
