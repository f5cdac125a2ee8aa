"""
Matchmaking service: first-in, first-out pairing per game type.

Players queue for a game type. A background task periodically pairs the
oldest waiting players into a freshly named room and sends each of them a
`queue_matched` message; clients then join that room the normal way.
There is no rating and no fairness beyond queue order.
"""

import asyncio
import logging
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional

from fastapi import WebSocket

from config import config
from errors import InvalidInput
from games import GameType

logger = logging.getLogger(__name__)


@dataclass
class QueuedPlayer:
    """A player waiting in the matchmaking queue."""
    connection_id: str
    name: str
    game_type: GameType
    websocket: Optional[WebSocket]
    queued_at: float  # time.time()


@dataclass
class MatchmakingConfig:
    """Configuration for the matchmaking system."""
    enabled: bool = True
    board_game_players: int = 2
    card_game_players: int = 2
    match_check_interval: float = 2.0

    @classmethod
    def from_server_config(cls) -> "MatchmakingConfig":
        return cls(
            enabled=config.MATCHMAKING_ENABLED,
            card_game_players=config.MATCHMAKING_CARD_GAME_PLAYERS,
            match_check_interval=config.MATCHMAKING_CHECK_INTERVAL,
        )

    def group_size(self, game_type: GameType) -> int:
        if game_type.is_board_game:
            return self.board_game_players
        cap = config.seat_caps.for_game(game_type.value)
        return max(1, min(self.card_game_players, cap))


class MatchmakingService:
    """Per-game-type FIFO queues and the background pairing loop."""

    def __init__(self, mm_config: Optional[MatchmakingConfig] = None):
        self.config = mm_config or MatchmakingConfig.from_server_config()
        # game_type -> connection_id -> QueuedPlayer, in arrival order
        self._queues: dict[GameType, OrderedDict[str, QueuedPlayer]] = {
            game_type: OrderedDict() for game_type in GameType
        }
        self._running = False
        self._task: Optional[asyncio.Task] = None

    def join_queue(
        self,
        connection_id: str,
        name: str,
        game_type: GameType,
        websocket: Optional[WebSocket] = None,
    ) -> dict:
        """
        Add a player to the back of a game type's queue.

        Re-queuing for another game type moves the player; re-queuing for
        the same one keeps their place.

        Returns:
            Queue status dict.
        """
        if not self.config.enabled:
            raise InvalidInput("Matchmaking is disabled")

        current = self.queued_game_type(connection_id)
        if current == game_type:
            return self.get_queue_status(connection_id)
        if current is not None:
            self.leave_queue(connection_id)

        self._queues[game_type][connection_id] = QueuedPlayer(
            connection_id=connection_id,
            name=name,
            game_type=game_type,
            websocket=websocket,
            queued_at=time.time(),
        )
        logger.info(f"{name} ({connection_id[:8]}) queued for {game_type.value}")
        return self.get_queue_status(connection_id)

    def leave_queue(self, connection_id: str) -> bool:
        for queue in self._queues.values():
            player = queue.pop(connection_id, None)
            if player:
                logger.info(f"{player.name} ({connection_id[:8]}) left the {player.game_type.value} queue")
                return True
        return False

    def queued_game_type(self, connection_id: str) -> Optional[GameType]:
        for game_type, queue in self._queues.items():
            if connection_id in queue:
                return game_type
        return None

    def get_queue_status(self, connection_id: str) -> dict:
        game_type = self.queued_game_type(connection_id)
        if game_type is None:
            return {"in_queue": False}

        queue = self._queues[game_type]
        player = queue[connection_id]
        return {
            "in_queue": True,
            "game_type": game_type.value,
            "position": list(queue).index(connection_id) + 1,
            "queue_size": len(queue),
            "needed": self.config.group_size(game_type),
            "wait_time": int(time.time() - player.queued_at),
        }

    def queue_size(self, game_type: GameType) -> int:
        return len(self._queues[game_type])

    def find_matches(self) -> list[dict]:
        """
        Pop the oldest full groups off every queue.

        Returns:
            One match dict per group: room_id, game_type and the players.
        """
        matches = []
        for game_type, queue in self._queues.items():
            size = self.config.group_size(game_type)
            while len(queue) >= size:
                group = [queue.popitem(last=False)[1] for _ in range(size)]
                matches.append({
                    "room_id": f"{game_type.value}-{uuid.uuid4().hex[:6]}",
                    "game_type": game_type,
                    "players": group,
                })
        return matches

    async def notify_matches(self, matches: list[dict]) -> None:
        for match in matches:
            names = [p.name for p in match["players"]]
            logger.info(f"Matched {names} into {match['room_id']}")
            for player in match["players"]:
                if not player.websocket:
                    continue
                try:
                    await player.websocket.send_json({
                        "type": "queue_matched",
                        "room_id": match["room_id"],
                        "game_type": match["game_type"].value,
                        "players": names,
                    })
                except Exception as e:
                    logger.debug(f"Failed to notify matched player {player.connection_id[:8]}: {e}")

    async def run_once(self) -> list[dict]:
        """One pairing pass plus queue status updates for whoever still waits."""
        matches = self.find_matches()
        await self.notify_matches(matches)

        for queue in self._queues.values():
            for connection_id, player in list(queue.items()):
                if not player.websocket:
                    continue
                try:
                    await player.websocket.send_json({
                        "type": "queue_status",
                        **self.get_queue_status(connection_id),
                    })
                except Exception:
                    # Disconnected, drop from queue
                    self.leave_queue(connection_id)
        return matches

    async def start(self) -> None:
        """Start the matchmaking background task."""
        if self._running or not self.config.enabled:
            return
        self._running = True
        self._task = asyncio.create_task(self._matchmaking_loop())
        logger.info("Matchmaking service started")

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Matchmaking service stopped")

    async def _matchmaking_loop(self) -> None:
        while self._running:
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Matchmaking error: {e}")
            await asyncio.sleep(self.config.match_check_interval)
