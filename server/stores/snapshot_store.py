"""
Redis-backed snapshot of the ledger and recent chat.

This is a flat key-value snapshot, not a log: each save overwrites the
previous one. Loaded once on startup, written on a fixed interval (only when
something changed) and on shutdown.

Persistence is best effort. Every failure is logged and swallowed so a
Redis outage never stalls gameplay.

Key patterns:
- {prefix}:ledger  -> Hash (identity -> JSON ledger record)
- {prefix}:chat    -> String (JSON list of recent chat messages)
"""

import asyncio
import json
import logging
from typing import Optional

import redis.asyncio as redis

from services.chat import ChatHistory
from services.ledger import Ledger

logger = logging.getLogger(__name__)


class SnapshotStore:
    """Loads and saves ledger/chat snapshots in Redis."""

    def __init__(self, redis_client: redis.Redis, prefix: str = "arcade"):
        self.redis = redis_client
        self.ledger_key = f"{prefix}:ledger"
        self.chat_key = f"{prefix}:chat"
        self._task: Optional[asyncio.Task] = None

    @classmethod
    async def create(cls, redis_url: str, prefix: str = "arcade") -> "SnapshotStore":
        client = redis.from_url(redis_url, decode_responses=True)
        await client.ping()
        logger.info("SnapshotStore connected to Redis")
        return cls(client, prefix)

    async def close(self) -> None:
        await self.stop()
        await self.redis.close()

    async def load(self, ledger: Ledger, chat: ChatHistory) -> bool:
        """Restore ledger and chat; returns False when Redis was unreachable."""
        try:
            raw_ledger = await self.redis.hgetall(self.ledger_key)
            raw_chat = await self.redis.get(self.chat_key)
        except Exception as e:
            logger.error(f"Snapshot load failed: {e}")
            return False

        records = {}
        for key, value in (raw_ledger or {}).items():
            try:
                records[key] = json.loads(value)
            except (TypeError, ValueError):
                logger.warning(f"Skipping unreadable ledger entry {key!r}")
        count = ledger.load_snapshot(records)

        if raw_chat:
            try:
                chat.load_snapshot(json.loads(raw_chat))
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping unreadable chat snapshot: {e}")

        logger.info(f"Loaded snapshot: {count} ledger records, {len(chat.recent)} chat messages")
        return True

    async def save(self, ledger: Ledger, chat: ChatHistory, force: bool = False) -> bool:
        """Write both snapshots when dirty (or forced)."""
        if not force and not ledger.dirty and not chat.dirty:
            return True
        # Changes landing during the write must stay dirty
        ledger.dirty = False
        chat.dirty = False
        records = ledger.to_snapshot()
        messages = chat.to_snapshot()
        try:
            pipe = self.redis.pipeline()
            pipe.delete(self.ledger_key)
            if records:
                pipe.hset(
                    self.ledger_key,
                    mapping={key: json.dumps(value) for key, value in records.items()},
                )
            pipe.set(self.chat_key, json.dumps(messages))
            await pipe.execute()
        except Exception as e:
            logger.error(f"Snapshot save failed: {e}")
            ledger.dirty = True
            chat.dirty = True
            return False

        logger.debug(f"Saved snapshot: {len(records)} ledger records")
        return True

    def start(self, ledger: Ledger, chat: ChatHistory, interval: float) -> None:
        """Start periodic saves in the background."""
        if self._task is None:
            self._task = asyncio.create_task(self._save_loop(ledger, chat, interval))

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _save_loop(self, ledger: Ledger, chat: ChatHistory, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            await self.save(ledger, chat)
