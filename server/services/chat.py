"""Chat relay history: a bounded log per room plus a global recent feed."""

import time
from collections import deque
from dataclasses import dataclass, field
from typing import Optional

from config import config
from errors import InvalidInput

MAX_MESSAGE_LENGTH = 280


@dataclass
class ChatMessage:
    room_id: str
    name: str
    text: str
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return {
            "room_id": self.room_id,
            "name": self.name,
            "text": self.text,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "ChatMessage":
        return cls(
            room_id=d.get("room_id", ""),
            name=d.get("name", ""),
            text=d.get("text", ""),
            timestamp=float(d.get("timestamp", 0.0)),
        )


class ChatHistory:
    """Recent chat kept in memory and snapshotted with the ledger."""

    def __init__(self, size: Optional[int] = None):
        self.size = config.CHAT_HISTORY_SIZE if size is None else size
        self.recent: deque[ChatMessage] = deque(maxlen=self.size)
        self.by_room: dict[str, deque[ChatMessage]] = {}
        self.dirty = False

    def post(self, room_id: str, name: str, text) -> ChatMessage:
        text = str(text or "").strip()
        if not text:
            raise InvalidInput("Empty chat message")
        message = ChatMessage(room_id=room_id, name=name, text=text[:MAX_MESSAGE_LENGTH])
        self.recent.append(message)
        self.by_room.setdefault(room_id, deque(maxlen=self.size)).append(message)
        self.dirty = True
        return message

    def room_history(self, room_id: str) -> list[dict]:
        return [m.to_dict() for m in self.by_room.get(room_id, ())]

    def forget_room(self, room_id: str) -> None:
        self.by_room.pop(room_id, None)

    def to_snapshot(self) -> list[dict]:
        return [m.to_dict() for m in self.recent]

    def load_snapshot(self, data: list[dict]) -> None:
        self.recent = deque((ChatMessage.from_dict(d) for d in data), maxlen=self.size)
        self.by_room = {}
        for message in self.recent:
            self.by_room.setdefault(message.room_id, deque(maxlen=self.size)).append(message)
        self.dirty = False
