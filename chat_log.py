from collections import deque
from dataclasses import dataclass, asdict
from typing import List, Optional

from constants import (
    CHAT_HISTORY_LIMIT,
    CHAT_REPLAY_LIMIT,
    CHAT_TEXT_MAX_LENGTH,
    CHAT_USER_MAX_LENGTH,
    DEFAULT_USER_NAME,
)


@dataclass(frozen=True)
class ChatMessage:
    user: str
    text: str
    ts: int # epoch milliseconds

    def to_dict(self) -> dict:
        return asdict(self)


def clean_user_name(user) -> str:
    """Trim and bound a display name, falling back to the default guest name."""
    name = str(user).strip() if user is not None else ""
    return name[:CHAT_USER_MAX_LENGTH] or DEFAULT_USER_NAME


class ChatLog:
    """Bounded, append-only chat history of a single room.

    Once `limit` messages are stored each append evicts the oldest one, so the
    remaining messages always keep their insertion order.
    """

    def __init__(self, limit: int = CHAT_HISTORY_LIMIT):
        self.limit = limit
        self._messages = deque(maxlen=limit)

    def append(self, user, text, ts: int) -> Optional[ChatMessage]:
        body = str(text).strip()[:CHAT_TEXT_MAX_LENGTH] if text is not None else ""
        if not body:
            return None
        message = ChatMessage(user=clean_user_name(user), text=body, ts=ts)
        self._messages.append(message)
        return message

    def recent(self, limit: int = CHAT_REPLAY_LIMIT) -> List[ChatMessage]:
        if limit <= 0:
            return []
        return list(self._messages)[-limit:]

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self):
        return iter(list(self._messages))
