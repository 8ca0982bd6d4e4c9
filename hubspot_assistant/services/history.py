"""Rolling in-memory conversation history."""

import asyncio
from collections import deque
from typing import Deque, Dict, List


class ConversationHistory:
    """Keeps the most recent ``max_messages`` chat messages.

    Shared by every request of the process and lost on restart.
    """

    def __init__(self, max_messages: int = 20):
        self.max_messages = max_messages
        self._messages: Deque[Dict[str, str]] = deque(maxlen=max_messages)
        self._lock = asyncio.Lock()

    async def snapshot(self) -> List[Dict[str, str]]:
        async with self._lock:
            return list(self._messages)

    async def record_turn(self, user_text: str, reply_text: str) -> None:
        """Append a user message and the assistant reply as one step."""
        async with self._lock:
            self._messages.append({"role": "user", "content": user_text})
            self._messages.append({"role": "assistant", "content": reply_text})

    async def clear(self) -> None:
        async with self._lock:
            self._messages.clear()

    def __len__(self) -> int:
        return len(self._messages)
