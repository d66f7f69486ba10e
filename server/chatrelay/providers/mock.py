from __future__ import annotations
import asyncio
from typing import AsyncIterator

from chatrelay.core.stream import OutputStream
from chatrelay.schemas.chat import ChatRequest


class MockProvider:
    """Offline provider that echoes the prompt back word by word."""

    id = "mock"
    name = "Mock"

    def __init__(self, delay: float = 0.05) -> None:
        self.delay = delay

    async def stream_chat(self, request: ChatRequest) -> OutputStream:
        return OutputStream(self._mock_stream(request), self._release)

    async def _mock_stream(self, request: ChatRequest) -> AsyncIterator[bytes]:
        text = f"[{request.model}-mock] You said: '{request.prompt}'"
        words = text.split()
        for i, word in enumerate(words):
            content = word + (" " if i < len(words) - 1 else "")
            yield content.encode("utf-8")
            if self.delay:
                await asyncio.sleep(self.delay)

    async def _release(self) -> None:
        return None
