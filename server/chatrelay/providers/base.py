from __future__ import annotations
from typing import Protocol

from chatrelay.core.stream import OutputStream
from chatrelay.schemas.chat import ChatRequest


class ChatProvider(Protocol):
    id: str
    name: str

    async def stream_chat(self, request: ChatRequest) -> OutputStream:
        """Issue one upstream call and return its decoded byte stream.

        Raises before returning when the upstream cannot be reached or
        answers with a non-200 status.
        """
        ...
