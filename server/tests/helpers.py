"""Scriptable fake upstream built on httpx.MockTransport, plus SSE builders."""
from __future__ import annotations
import json
from typing import List, Optional, Sequence, Union

import httpx


Chunk = Union[bytes, str]


def sse_event(payload: Union[dict, str]) -> str:
    """One ``data:`` record as an OpenAI-style stream would send it."""
    data = payload if isinstance(payload, str) else json.dumps(payload)
    return f"data: {data}\n\n"


def delta_event(content: Optional[str]) -> str:
    delta = {} if content is None else {"content": content}
    return sse_event({"choices": [{"index": 0, "delta": delta}]})


class FakeUpstream:
    """Counts requests and replays a scripted response, chunk by chunk.

    ``pulled`` tracks how many body chunks the client actually read so tests
    can check that nothing is consumed after the stream stops.
    """

    def __init__(
        self,
        chunks: Sequence[Chunk] = (),
        status_code: int = 200,
        raise_on_connect: Optional[Exception] = None,
        raise_after: Optional[int] = None,
        headers: Optional[dict] = None,
    ) -> None:
        self.chunks: List[bytes] = [c.encode("utf-8") if isinstance(c, str) else c for c in chunks]
        self.status_code = status_code
        self.raise_on_connect = raise_on_connect
        self.raise_after = raise_after
        self.headers = {"content-type": "text/event-stream", **(headers or {})}
        self.requests: List[httpx.Request] = []
        self.responses: List[httpx.Response] = []
        self.pulled = 0

    @property
    def calls(self) -> int:
        return len(self.requests)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    async def _body(self):
        for i, chunk in enumerate(self.chunks):
            if self.raise_after is not None and i == self.raise_after:
                raise httpx.ReadError("connection reset by peer")
            self.pulled += 1
            yield chunk

    async def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raise_on_connect is not None:
            raise self.raise_on_connect
        response = httpx.Response(
            self.status_code,
            headers=self.headers,
            content=self._body(),
        )
        self.responses.append(response)
        return response
