from __future__ import annotations
import json
import logging
from typing import Any, AsyncIterator, Dict, Mapping, Optional
import httpx

from chatrelay.core.errors import DecodeError, TransportError, TruncationError, UpstreamError
from chatrelay.core.sse import EventStreamDecoder
from chatrelay.core.stream import OutputStream
from chatrelay.schemas.chat import ChatRequest

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"


class OpenAICompatibleProvider:
    """Streaming client for any backend speaking the OpenAI chat completions API.

    The same class serves OpenAI itself and compatible hosts (DeepSeek,
    OpenRouter); they differ only in base URL, fallback key and headers.
    Every ``stream_chat`` call opens its own ``httpx.AsyncClient`` and the
    returned stream owns it until it finishes.
    """

    def __init__(
        self,
        id: str = "openai",
        name: str = "OpenAI",
        base_url: str = "https://api.openai.com/v1",
        api_key: Optional[str] = None,
        extra_headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.id = id
        self.name = name
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._extra_headers = dict(extra_headers or {})
        self._timeout = timeout
        self._transport = transport

    @property
    def url(self) -> str:
        return f"{self.base_url}/chat/completions"

    def build_payload(self, request: ChatRequest) -> Dict[str, Any]:
        return {
            "model": request.model,
            "messages": [{"role": "system", "content": request.prompt}],
            "temperature": 0,
            "stream": True,
        }

    def build_headers(self, request: ChatRequest) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }
        headers.update(self._extra_headers)
        # No key at all is passed through; the upstream rejects the call
        api_key = request.credential or self._api_key
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout),
            transport=self._transport,
            trust_env=True,
        )

    async def stream_chat(self, request: ChatRequest) -> OutputStream:
        if request.extra_parameters:
            logger.debug("[%s] ignoring extra parameters: %s", self.id, sorted(request.extra_parameters))

        client = self._client()
        try:
            upstream = client.build_request(
                "POST",
                self.url,
                headers=self.build_headers(request),
                json=self.build_payload(request),
            )
            resp = await client.send(upstream, stream=True)
        except httpx.TransportError as e:
            await client.aclose()
            raise TransportError(f"[{self.id}] upstream request failed: {e}") from e
        except BaseException:
            await client.aclose()
            raise

        async def release() -> None:
            try:
                await resp.aclose()
            finally:
                await client.aclose()

        if resp.status_code != 200:
            try:
                detail = await self._read_error_detail(resp)
            finally:
                await release()
            message = f"{self.name} API returned an error: {detail or resp.reason_phrase}"
            logger.warning("[%s] upstream status=%d model=%s", self.id, resp.status_code, request.model)
            raise UpstreamError(message, status_code=resp.status_code, detail=detail or None)

        logger.info("[%s] upstream stream opened model=%s", self.id, request.model)
        return OutputStream(self._decode(resp), release)

    async def _read_error_detail(self, resp: httpx.Response) -> str:
        """Decoded text of the first body chunk, or an empty string."""
        try:
            async for chunk in resp.aiter_bytes():
                return chunk.decode("utf-8", errors="replace")
        except httpx.DecodingError as e:
            raise DecodeError(f"[{self.id}] could not decode error body: {e}") from e
        except httpx.TransportError as e:
            raise TransportError(f"[{self.id}] failed reading error body: {e}") from e
        return ""

    async def _decode(self, resp: httpx.Response) -> AsyncIterator[bytes]:
        decoder = EventStreamDecoder()
        try:
            async for text in resp.aiter_text():
                for event in decoder.feed(text):
                    if event.type != "event":
                        continue
                    if event.data == DONE_SENTINEL:
                        logger.debug("[%s] received %s", self.id, DONE_SENTINEL)
                        return
                    content = self.extract_delta(event.data)
                    if content:
                        yield content.encode("utf-8")
        except httpx.DecodingError as e:
            raise DecodeError(f"[{self.id}] could not decode upstream body: {e}") from e
        except httpx.TransportError as e:
            raise TransportError(f"[{self.id}] upstream stream interrupted: {e}") from e
        raise TruncationError(f"{self.name} stream ended before {DONE_SENTINEL}")

    @staticmethod
    def extract_delta(data: str) -> Optional[str]:
        """Text of ``choices[0].delta.content``; None for role-only or finish chunks."""
        try:
            obj = json.loads(data)
            content = obj["choices"][0]["delta"].get("content")
        except (ValueError, KeyError, IndexError, TypeError, AttributeError, RecursionError) as e:
            raise DecodeError(f"could not decode upstream event: {e}", payload=data) from e
        if content is not None and not isinstance(content, str):
            raise DecodeError(f"delta content is {type(content).__name__}, expected str", payload=data)
        return content
