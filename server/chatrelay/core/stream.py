from __future__ import annotations
import asyncio
import enum
import logging
from typing import AsyncIterator, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class StreamState(str, enum.Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"
    CLOSED = "closed"


TERMINAL_STATES = frozenset({StreamState.COMPLETED, StreamState.FAILED, StreamState.CLOSED})


class OutputStream:
    """Lazy byte stream of decoded text handed back to the caller.

    ``source`` is the provider's decode generator and ``release`` closes the
    upstream response and its client. Release runs exactly once, when the
    stream completes, fails, or is closed by the caller. Nothing is read
    from upstream until the first ``__anext__``.
    """

    def __init__(self, source: AsyncIterator[bytes], release: Callable[[], Awaitable[None]]) -> None:
        self._source = source
        self._release_cb: Optional[Callable[[], Awaitable[None]]] = release
        self.state = StreamState.IDLE
        self.error: Optional[BaseException] = None

    @property
    def done(self) -> bool:
        return self.state in TERMINAL_STATES

    def __aiter__(self) -> "OutputStream":
        return self

    async def __anext__(self) -> bytes:
        if self.done:
            raise StopAsyncIteration
        self.state = StreamState.STREAMING
        try:
            chunk = await self._source.__anext__()
        except StopAsyncIteration:
            self.state = StreamState.COMPLETED
            await self._release()
            raise
        except asyncio.CancelledError:
            # Consumer went away mid-read; do not leave the socket open
            self.state = StreamState.CLOSED
            await asyncio.shield(self._release())
            raise
        except Exception as exc:
            self.state = StreamState.FAILED
            self.error = exc
            await self._release()
            raise
        return chunk

    async def aclose(self) -> None:
        """Stop reading and release the upstream connection."""
        if not self.done:
            self.state = StreamState.CLOSED
        aclose = getattr(self._source, "aclose", None)
        if aclose is not None:
            try:
                await aclose()
            finally:
                await self._release()
        else:
            await self._release()

    async def read_all(self) -> bytes:
        parts = []
        async for chunk in self:
            parts.append(chunk)
        return b"".join(parts)

    async def _release(self) -> None:
        cb, self._release_cb = self._release_cb, None
        if cb is None:
            return
        logger.debug("Releasing upstream connection state=%s", self.state.value)
        await cb()

    async def __aenter__(self) -> "OutputStream":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
