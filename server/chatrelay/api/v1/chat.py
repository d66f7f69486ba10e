from fastapi import APIRouter, Depends, HTTPException
import logging
from typing import Optional
from fastapi.responses import StreamingResponse

from chatrelay.config import Settings, get_settings
from chatrelay.core.errors import RelayError
from chatrelay.core.stream import OutputStream
from chatrelay.providers.relay import StreamingRelay, get_relay
from chatrelay.schemas.chat import ChatBody, ChatRequest

router = APIRouter()
logger = logging.getLogger(__name__)


async def _relay_stream(relay: StreamingRelay, request: ChatRequest) -> StreamingResponse:
    try:
        logger.info("/chat/stream start provider=%s model=%s", request.provider_id, request.model)
        stream = await relay.dispatch(request.provider_id, request)
    except Exception as e:
        logger.exception("/chat/stream error provider=%s model=%s: %s", request.provider_id, request.model, e)
        raise HTTPException(status_code=500, detail=str(e))

    return StreamingResponse(
        _forward(stream, request),
        media_type="text/plain; charset=utf-8",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )


async def _forward(stream: OutputStream, request: ChatRequest):
    # Bytes already written are never retracted; a mid-stream failure cuts the response short
    try:
        async for chunk in stream:
            yield chunk
    except RelayError as e:
        logger.error("/chat/stream aborted provider=%s model=%s: %s", request.provider_id, request.model, e)
        raise
    finally:
        await stream.aclose()


@router.post("/chat/stream")
async def stream_chat(
    body: ChatBody,
    relay: StreamingRelay = Depends(get_relay),
    settings: Settings = Depends(get_settings),
):
    """Stream decoded completion text from the requested provider."""
    return await _relay_stream(relay, body.to_request(settings.default_provider))


@router.get("/chat/stream")
async def stream_chat_get(
    model: str,
    inputCode: str = "",
    apiKey: Optional[str] = None,
    provider: Optional[str] = None,
    relay: StreamingRelay = Depends(get_relay),
    settings: Settings = Depends(get_settings),
):
    """Query-string variant of ``POST /chat/stream`` without extra parameters."""
    body = ChatBody(inputCode=inputCode, model=model, apiKey=apiKey, provider=provider)
    return await _relay_stream(relay, body.to_request(settings.default_provider))
