from __future__ import annotations
import logging
from functools import lru_cache

from chatrelay.config import get_settings
from chatrelay.core.errors import ProviderNotFound
from chatrelay.core.stream import OutputStream
from chatrelay.providers.registry import ProviderRegistry, build_registry
from chatrelay.schemas.chat import ChatRequest

logger = logging.getLogger(__name__)


class StreamingRelay:
    """Routes a chat request to its provider and hands back the provider's stream.

    No retries and no timeouts here; whatever the provider raises reaches the
    caller unchanged.
    """

    def __init__(self, registry: ProviderRegistry) -> None:
        self.registry = registry

    async def dispatch(self, provider_id: str, request: ChatRequest) -> OutputStream:
        try:
            provider = self.registry.lookup(provider_id)
        except ProviderNotFound:
            logger.warning("Unknown provider=%s (registered: %s)", provider_id, ", ".join(self.registry.ids()))
            raise
        logger.info("Dispatching provider=%s model=%s", provider_id, request.model)
        return await provider.stream_chat(request)


@lru_cache()
def get_relay() -> StreamingRelay:
    return StreamingRelay(build_registry(get_settings()))
