from __future__ import annotations
import threading
from typing import Dict, Iterator, List, Optional
import httpx

from chatrelay.config import Settings
from chatrelay.core.errors import ProviderNotFound
from chatrelay.providers.base import ChatProvider
from chatrelay.providers.mock import MockProvider
from chatrelay.providers.openai import OpenAICompatibleProvider
from chatrelay.schemas.chat import ProviderInfo


class ProviderRegistry:
    """Provider id -> implementation. Filled at startup, read-only afterwards."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._providers: Dict[str, ChatProvider] = {}

    def register(self, provider_id: str, provider: ChatProvider) -> None:
        # Last write wins
        with self._lock:
            providers = dict(self._providers)
            providers[provider_id] = provider
            self._providers = providers

    def lookup(self, provider_id: str) -> ChatProvider:
        provider = self._providers.get(provider_id)
        if provider is None:
            raise ProviderNotFound(provider_id)
        return provider

    def ids(self) -> List[str]:
        return list(self._providers)

    def describe(self) -> List[ProviderInfo]:
        return [ProviderInfo(id=pid, name=p.name) for pid, p in self._providers.items()]

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._providers

    def __len__(self) -> int:
        return len(self._providers)

    def __iter__(self) -> Iterator[str]:
        return iter(self.ids())


def build_registry(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ProviderRegistry:
    """Register the enabled providers with their fallback credentials."""
    registry = ProviderRegistry()
    registry.register(
        "openai",
        OpenAICompatibleProvider(
            id="openai",
            name="OpenAI",
            base_url=settings.openai_base_url,
            api_key=settings.openai_api_key,
            timeout=settings.upstream_timeout,
            transport=transport,
        ),
    )
    # DeepSeek exposes an OpenAI-compatible endpoint
    registry.register(
        "deepseek",
        OpenAICompatibleProvider(
            id="deepseek",
            name="DeepSeek",
            base_url=settings.deepseek_base_url,
            api_key=settings.deepseek_api_key,
            timeout=settings.upstream_timeout,
            transport=transport,
        ),
    )
    # Optional attribution headers (if configured)
    openrouter_headers: Dict[str, str] = {}
    if settings.openrouter_http_referer:
        openrouter_headers["HTTP-Referer"] = settings.openrouter_http_referer
    if settings.openrouter_app_title:
        openrouter_headers["X-Title"] = settings.openrouter_app_title
    registry.register(
        "openrouter",
        OpenAICompatibleProvider(
            id="openrouter",
            name="OpenRouter",
            base_url=settings.openrouter_base_url,
            api_key=settings.openrouter_api_key,
            extra_headers=openrouter_headers,
            timeout=settings.upstream_timeout,
            transport=transport,
        ),
    )
    if settings.enable_mock_provider:
        registry.register("mock", MockProvider())
    return registry
