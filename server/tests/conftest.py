"""Shared fixtures for provider, relay and API tests."""
from __future__ import annotations
from typing import Optional

import pytest

from chatrelay.config import Settings
from chatrelay.providers.openai import OpenAICompatibleProvider
from helpers import FakeUpstream


@pytest.fixture
def make_provider():
    def _make(upstream: FakeUpstream, api_key: Optional[str] = "sk-fallback", **kwargs) -> OpenAICompatibleProvider:
        return OpenAICompatibleProvider(
            base_url="https://upstream.test/v1",
            api_key=api_key,
            transport=upstream.transport,
            **kwargs,
        )

    return _make


@pytest.fixture
def settings() -> Settings:
    return Settings(
        openai_api_key="sk-fallback",
        openai_base_url="https://upstream.test/v1",
        enable_mock_provider=False,
        _env_file=None,
    )
