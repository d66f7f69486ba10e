from __future__ import annotations
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional
from pydantic import BaseModel, ConfigDict


@dataclass(frozen=True)
class ChatRequest:
    """One relay call. Immutable once built."""

    prompt: str
    model: str
    credential: Optional[str] = None
    extra_parameters: Mapping[str, Any] = field(default_factory=dict)
    provider_id: str = "openai"

    def __post_init__(self) -> None:
        # Read-only view so providers cannot mutate what the caller passed
        object.__setattr__(self, "extra_parameters", MappingProxyType(dict(self.extra_parameters)))

    def __repr__(self) -> str:
        return (
            f"ChatRequest(provider_id={self.provider_id!r}, model={self.model!r}, "
            f"prompt_chars={len(self.prompt)}, credential={'***' if self.credential else None})"
        )


class ChatBody(BaseModel):
    """Wire body for the chat stream endpoint; unknown fields become extra parameters."""

    model_config = ConfigDict(extra="allow")

    inputCode: str = ""
    model: str
    apiKey: Optional[str] = None
    provider: Optional[str] = None

    def to_request(self, default_provider: str = "openai") -> ChatRequest:
        return ChatRequest(
            prompt=self.inputCode,
            model=self.model,
            credential=self.apiKey or None,
            extra_parameters=dict(self.model_extra or {}),
            provider_id=self.provider or default_provider,
        )


class ProviderInfo(BaseModel):
    id: str
    name: str
