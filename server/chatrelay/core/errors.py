from __future__ import annotations
from typing import Optional


class RelayError(Exception):
    """Base class for every failure surfaced by the relay core."""


class ProviderNotFound(RelayError):
    def __init__(self, provider_id: str) -> None:
        self.provider_id = provider_id
        super().__init__(f"Provider {provider_id} not supported.")


class UpstreamError(RelayError):
    """Upstream answered with a status other than 200."""

    def __init__(self, message: str, status_code: int, detail: Optional[str] = None) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)


class DecodeError(RelayError):
    """An upstream event could not be turned into a text delta."""

    def __init__(self, message: str, payload: Optional[str] = None) -> None:
        self.payload = payload
        super().__init__(message)


class TruncationError(DecodeError):
    """Upstream body ended before the [DONE] sentinel arrived."""


class TransportError(RelayError):
    """Network-level failure while talking to the upstream."""
