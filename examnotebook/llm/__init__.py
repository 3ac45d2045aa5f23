"""Gemini client with API-key rotation."""
from .keyring import (
    KeyRing,
    KeyHealth,
    KeyStats,
    CredentialSlot,
    SendResult,
    FailureKind,
    KeyRingError,
    NotConfiguredError,
    mask_key,
)
from .transport import (
    GenerationRequest,
    TransportResponse,
    TransportError,
    Transport,
    GeminiRestTransport,
    LiteLLMTransport,
    create_transport,
)

__all__ = [
    "KeyRing",
    "KeyHealth",
    "KeyStats",
    "CredentialSlot",
    "SendResult",
    "FailureKind",
    "KeyRingError",
    "NotConfiguredError",
    "mask_key",
    "GenerationRequest",
    "TransportResponse",
    "TransportError",
    "Transport",
    "GeminiRestTransport",
    "LiteLLMTransport",
    "create_transport",
]
