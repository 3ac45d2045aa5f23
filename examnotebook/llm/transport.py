"""
Transports for the Gemini text-generation endpoint.

A transport sends one request with one API key and reports what came back.
It never decides whether a key is healthy: HTTP error statuses are returned
as a TransportResponse so the KeyRing can classify them. Only a failure to
reach the endpoint at all raises TransportError.

TRANSPORTS:
===========
- GeminiRestTransport: POSTs to {base_url}/{model}:generateContent over httpx
- LiteLLMTransport: routes the same request through LiteLLM's completion()
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
from litellm import completion
from litellm.exceptions import APIConnectionError, Timeout

from configs import (
    GEMINI_BASE_URL,
    GEMINI_MODEL,
    LLM_TRANSPORT,
    MAX_OUTPUT_TOKENS,
    REQUEST_TIMEOUT_SECONDS,
    SAFETY_CATEGORIES,
    SAFETY_THRESHOLD,
    TEMPERATURE,
    TOP_K,
    TOP_P,
    ConfigurationError,
)

logger = logging.getLogger(__name__)


# ============================================================
# DATA MODELS
# ============================================================

@dataclass
class GenerationRequest:
    """A single-turn prompt plus generation parameters."""
    prompt: str
    temperature: float = TEMPERATURE
    top_k: int = TOP_K
    top_p: float = TOP_P
    max_output_tokens: int = MAX_OUTPUT_TOKENS
    safety_threshold: str = SAFETY_THRESHOLD

    def safety_settings(self) -> List[Dict[str, str]]:
        return [
            {"category": category, "threshold": self.safety_threshold}
            for category in SAFETY_CATEGORIES
        ]

    def to_payload(self) -> Dict[str, Any]:
        """Request body for the generateContent endpoint."""
        return {
            "contents": [{"parts": [{"text": self.prompt}]}],
            "generationConfig": {
                "temperature": self.temperature,
                "topK": self.top_k,
                "topP": self.top_p,
                "maxOutputTokens": self.max_output_tokens,
            },
            "safetySettings": self.safety_settings(),
        }


@dataclass
class TransportResponse:
    """
    What the endpoint returned for one attempt.

    text is None when a 2xx response carried no generated text.
    """
    status_code: int
    text: Optional[str] = None
    usage: Dict[str, Any] = field(default_factory=dict)
    error_message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class TransportError(Exception):
    """Raised when the endpoint could not be reached at all."""
    pass


# ============================================================
# ABSTRACT TRANSPORT
# ============================================================

class Transport(ABC):
    """Sends one generation request with one API key."""

    @abstractmethod
    def send(self, request: GenerationRequest, api_key: str) -> TransportResponse:
        """
        Send the request.

        Raises:
            TransportError: On network failure or timeout
        """
        pass

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


# ============================================================
# REST TRANSPORT
# ============================================================

def _extract_text(data: Dict[str, Any]) -> Optional[str]:
    """Pull candidates[0].content.parts[0].text out of a response body."""
    try:
        return data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None


class GeminiRestTransport(Transport):
    """Calls the Gemini generateContent REST endpoint directly."""

    def __init__(
        self,
        model: str = GEMINI_MODEL,
        base_url: str = GEMINI_BASE_URL,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        client: Optional[httpx.Client] = None
    ):
        self.model = model
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout)

    @property
    def url(self) -> str:
        return f"{self.base_url}/{self.model}:generateContent"

    def send(self, request: GenerationRequest, api_key: str) -> TransportResponse:
        try:
            response = self._client.post(
                self.url,
                params={"key": api_key},
                json=request.to_payload(),
            )
        except httpx.RequestError as e:
            raise TransportError(f"Request to {self.model} failed: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if not response.is_success:
            error = data.get("error")
            message = error.get("message") if isinstance(error, dict) else None
            return TransportResponse(
                status_code=response.status_code,
                error_message=message or response.reason_phrase,
            )

        return TransportResponse(
            status_code=response.status_code,
            text=_extract_text(data),
            usage=data.get("usageMetadata") or {},
        )

    def close(self):
        """Close the HTTP client."""
        self._client.close()


# ============================================================
# LITELLM TRANSPORT
# ============================================================

class LiteLLMTransport(Transport):
    """
    Sends the request through LiteLLM.

    LiteLLM raises provider errors as exceptions carrying the HTTP status;
    those are turned back into a TransportResponse. Usage is reported in the
    same shape as Gemini's usageMetadata.
    """

    def __init__(self, model: str = f"gemini/{GEMINI_MODEL}", timeout: float = REQUEST_TIMEOUT_SECONDS):
        self.model = model
        self.timeout = timeout

    def send(self, request: GenerationRequest, api_key: str) -> TransportResponse:
        try:
            response = completion(
                model=self.model,
                messages=[{"role": "user", "content": request.prompt}],
                api_key=api_key,
                temperature=request.temperature,
                top_p=request.top_p,
                top_k=request.top_k,
                max_tokens=request.max_output_tokens,
                safety_settings=request.safety_settings(),
                timeout=self.timeout,
            )
        except (APIConnectionError, Timeout) as e:
            raise TransportError(f"Request to {self.model} failed: {e}") from e
        except Exception as e:
            status_code = getattr(e, "status_code", None) or 500
            logger.debug("LiteLLM returned status %s for %s", status_code, self.model)
            return TransportResponse(status_code=status_code, error_message=str(e))

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError):
            content = None

        usage = getattr(response, "usage", None)
        usage_metadata = {}
        if usage is not None:
            usage_metadata = {
                "promptTokenCount": getattr(usage, "prompt_tokens", 0),
                "candidatesTokenCount": getattr(usage, "completion_tokens", 0),
                "totalTokenCount": getattr(usage, "total_tokens", 0),
            }

        return TransportResponse(status_code=200, text=content, usage=usage_metadata)


# ============================================================
# FACTORY
# ============================================================

def create_transport(kind: str = LLM_TRANSPORT) -> Transport:
    """
    Create the configured transport.

    Args:
        kind: "rest" or "litellm"
    """
    if kind == "rest":
        return GeminiRestTransport()
    if kind == "litellm":
        return LiteLLMTransport()
    raise ConfigurationError(f"❌ Unknown LLM transport: {kind}")
