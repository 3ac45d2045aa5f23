"""
Gemini client with automatic API-key rotation.

PURPOSE:
========
Free-tier Gemini keys hit their RPM/RPD limits quickly. The KeyRing holds
several keys, sends each logical request with one of them, and routes around
keys that are rate limited or failing until one succeeds or every key has
been tried once.

ROTATION:
=========
One logical send() is a bounded state machine:

    TRYING(slot) --success--------------------------> SUCCEEDED
    TRYING(slot) --failure, may fall back-----------> ROUTING_AROUND
    TRYING(slot) --failure, may not fall back-------> EXHAUSTED
    ROUTING_AROUND --current slot untried-----------> TRYING(current)
    ROUTING_AROUND --current slot tried-------------> ROUTING_AROUND (hop)
    any state --every slot tried--------------------> EXHAUSTED

Each slot is attempted at most once per call, so a call issues at most
len(slots) real requests. current_index is left where the call ended; the
next call resumes rotation from there.

USAGE:
======
    ring = KeyRing(transport=GeminiRestTransport())
    ring.add_credential("AIzaSy...")
    result = ring.send("Explain question 3 of the 2023 calculus final")
    if result.success:
        print(result.message)
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from configs import (
    ASSISTANT_NAME,
    ASSISTANT_PROMPT,
    DOCUMENT_CONTEXT,
    FALLBACK_ENABLED,
    get_gemini_keys,
)
from examnotebook.models import Document

from .transport import (
    GenerationRequest,
    Transport,
    TransportError,
    TransportResponse,
    create_transport,
)

logger = logging.getLogger(__name__)


# ============================================================
# DATA MODELS
# ============================================================

class KeyHealth(str, Enum):
    """Last observed health of a key."""
    UNKNOWN = "unknown"
    ACTIVE = "active"
    LIMITED = "limited"
    ERROR = "error"


class FailureKind(str, Enum):
    """Why a send() did not succeed."""
    RATE_LIMITED = "rate_limited"
    TRANSPORT_ERROR = "transport_error"
    EXHAUSTED = "exhausted"


class SendState(Enum):
    TRYING = "trying"
    ROUTING_AROUND = "routing_around"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


@dataclass
class KeyStats:
    """Usage and health statistics for one key."""
    request_count: int = 0
    error_count: int = 0
    last_used_at: Optional[datetime] = None
    health: KeyHealth = KeyHealth.UNKNOWN
    last_error: Optional[str] = None


@dataclass
class CredentialSlot:
    """One configured API key and the statistics it owns."""
    key: str
    stats: KeyStats = field(default_factory=KeyStats)

    @property
    def masked_key(self) -> str:
        return mask_key(self.key)


@dataclass
class SendResult:
    """Outcome of one logical send()."""
    success: bool
    message: Optional[str] = None
    usage: Dict[str, Any] = field(default_factory=dict)
    used_slot_index: Optional[int] = None
    error: Optional[str] = None
    attempts: int = 0
    failure: Optional[FailureKind] = None


class KeyRingError(Exception):
    """Base exception for KeyRing errors."""
    pass


class NotConfiguredError(KeyRingError):
    """Raised when a request is made with no API key configured."""
    pass


# Quota / rate-limit wording in Gemini errors, including reason codes such as
# RATE_LIMIT_EXCEEDED, rateLimitExceeded, quotaExceeded and RESOURCE_EXHAUSTED
RATE_LIMIT_PATTERN = re.compile(r"quota|rate[ _-]?limit|resource[ _]?exhausted", re.IGNORECASE)


def mask_key(key: str) -> str:
    """Shorten a key for logs and operator output."""
    if len(key) <= 10:
        return "*" * len(key)
    return f"{key[:6]}...{key[-4:]}"


def is_rate_limited(response: TransportResponse) -> bool:
    """True for HTTP 429 or an error message about quota / rate limits."""
    if response.status_code == 429:
        return True
    return bool(RATE_LIMIT_PATTERN.search(response.error_message or ""))


# ============================================================
# KEY RING
# ============================================================

class KeyRing:
    """
    Ordered pool of Gemini API keys with round-robin fallback.

    Not safe for concurrent send() calls on one instance: callers that may
    issue requests concurrently must serialize them.
    """

    def __init__(
        self,
        keys: Optional[List[str]] = None,
        transport: Optional[Transport] = None,
        fallback_enabled: bool = FALLBACK_ENABLED,
        current_index: int = 0
    ):
        self.slots: List[CredentialSlot] = [CredentialSlot(key) for key in (keys or [])]
        self.transport = transport or create_transport()
        self.fallback_enabled = fallback_enabled
        self.current_index = current_index if 0 <= current_index < len(self.slots) else 0

    @classmethod
    def from_settings(cls, transport: Optional[Transport] = None) -> "KeyRing":
        """Build a ring from the keys configured in the environment."""
        keys = get_gemini_keys()
        logger.info("Loaded %d Gemini API key(s)", len(keys))
        return cls(keys=keys, transport=transport)

    # --------------------------------------------------------
    # Key management
    # --------------------------------------------------------

    @property
    def is_configured(self) -> bool:
        return len(self.slots) > 0

    def __len__(self) -> int:
        return len(self.slots)

    def add_credential(self, key: str) -> int:
        """Append a key with zeroed stats and return its index."""
        self.slots.append(CredentialSlot(key))
        index = len(self.slots) - 1
        logger.info("Added key #%d (%s)", index + 1, mask_key(key))
        return index

    def remove_credential(self, index: int) -> None:
        """
        Delete the key at index. Out-of-range indices are ignored.

        Remaining keys keep their own stats; current_index is clamped into
        range (0 when the ring becomes empty).
        """
        if not 0 <= index < len(self.slots):
            return

        removed = self.slots.pop(index)
        logger.info("Removed key #%d (%s)", index + 1, removed.masked_key)

        if self.current_index >= len(self.slots):
            self.current_index = max(0, len(self.slots) - 1)

    def set_credential(self, key: str) -> bool:
        """
        Replace the current key, or add it when the ring is empty.

        Returns:
            True if a non-empty key is now configured
        """
        if not self.slots:
            self.slots.append(CredentialSlot(key))
            self.current_index = 0
        else:
            self.slots[self.current_index] = CredentialSlot(key)
        return bool(key)

    def current_credential(self) -> Optional[str]:
        if not self.slots:
            return None
        return self.slots[self.current_index].key

    def rotate(self) -> Optional[str]:
        """
        Advance to the next key.

        Returns:
            The new current key, or None when fewer than 2 keys exist
        """
        if len(self.slots) < 2:
            return None
        self.current_index = (self.current_index + 1) % len(self.slots)
        return self.slots[self.current_index].key

    def stats(self) -> List[KeyStats]:
        """Per-key statistics in slot order."""
        return [slot.stats for slot in self.slots]

    # --------------------------------------------------------
    # Requests
    # --------------------------------------------------------

    def build_prompt(self, message: str, context: str = "") -> str:
        return ASSISTANT_PROMPT.format(
            assistant_name=ASSISTANT_NAME,
            context=context,
            message=message,
        )

    def send(self, prompt: str, context: str = "") -> SendResult:
        """
        Send one logical request, rotating through keys on failure.

        Args:
            prompt: The user's question
            context: Optional context text (e.g. from a selected document)

        Returns:
            SendResult; per-key failures never raise

        Raises:
            NotConfiguredError: When no key is configured
        """
        if not self.slots:
            raise NotConfiguredError("No Gemini API key is configured")

        request = GenerationRequest(prompt=self.build_prompt(prompt, context))
        budget = len(self.slots)
        tried: Set[int] = set()
        hops = 0
        last: Optional[SendResult] = None
        state = SendState.TRYING

        while state in (SendState.TRYING, SendState.ROUTING_AROUND):
            if len(tried) >= budget:
                state = SendState.EXHAUSTED
                break

            if self.current_index in tried:
                # current_index moved outside this call; skip without attempting
                hops += 1
                if hops > budget:
                    state = SendState.EXHAUSTED
                    break
                self.rotate()
                state = SendState.ROUTING_AROUND
                continue

            state = SendState.TRYING
            index = self.current_index
            tried.add(index)
            outcome = self._attempt(index, request)

            if outcome.success:
                state = SendState.SUCCEEDED
                outcome.attempts = len(tried)
                return outcome

            last = outcome
            if self._may_fall_back(outcome.failure, len(tried)):
                self.rotate()
                hops = 0
                state = SendState.ROUTING_AROUND
            else:
                state = SendState.EXHAUSTED

        failure = FailureKind.EXHAUSTED if len(tried) >= budget else last.failure
        error = last.error if last else "No Gemini API key is available"
        logger.error("✗ Request failed after %d attempt(s): %s", len(tried), error)
        return SendResult(
            success=False,
            error=error,
            attempts=len(tried),
            failure=failure,
        )

    def send_with_context(self, prompt: str, document: Optional[Document] = None, context: str = "") -> SendResult:
        """Send a request with the selected document, then any extra context text."""
        parts = []
        if document is not None:
            parts.append(DOCUMENT_CONTEXT.format(name=document.name, content=document.content or ""))
        if context:
            parts.append(context)
        return self.send(prompt, "\n\n".join(parts))

    def test_connection(self) -> bool:
        """
        Send a short greeting to check that at least one key works.

        Raises:
            NotConfiguredError: When no key is configured
        """
        if not self.slots:
            raise NotConfiguredError("No Gemini API key is configured")
        result = self.send("Hello, connection check")
        logger.info("Gemini connection: %s", "OK" if result.success else "FAILED")
        return result.success

    # --------------------------------------------------------
    # Internals
    # --------------------------------------------------------

    def _may_fall_back(self, failure: Optional[FailureKind], tried_count: int) -> bool:
        if not self.fallback_enabled:
            return False
        if failure == FailureKind.RATE_LIMITED:
            return len(self.slots) > 1
        return tried_count < len(self.slots)

    def _attempt(self, index: int, request: GenerationRequest) -> SendResult:
        """Issue one real request with the key at index and classify it."""
        slot = self.slots[index]
        slot.stats.request_count += 1
        slot.stats.last_used_at = datetime.now(timezone.utc)
        key_num = index + 1

        logger.debug("Calling Gemini with key #%d (%s)", key_num, slot.masked_key)

        try:
            response = self.transport.send(request, slot.key)
        except TransportError as e:
            return self._record_failure(index, KeyHealth.ERROR, FailureKind.TRANSPORT_ERROR, f"API error: {e}")

        if response.ok:
            if response.text is None:
                return self._record_failure(
                    index, KeyHealth.ERROR, FailureKind.TRANSPORT_ERROR,
                    "No response received from the model"
                )
            slot.stats.health = KeyHealth.ACTIVE
            logger.info("✓ Gemini call successful with key #%d", key_num)
            return SendResult(
                success=True,
                message=response.text,
                usage=response.usage,
                used_slot_index=index,
            )

        if is_rate_limited(response):
            return self._record_failure(
                index, KeyHealth.LIMITED, FailureKind.RATE_LIMITED,
                f"Key {key_num} is rate limited: {response.error_message}"
            )

        return self._record_failure(
            index, KeyHealth.ERROR, FailureKind.TRANSPORT_ERROR,
            f"API error: {response.error_message}"
        )

    def _record_failure(self, index: int, health: KeyHealth, failure: FailureKind, error: str) -> SendResult:
        stats = self.slots[index].stats
        stats.health = health
        stats.error_count += 1
        stats.last_error = error
        logger.warning("✗ Gemini key #%d %s: %s", index + 1, health.value, error)
        return SendResult(success=False, error=error, used_slot_index=index, failure=failure)
