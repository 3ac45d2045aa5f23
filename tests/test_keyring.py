"""
KeyRing tests: key management, rotation and fallback under failure.

Uses a scripted FakeTransport; no network or API key required.
"""

import pytest

from conftest import FakeTransport, malformed, ok, rate_limited, server_error, unreachable
from examnotebook.llm import (
    FailureKind,
    KeyHealth,
    KeyRing,
    NotConfiguredError,
    TransportResponse,
    mask_key,
)


def make_ring(outcomes, **kwargs) -> KeyRing:
    return KeyRing(keys=list(outcomes), transport=FakeTransport(outcomes), **kwargs)


# =============================================================================
# KEY MANAGEMENT
# =============================================================================

class TestKeyManagement:

    def test_add_credential_returns_index_with_zeroed_stats(self):
        ring = KeyRing(transport=FakeTransport({}))
        assert ring.add_credential("key-a") == 0
        assert ring.add_credential("key-b") == 1

        stats = ring.stats()[1]
        assert stats.request_count == 0
        assert stats.error_count == 0
        assert stats.last_used_at is None
        assert stats.health == KeyHealth.UNKNOWN

    def test_remove_out_of_bounds_is_noop(self):
        ring = KeyRing(keys=["a", "b"], transport=FakeTransport({}))
        ring.remove_credential(5)
        ring.remove_credential(-1)
        assert [slot.key for slot in ring.slots] == ["a", "b"]

    def test_remove_then_add_leaves_no_gaps_or_stale_stats(self):
        ring = KeyRing(keys=["a", "b", "c"], transport=FakeTransport({}))
        ring.slots[0].stats.request_count = 3
        ring.slots[1].stats.request_count = 5

        ring.remove_credential(0)
        index = ring.add_credential("d")

        assert index == 2
        assert len(ring) == 3
        assert [slot.key for slot in ring.slots] == ["b", "c", "d"]
        assert [s.request_count for s in ring.stats()] == [5, 0, 0]

    def test_remove_clamps_current_index(self):
        ring = KeyRing(keys=["a", "b", "c"], transport=FakeTransport({}), current_index=2)
        ring.remove_credential(2)
        assert ring.current_index == 1
        assert ring.current_credential() == "b"

    def test_remove_last_key_resets_to_empty(self):
        ring = KeyRing(keys=["a"], transport=FakeTransport({}))
        ring.remove_credential(0)
        assert ring.current_index == 0
        assert ring.current_credential() is None
        assert not ring.is_configured

    def test_rotation_wraps(self):
        ring = KeyRing(keys=["a", "b", "c"], transport=FakeTransport({}), current_index=2)
        assert ring.rotate() == "a"
        assert ring.current_index == 0

    def test_rotate_needs_two_keys(self):
        ring = KeyRing(keys=["a"], transport=FakeTransport({}))
        assert ring.rotate() is None
        assert ring.current_index == 0

    def test_set_credential_on_empty_ring_adds_key(self):
        ring = KeyRing(transport=FakeTransport({}))
        assert ring.set_credential("fresh") is True
        assert ring.current_credential() == "fresh"

    def test_set_credential_replaces_current_and_resets_stats(self):
        ring = KeyRing(keys=["a", "b"], transport=FakeTransport({}), current_index=1)
        ring.slots[1].stats.error_count = 4
        ring.set_credential("b2")
        assert [slot.key for slot in ring.slots] == ["a", "b2"]
        assert ring.slots[1].stats.error_count == 0

    def test_out_of_range_start_index_is_reset(self):
        ring = KeyRing(keys=["a", "b"], transport=FakeTransport({}), current_index=7)
        assert ring.current_index == 0

    def test_mask_key_hides_the_middle(self):
        assert mask_key("AIzaSyABCDEFGHIJKLMNOP1234") == "AIzaSy...1234"
        assert mask_key("short") == "*****"


# =============================================================================
# SEND
# =============================================================================

class TestSend:

    def test_send_without_keys_raises(self):
        ring = KeyRing(transport=FakeTransport({}))
        with pytest.raises(NotConfiguredError):
            ring.send("hello")

    def test_success_on_current_key(self):
        ring = make_ring({"a": ok("Trả lời"), "b": ok()})
        result = ring.send("hello")

        assert result.success
        assert result.message == "Trả lời"
        assert result.used_slot_index == 0
        assert result.attempts == 1
        assert result.usage == {"totalTokenCount": 12}
        assert ring.slots[0].stats.health == KeyHealth.ACTIVE
        assert ring.slots[0].stats.request_count == 1
        assert ring.slots[0].stats.last_used_at is not None

    @pytest.mark.parametrize("start", [0, 1, 2, 3])
    def test_single_healthy_key_is_found_from_any_start(self, start):
        outcomes = {
            "a": rate_limited(),
            "b": server_error(),
            "c": ok(),
            "d": unreachable(),
        }
        ring = make_ring(outcomes, current_index=start)
        result = ring.send("hello")

        assert result.success
        assert result.used_slot_index == 2
        assert len(ring.transport.calls) == len(set(ring.transport.calls))

    def test_all_rate_limited_stops_after_one_attempt_per_key(self):
        outcomes = {"a": rate_limited(), "b": rate_limited(), "c": rate_limited()}
        ring = make_ring(outcomes)
        result = ring.send("hello")

        assert not result.success
        assert result.attempts == 3
        assert ring.transport.calls == ["a", "b", "c"]
        assert result.failure == FailureKind.EXHAUSTED
        assert "Key 3 is rate limited" in result.error
        for stats in ring.stats():
            assert stats.health == KeyHealth.LIMITED
            assert stats.error_count == 1

    def test_all_errors_return_last_error(self):
        outcomes = {"a": server_error("boom a"), "b": server_error("boom b")}
        ring = make_ring(outcomes)
        result = ring.send("hello")

        assert not result.success
        assert result.error == "API error: boom b"
        assert result.attempts == 2

    def test_quota_message_counts_as_rate_limit(self):
        outcomes = {"a": TransportResponse(status_code=403, error_message="You exceeded your current quota"), "b": ok()}
        ring = make_ring(outcomes)
        result = ring.send("hello")

        assert result.success
        assert ring.slots[0].stats.health == KeyHealth.LIMITED

    @pytest.mark.parametrize("reason", ["RATE_LIMIT_EXCEEDED", "rateLimitExceeded", "quotaExceeded", "RESOURCE_EXHAUSTED"])
    def test_google_reason_codes_count_as_rate_limit(self, reason):
        outcomes = {"a": TransportResponse(status_code=403, error_message=reason), "b": ok()}
        ring = make_ring(outcomes, fallback_enabled=False)
        result = ring.send("hello")

        assert ring.slots[0].stats.health == KeyHealth.LIMITED
        assert result.failure == FailureKind.RATE_LIMITED

    def test_generate_in_message_is_not_a_rate_limit(self):
        outcomes = {"a": TransportResponse(status_code=400, error_message="Failed to generate content"), "b": ok()}
        ring = make_ring(outcomes)
        ring.send("hello")

        assert ring.slots[0].stats.health == KeyHealth.ERROR

    def test_malformed_payload_marks_error_and_falls_back(self):
        ring = make_ring({"a": malformed(), "b": ok()})
        result = ring.send("hello")

        assert result.success
        assert result.used_slot_index == 1
        assert ring.slots[0].stats.health == KeyHealth.ERROR
        assert ring.slots[0].stats.last_error == "No response received from the model"

    def test_network_failure_marks_error_and_falls_back(self):
        ring = make_ring({"a": unreachable(), "b": ok()})
        result = ring.send("hello")

        assert result.success
        assert ring.slots[0].stats.health == KeyHealth.ERROR
        assert ring.slots[0].stats.error_count == 1

    def test_fallback_disabled_stops_after_first_failure(self):
        ring = make_ring({"a": server_error(), "b": ok()}, fallback_enabled=False)
        result = ring.send("hello")

        assert not result.success
        assert ring.transport.calls == ["a"]
        assert result.failure == FailureKind.TRANSPORT_ERROR

    def test_fallback_disabled_rate_limit_reports_rate_limited(self):
        ring = make_ring({"a": rate_limited(), "b": ok()}, fallback_enabled=False)
        result = ring.send("hello")

        assert not result.success
        assert result.failure == FailureKind.RATE_LIMITED
        assert ring.stats()[1].request_count == 0

    def test_single_rate_limited_key_is_tried_once(self):
        ring = make_ring({"a": rate_limited()})
        result = ring.send("hello")

        assert not result.success
        assert ring.transport.calls == ["a"]

    def test_rotation_resumes_where_last_call_ended(self):
        ring = make_ring({"a": rate_limited(), "b": ok(), "c": ok()})
        ring.send("first")
        ring.send("second")

        assert ring.transport.calls == ["a", "b", "b"]
        assert ring.current_index == 1

    def test_send_with_context_puts_document_in_prompt(self, documents):
        ring = make_ring({"a": ok()})
        ring.send_with_context("Giải câu 1", documents[0])

        prompt = ring.transport.requests[0].prompt
        assert "de_toan_2023.pdf" in prompt
        assert "giải tích tích phân" in prompt
        assert "Giải câu 1" in prompt

    def test_send_with_context_keeps_extra_context_after_document(self, documents):
        ring = make_ring({"a": ok()})
        ring.send_with_context("Giải câu 1", documents[0], context="Chỉ phần B")

        prompt = ring.transport.requests[0].prompt
        assert "de_toan_2023.pdf" in prompt
        assert prompt.index("giải tích tích phân") < prompt.index("Chỉ phần B")

    def test_key_rotated_during_call_is_not_retried(self):
        ring = make_ring({"a": server_error(), "b": ok(), "c": server_error()})
        send = ring.transport.send

        def send_and_rotate(request, api_key):
            # Another caller moves the ring from "a" to "c" mid-request
            if api_key == "a":
                ring.rotate()
                ring.rotate()
            return send(request, api_key)

        ring.transport.send = send_and_rotate
        result = ring.send("hello")

        assert result.success
        assert result.used_slot_index == 1
        assert result.attempts == 2
        assert ring.transport.calls == ["a", "b"]

    def test_request_carries_generation_parameters(self):
        ring = make_ring({"a": ok()})
        ring.send("hello", context="ctx")

        payload = ring.transport.requests[0].to_payload()
        assert payload["generationConfig"] == {
            "temperature": 0.7,
            "topK": 40,
            "topP": 0.95,
            "maxOutputTokens": 1024,
        }
        assert len(payload["safetySettings"]) == 4
        assert "Context: ctx" in payload["contents"][0]["parts"][0]["text"]


# =============================================================================
# CONNECTION TEST
# =============================================================================

class TestConnection:

    def test_connection_requires_keys(self):
        with pytest.raises(NotConfiguredError):
            KeyRing(transport=FakeTransport({})).test_connection()

    def test_connection_reports_success(self):
        assert make_ring({"a": server_error(), "b": ok()}).test_connection() is True

    def test_connection_reports_failure(self):
        assert make_ring({"a": rate_limited()}).test_connection() is False
