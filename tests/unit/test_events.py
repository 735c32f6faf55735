"""
Unit tests for host event translation.
"""

from unittest.mock import Mock, call

import pytest

from costume_switch.events import (
    DEFAULT_EVENT_NAMES,
    HostEventAdapter,
    LifecycleEvent,
    normalize_token_payload,
)


@pytest.fixture
def engine():
    return Mock()


@pytest.fixture
def adapter(engine):
    return HostEventAdapter(engine)


class TestNormalizeTokenPayload:

    def test_positional(self):
        assert normalize_token_payload("Hello", 4) == ("Hello", 4)

    def test_mapping_payload(self):
        assert normalize_token_payload({"token": "Hi", "messageId": 9}) == ("Hi", 9)
        assert normalize_token_payload({"text": "Hi", "message_id": 2}) == ("Hi", 2)

    def test_mapping_without_id_uses_second_argument(self):
        assert normalize_token_payload({"token": "Hi"}, 3) == ("Hi", 3)

    def test_empty(self):
        assert normalize_token_payload() == ("", None)
        assert normalize_token_payload(None) == ("", None)


class TestHostEventAdapter:
    """Test that host events reach the engine as typed lifecycle events."""

    def test_default_mapping_covers_both_token_events(self):
        assert DEFAULT_EVENT_NAMES["stream_token_received"] is LifecycleEvent.TOKEN
        assert DEFAULT_EVENT_NAMES["smooth_stream_token_received"] is LifecycleEvent.TOKEN

    def test_token_event(self, adapter, engine):
        assert adapter.dispatch("stream_token_received", "Kotori said", 5) is True
        engine.handle_event.assert_called_once_with(LifecycleEvent.TOKEN, message_id=5, text="Kotori said")

    def test_turn_events_carry_message_id(self, adapter, engine):
        adapter.dispatch("generation_started", 5)
        adapter.dispatch("GENERATION_ENDED", 5)
        adapter.dispatch("message_received")
        assert engine.handle_event.call_args_list == [
            call(LifecycleEvent.TURN_START, message_id=5),
            call(LifecycleEvent.TURN_END, message_id=5),
            call(LifecycleEvent.MESSAGE_FINALIZED, message_id=None),
        ]

    def test_conversation_reset(self, adapter, engine):
        adapter.dispatch("chat_changed", "chat-id")
        engine.handle_event.assert_called_once_with(LifecycleEvent.CONVERSATION_RESET)

    def test_unknown_event_ignored(self, adapter, engine):
        assert adapter.dispatch("settings_updated") is False
        engine.handle_event.assert_not_called()

    def test_custom_event_names(self, engine):
        adapter = HostEventAdapter(engine, {"onChunk": LifecycleEvent.TOKEN})
        assert adapter.translate("onchunk") is LifecycleEvent.TOKEN
        assert adapter.translate("stream_token_received") is None
