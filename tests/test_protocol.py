"""Tests for the envelope codec."""

from __future__ import annotations

import json

import pytest

from auton8_bridge.protocol import (
    build_envelope,
    build_event,
    decode_envelope,
    encode_envelope,
    enrich_session_id,
)


class TestEnrichSessionId:
    """Tests for session id stamping."""

    def test_adds_missing_session_id(self):
        assert enrich_session_id({"a": 1}, "sid") == {"a": 1, "session_id": "sid"}

    def test_existing_session_id_kept(self):
        payload = {"session_id": "other"}
        assert enrich_session_id(payload, "sid") == {"session_id": "other"}

    def test_idempotent(self):
        once = enrich_session_id({"a": 1}, "sid")
        assert enrich_session_id(once, "sid") == once

    def test_input_not_mutated(self):
        payload = {"a": 1}
        enrich_session_id(payload, "sid")
        assert payload == {"a": 1}

    @pytest.mark.parametrize("payload", [[1, 2], "text", 3, None])
    def test_non_objects_untouched(self, payload):
        assert enrich_session_id(payload, "sid") == payload

    def test_no_session(self):
        assert enrich_session_id({"a": 1}, None) == {"a": 1}


class TestEnvelope:
    """Tests for building and decoding envelopes."""

    def test_build_envelope(self):
        envelope = build_envelope("events", {"e": 1}, session_id="sid", timestamp_ms=42)
        assert envelope == {
            "endpoint": "events",
            "data": {"e": 1, "session_id": "sid"},
            "timestamp": 42,
        }

    def test_encode_is_compact_json(self):
        text = encode_envelope(build_envelope("cmd", [1], timestamp_ms=1))
        assert text == '{"endpoint":"cmd","data":[1],"timestamp":1}'

    def test_decode(self):
        envelope = decode_envelope(
            json.dumps(
                {
                    "endpoint": "cmd",
                    "data": {"cmd": "#path", "session_id": "sid"},
                    "timestamp": 7,
                    "extra": True,
                }
            )
        )
        assert envelope.endpoint == "cmd"
        assert envelope.data == {"cmd": "#path", "session_id": "sid"}
        assert envelope.timestamp == 7
        assert envelope.session_id == "sid"
        assert envelope.kind is None

    def test_decode_defaults(self):
        envelope = decode_envelope(b'{"data": 1, "timestamp": "soon"}')
        assert envelope.endpoint == "default"
        assert envelope.timestamp == 0
        assert envelope.session_id is None

    def test_decode_kind_from_type_field(self):
        envelope = decode_envelope('{"endpoint": "hud", "type": "command"}')
        assert envelope.kind == "command"

    def test_backend_kind_wins(self):
        envelope = decode_envelope('{"endpoint": "hud", "type": "x"}', kind="command")
        assert envelope.kind == "command"

    @pytest.mark.parametrize(
        "raw",
        ["not json", "[1, 2]", '"text"', '{"endpoint": ""}', '{"endpoint": 5}'],
    )
    def test_decode_rejects(self, raw):
        with pytest.raises(ValueError):
            decode_envelope(raw)

    def test_decode_rejects_deep_nesting(self):
        with pytest.raises(ValueError):
            decode_envelope("[" * 200_000)


class TestBuildEvent:
    """Tests for lifecycle event bodies."""

    def test_minimal(self):
        event = build_event("status")
        assert event["event"] == "status"
        assert isinstance(event["ts"], int)
        assert "value" not in event

    def test_value_session_and_extra(self):
        event = build_event("life", "dead", session_id="sid", world="server")
        assert event["value"] == "dead"
        assert event["session_id"] == "sid"
        assert event["world"] == "server"
