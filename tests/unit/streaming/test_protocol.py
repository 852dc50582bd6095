import json

import pytest

from typing_trainer.core.errors import ProtocolError
from typing_trainer.streaming.protocol import (
    FATAL_CLOSE_CODES,
    NO_RECONNECT_CLOSE_CODES,
    InboundEventType,
    OutboundEventType,
    error_event,
    outbound_event,
    parse_inbound,
    parse_input_payload,
)


class TestParseInbound:
    def test_input_update(self):
        event = parse_inbound(json.dumps({"type": "INPUT_UPDATE", "data": {"input": "hel"}, "sessionId": "abc"}))

        assert event.kind is InboundEventType.INPUT_UPDATE
        assert event.data == {"input": "hel"}
        assert event.session_id == "abc"

    def test_data_and_session_id_are_optional(self):
        event = parse_inbound('{"type": "START_SESSION"}')
        assert event.kind is InboundEventType.START_SESSION
        assert event.data is None
        assert event.session_id is None

    def test_unknown_type_maps_to_unknown(self):
        assert parse_inbound('{"type": "DANCE"}').kind is InboundEventType.UNKNOWN

    @pytest.mark.parametrize(
        "raw",
        ["not json", "[1, 2]", '"text"', "{}", '{"type": 5}', '{"type": "START_SESSION", "sessionId": 7}'],
    )
    def test_malformed_messages(self, raw):
        with pytest.raises(ProtocolError, match="Malformed message") as exc_info:
            parse_inbound(raw)
        assert exc_info.value.status_code == 400


class TestParseInputPayload:
    def test_returns_input(self):
        assert parse_input_payload({"input": "hello"}) == "hello"

    def test_empty_input_is_allowed(self):
        assert parse_input_payload({"input": ""}) == ""

    @pytest.mark.parametrize("data", [None, "hello", {}, {"input": 5}, {"text": "hello"}])
    def test_invalid_payload(self, data):
        with pytest.raises(ProtocolError, match="Invalid INPUT_UPDATE payload"):
            parse_input_payload(data)


def test_outbound_event_shape():
    assert outbound_event(OutboundEventType.METRICS_UPDATE, {"x": 1}) == {"type": "METRICS_UPDATE", "data": {"x": 1}}


def test_error_event_defaults_to_500():
    assert error_event("boom") == {"type": "ERROR", "data": {"message": "boom", "code": 500}}


def test_fatal_close_codes():
    assert FATAL_CLOSE_CODES == {4000, 4001}


def test_server_initiated_closes_are_not_retried():
    assert NO_RECONNECT_CLOSE_CODES == {1000, 4000, 4001, 4002, 4008}
    assert 1006 not in NO_RECONNECT_CLOSE_CODES
