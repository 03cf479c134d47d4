"""Unit tests for utils.protocol module.

Tests:
- RecordReader record splitting and buffering
- Handshake and ping encoding
- parse_handshake_response() acceptance and rejection
- parse_message() for invocations, close, ping, and malformed records
- NegotiateResponse parsing
- negotiate_url() and websocket_url() construction
"""

import json
from typing import Any

import pytest

from cfgsync.utils.protocol import (
    RECORD_SEPARATOR,
    HubProtocolError,
    MessageType,
    NegotiateResponse,
    RecordReader,
    encode_handshake,
    encode_ping,
    encode_record,
    negotiate_url,
    parse_handshake_response,
    parse_message,
    websocket_url,
)


RS = RECORD_SEPARATOR


# =============================================================================
# Framing
# =============================================================================


class TestRecordReader:
    def test_single_record(self) -> None:
        assert RecordReader().feed("{}" + RS) == ["{}"]

    def test_multiple_records_in_one_frame(self) -> None:
        assert RecordReader().feed('{"a":1}' + RS + '{"b":2}' + RS) == ['{"a":1}', '{"b":2}']

    def test_partial_record_is_buffered(self) -> None:
        reader = RecordReader()

        assert reader.feed('{"type":') == []
        assert reader.pending == '{"type":'
        assert reader.feed("6}" + RS) == ['{"type":6}']
        assert reader.pending == ""

    def test_empty_records_skipped(self) -> None:
        assert RecordReader().feed(RS + RS + "{}" + RS) == ["{}"]


class TestEncoding:
    def test_record_is_terminated(self) -> None:
        assert encode_record({"type": 6}) == '{"type":6}' + RS

    def test_handshake(self) -> None:
        assert json.loads(encode_handshake().rstrip(RS)) == {"protocol": "json", "version": 1}

    def test_ping(self) -> None:
        assert encode_ping() == '{"type":6}' + RS


# =============================================================================
# Parsing
# =============================================================================


class TestParseHandshakeResponse:
    def test_empty_object_accepted(self) -> None:
        parse_handshake_response("{}")

    def test_error_rejected(self) -> None:
        with pytest.raises(HubProtocolError, match="handshake rejected: unsupported"):
            parse_handshake_response('{"error":"unsupported"}')

    def test_hub_message_rejected(self) -> None:
        with pytest.raises(HubProtocolError):
            parse_handshake_response('{"type":6}')

    @pytest.mark.parametrize("record", ["not json", "[]", '"x"'])
    def test_malformed_rejected(self, record: str) -> None:
        with pytest.raises(HubProtocolError):
            parse_handshake_response(record)


class TestParseMessage:
    def test_invocation(self) -> None:
        message = parse_message(
            '{"type":1,"target":"ChangedSetting","arguments":["billing","prod"]}'
        )

        assert message.type == MessageType.INVOCATION
        assert message.target == "ChangedSetting"
        assert message.arguments == ("billing", "prod")

    def test_invocation_without_arguments(self) -> None:
        assert parse_message('{"type":1,"target":"Ping"}').arguments == ()

    @pytest.mark.parametrize(
        "payload",
        [
            {"type": 1, "arguments": []},
            {"type": 1, "target": "", "arguments": []},
            {"type": 1, "target": 5, "arguments": []},
            {"type": 1, "target": "X", "arguments": {"a": 1}},
        ],
    )
    def test_bad_invocation(self, payload: dict[str, Any]) -> None:
        with pytest.raises(HubProtocolError):
            parse_message(json.dumps(payload))

    def test_close_with_reconnect(self) -> None:
        message = parse_message('{"type":7,"error":"restarting","allowReconnect":true}')

        assert message.type == MessageType.CLOSE
        assert message.error == "restarting"
        assert message.allow_reconnect is True

    def test_close_defaults(self) -> None:
        message = parse_message('{"type":7}')

        assert message.error is None
        assert message.allow_reconnect is False

    def test_close_reconnect_requires_true(self) -> None:
        assert parse_message('{"type":7,"allowReconnect":"yes"}').allow_reconnect is False

    def test_ping(self) -> None:
        assert parse_message('{"type":6}').type == MessageType.PING

    def test_unknown_type_kept(self) -> None:
        assert parse_message('{"type":42}').type == 42

    @pytest.mark.parametrize("record", ["{}", '{"type":"1"}', '{"type":true}', "[1]", "{"])
    def test_malformed(self, record: str) -> None:
        with pytest.raises(HubProtocolError):
            parse_message(record)


class TestNegotiateResponse:
    def test_connection(self) -> None:
        response = NegotiateResponse.from_json(
            {
                "negotiateVersion": 1,
                "connectionId": "cid",
                "connectionToken": "ctoken",
                "availableTransports": [
                    {"transport": "WebSockets", "transferFormats": ["Text"]},
                    {"transport": "LongPolling", "transferFormats": ["Text"]},
                ],
            }
        )

        assert response.is_redirect is False
        assert response.connection_key == "ctoken"
        assert response.transports == ("WebSockets", "LongPolling")

    def test_connection_id_fallback(self) -> None:
        assert NegotiateResponse.from_json({"connectionId": "cid"}).connection_key == "cid"

    def test_redirect(self) -> None:
        response = NegotiateResponse.from_json({"url": "https://other/hub", "accessToken": "t"})

        assert response.is_redirect is True
        assert response.url == "https://other/hub"
        assert response.access_token == "t"

    def test_malformed_transports_skipped(self) -> None:
        response = NegotiateResponse.from_json(
            {"connectionId": "c", "availableTransports": ["WebSockets", {"transport": 1}]}
        )
        assert response.transports == ()

    def test_error_raises(self) -> None:
        with pytest.raises(HubProtocolError, match="negotiate failed: denied"):
            NegotiateResponse.from_json({"error": "denied"})

    def test_non_object_raises(self) -> None:
        with pytest.raises(HubProtocolError):
            NegotiateResponse.from_json(["x"])

    def test_wrong_member_type_raises(self) -> None:
        with pytest.raises(HubProtocolError, match="connectionId"):
            NegotiateResponse.from_json({"connectionId": 5})


# =============================================================================
# URLs
# =============================================================================


class TestUrls:
    def test_negotiate_url(self) -> None:
        assert (
            negotiate_url("https://cfg.example.com/_backchannel")
            == "https://cfg.example.com/_backchannel/negotiate?negotiateVersion=1"
        )

    def test_negotiate_url_keeps_query(self) -> None:
        assert (
            negotiate_url("https://cfg.example.com/hub/?tenant=a")
            == "https://cfg.example.com/hub/negotiate?tenant=a&negotiateVersion=1"
        )

    @pytest.mark.parametrize(
        ("hub_url", "expected"),
        [
            ("https://cfg.example.com/_backchannel", "wss://cfg.example.com/_backchannel?id=abc"),
            ("http://localhost:5000/_backchannel", "ws://localhost:5000/_backchannel?id=abc"),
            ("wss://cfg.example.com/hub", "wss://cfg.example.com/hub?id=abc"),
        ],
    )
    def test_websocket_url(self, hub_url: str, expected: str) -> None:
        assert websocket_url(hub_url, "abc") == expected

    def test_websocket_url_escapes_key(self) -> None:
        assert websocket_url("https://h/hub", "a+b/c") == "wss://h/hub?id=a%2Bb%2Fc"

    def test_websocket_url_rejects_other_schemes(self) -> None:
        with pytest.raises(HubProtocolError, match="unsupported hub URL scheme"):
            websocket_url("ftp://h/hub", "abc")
