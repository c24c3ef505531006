"""
Tests for the line-delimited JSON-RPC wire layer
"""

import json

import pytest
from pydantic import ValidationError

# Add the backend directory to the path for imports
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', '..'))

from sidecar.core.errors import ProtocolError
from sidecar.core.protocol import (
    ErrorCode,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    LineDecoder,
    MessageKind,
    classify_message,
    encode_message,
    parse_response,
)


class TestEncoding:
    """Outbound framing"""

    def test_request_is_one_compact_line(self):
        data = encode_message(JsonRpcRequest(id=7, method="tools/list"))
        assert data.endswith(b"\n")
        assert data.count(b"\n") == 1
        assert json.loads(data) == {"jsonrpc": "2.0", "id": 7, "method": "tools/list"}

    def test_notification_has_no_id(self):
        data = encode_message(JsonRpcNotification(method="notifications/initialized"))
        decoded = json.loads(data)
        assert "id" not in decoded
        assert decoded["method"] == "notifications/initialized"

    def test_rejects_other_jsonrpc_versions(self):
        with pytest.raises(ValidationError):
            JsonRpcRequest(jsonrpc="1.0", id=1, method="x")


class TestLineDecoder:
    """Inbound line buffering"""

    def test_partial_line_is_kept_until_newline(self):
        decoder = LineDecoder()
        assert decoder.feed(b'{"jsonrpc":"2.0","id":1,') == []
        assert decoder.pending > 0
        messages = decoder.feed(b'"result":{}}\n')
        assert messages == [{"jsonrpc": "2.0", "id": 1, "result": {}}]
        assert decoder.pending == 0

    def test_multiple_messages_in_one_feed(self):
        decoder = LineDecoder()
        messages = decoder.feed(b'{"id":1,"result":1}\n\n{"id":2,"result":2}\n{"id":3')
        assert [m["id"] for m in messages] == [1, 2]
        assert decoder.feed(b',"result":3}\n')[0]["id"] == 3

    def test_split_utf8_sequence(self):
        decoder = LineDecoder()
        payload = json.dumps({"id": 1, "result": "héllo"}, ensure_ascii=False).encode("utf-8") + b"\n"
        split = payload.index("é".encode("utf-8")) + 1
        assert decoder.feed(payload[:split]) == []
        assert decoder.feed(payload[split:]) == [{"id": 1, "result": "héllo"}]

    def test_invalid_lines_are_skipped(self):
        decoder = LineDecoder()
        messages = decoder.feed(b'not json\n[1,2,3]\n{"id":4,"result":null}\n')
        assert messages == [{"id": 4, "result": None}]

    def test_reset_drops_buffered_input(self):
        decoder = LineDecoder()
        decoder.feed(b'{"id":1')
        decoder.reset()
        assert decoder.pending == 0
        assert decoder.feed(b'{"id":2,"result":0}\n') == [{"id": 2, "result": 0}]


class TestClassification:
    """Response / notification / request detection"""

    def test_classify(self):
        assert classify_message({"id": 1, "result": {}}) is MessageKind.RESPONSE
        assert classify_message({"id": 1, "error": {"code": 1, "message": "x"}}) is MessageKind.RESPONSE
        assert classify_message({"method": "notifications/progress"}) is MessageKind.NOTIFICATION
        assert classify_message({"id": 5, "method": "ping"}) is MessageKind.REQUEST
        assert classify_message({"foo": "bar"}) is MessageKind.INVALID
        assert classify_message([1]) is MessageKind.INVALID

    def test_ids_that_are_not_strings_or_numbers_are_invalid(self):
        assert classify_message({"id": [1], "result": {}}) is MessageKind.INVALID
        assert classify_message({"id": {"a": 1}, "result": {}}) is MessageKind.INVALID
        assert classify_message({"id": True, "result": {}}) is MessageKind.INVALID
        assert classify_message({"id": 1.5, "method": "ping"}) is MessageKind.INVALID
        assert classify_message({"id": "abc", "result": {}}) is MessageKind.RESPONSE

    def test_error_response_converts_to_protocol_error(self):
        response = parse_response({"jsonrpc": "2.0", "id": 3, "error": {"code": -32000, "message": "boom", "data": {"x": 1}}})
        assert response.is_error()
        assert response.error_message() == "boom"
        error = response.to_exception()
        assert isinstance(error, ProtocolError)
        assert str(error) == "boom"
        assert error.to_dict() == {"code": -32000, "message": "boom", "data": {"x": 1}}

    def test_malformed_error_member_raises_protocol_error(self):
        with pytest.raises(ProtocolError) as exc_info:
            parse_response({"jsonrpc": "2.0", "id": 3, "error": "nope"})
        assert exc_info.value.code == ErrorCode.INVALID_REQUEST.value

    def test_success_response(self):
        response = JsonRpcResponse(id=1, result={"tools": []})
        assert not response.is_error()
        assert response.error_message() is None
