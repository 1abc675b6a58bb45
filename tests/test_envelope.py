"""
Tests for envelope decoding.
"""

import json

import pytest
import requests

from vertex_client import envelope
from vertex_client.errors import APIError, HTTPError, MalformedResponseError, TransportError


def encode(payload):
    return json.dumps(payload).encode()


class TestSuccess:
    @pytest.mark.parametrize("data", [
        [{"id": "a1", "alias": "seedbox"}],
        {"torrents": [], "total": 25},
        None,
        "plain string",
        0,
    ])
    def test_data_returned_unchanged(self, data):
        """Test that a success envelope yields its data untouched."""
        result = envelope.decode(200, encode({"success": True, "message": "", "data": data}))
        assert result.success is True
        assert result.data == data

    def test_any_2xx_is_accepted(self):
        """Test that 2xx statuses other than 200 still decode the envelope."""
        result = envelope.decode(201, encode({"success": True, "data": {"ok": 1}}))
        assert result.data == {"ok": 1}

    def test_missing_message_and_data(self):
        """Test defaults when the envelope omits message and data."""
        result = envelope.decode(200, encode({"success": True}))
        assert result.message == ""
        assert result.data is None


class TestHTTPErrors:
    @pytest.mark.parametrize("status", [301, 400, 401, 404, 500, 502])
    def test_non_2xx_is_http_error(self, status):
        """Test that any status outside [200, 300) is an HTTPError."""
        with pytest.raises(HTTPError) as exc_info:
            envelope.decode(status, b"<html><body>Bad Gateway</body></html>", reason="Bad")
        assert exc_info.value.status == status
        assert exc_info.value.reason == "Bad"

    def test_valid_envelope_in_error_status_is_ignored(self):
        """Test that the body is not consulted for error statuses."""
        body = encode({"success": True, "message": "", "data": [1, 2]})
        with pytest.raises(HTTPError) as exc_info:
            envelope.decode(500, body)
        assert exc_info.value.body == body


class TestMalformed:
    @pytest.mark.parametrize("body", [
        b"",
        b"<html>Login</html>",
        b"[1, 2, 3]",
        b'{"message": "no success flag"}',
        b'{"success": "true", "data": []}',
    ])
    def test_not_an_envelope(self, body):
        """Test that 2xx bodies that are not envelopes are malformed."""
        with pytest.raises(MalformedResponseError):
            envelope.decode(200, body)


class TestAPIErrors:
    def test_message_is_verbatim(self):
        """Test that success=false surfaces the server message exactly."""
        message = "用户名或密码错误"
        with pytest.raises(APIError) as exc_info:
            envelope.decode(200, encode({"success": False, "message": message, "data": None}))
        assert exc_info.value.message == message
        assert str(exc_info.value) == message

    def test_empty_message(self):
        """Test success=false with no message."""
        with pytest.raises(APIError) as exc_info:
            envelope.decode(200, encode({"success": False}))
        assert exc_info.value.message == ""


class TestTransportErrors:
    def test_no_response(self):
        """Test that a failed call without a response is a TransportError."""
        cause = requests.exceptions.ConnectionError("refused")
        with pytest.raises(TransportError) as exc_info:
            envelope.decode(error=cause)
        assert exc_info.value.cause is cause

    def test_transport_error_passed_through(self):
        """Test that an already classified TransportError is raised as-is."""
        original = TransportError("timed out", transient=True)
        with pytest.raises(TransportError) as exc_info:
            envelope.decode(error=original)
        assert exc_info.value is original
