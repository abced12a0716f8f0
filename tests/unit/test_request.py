"""
Unit tests for HTTP request parsing.
"""

import pytest

from filemanager.core.connection import ConnectionState
from filemanager.http.errors import HTTPParseError, PayloadTooLarge, RequestAborted
from filemanager.http.request import (
    IncomingRequest,
    RequestParser,
    parse_content_length,
)

from conftest import SocketPair


def parse(pair: SocketPair, data: bytes, **kwargs) -> IncomingRequest:
    pair.feed(data)
    return RequestParser(**kwargs).parse(pair.conn)


class TestRequestParser:
    """Tests for RequestParser class."""

    def test_parse_simple_get(self, socket_pair: SocketPair, sample_get_request: bytes):
        """Test parsing a GET request."""
        request = parse(socket_pair, sample_get_request)

        assert request.method == "GET"
        assert request.path == "/My%20Videos/clip.mp4"
        assert request.version == "HTTP/1.1"
        assert request.body == b""
        assert request.client_address == ("127.0.0.1", 54321)
        assert socket_pair.conn.state == ConnectionState.BODY_READ

    def test_parse_headers(self, socket_pair: SocketPair, sample_get_request: bytes):
        """Header names are lowercased; lookups are case-insensitive."""
        request = parse(socket_pair, sample_get_request)

        assert request.headers["host"] == "localhost:8080"
        assert request.user_agent == "pytest"
        assert request.get_header("Range") == "bytes=0-99"
        assert request.get_header("X-Missing") is None

    def test_parse_query_params(self, socket_pair: SocketPair, sample_get_request: bytes):
        """Repeated keys keep every value in order."""
        request = parse(socket_pair, sample_get_request)

        assert request.get_query("view") == "video"
        assert request.get_query_list("view") == ["video", "text"]
        assert request.get_query("missing") is None
        assert request.get_query("missing", "default") == "default"
        assert request.get_query_list("missing") == []

    def test_undecodable_query_value_keeps_bytes(self, socket_pair: SocketPair):
        """A percent-encoded name that is not UTF-8 maps back to its bytes."""
        request = parse(socket_pair, b"POST /?action=delete&path=%2Fcaf%E9.txt HTTP/1.1\r\n\r\n")

        assert request.get_query("path") == "/caf\udce9.txt"

    def test_parse_post_with_body(self, socket_pair: SocketPair, sample_post_request: bytes):
        """Body is read to Content-Length; form values win over the query."""
        request = parse(socket_pair, sample_post_request)

        assert request.method == "POST"
        assert request.path == "/"
        assert request.body == b"new_name=renamed.txt"
        assert request.media_type == "application/x-www-form-urlencoded"
        assert request.get_query("path") == "/old.txt"
        assert request.get_param("new_name") == "renamed.txt"
        assert request.get_param("old_name") == "old.txt"

    def test_blank_query_values_kept(self, socket_pair: SocketPair):
        request = parse(socket_pair, b"GET /?a=1&a=2&b= HTTP/1.1\r\n\r\n")

        assert request.query_params == {"a": ["1", "2"], "b": [""]}

    def test_missing_version_defaults_to_http10(self, socket_pair: SocketPair):
        request = parse(socket_pair, b"GET /docs\r\n\r\n")

        assert request.path == "/docs"
        assert request.version == "HTTP/1.0"

    def test_empty_target_path(self, socket_pair: SocketPair):
        """A target with only a query still has path "/"."""
        request = parse(socket_pair, b"GET ?view=text HTTP/1.1\r\n\r\n")

        assert request.path == "/"
        assert request.get_query("view") == "text"

    def test_duplicate_header_last_wins(self, socket_pair: SocketPair):
        request = parse(
            socket_pair,
            b"GET / HTTP/1.1\r\nX-Tag: one\r\nx-tag: two\r\n\r\n",
        )

        assert request.get_header("x-tag") == "two"

    def test_malformed_header_line_skipped(self, socket_pair: SocketPair):
        """Lines without ": " are ignored rather than rejected."""
        request = parse(
            socket_pair,
            b"GET / HTTP/1.1\r\nnot a header\r\nHost: example\r\n\r\n",
        )

        assert request.headers == {"host": "example"}

    def test_invalid_content_length_means_no_body(self, socket_pair: SocketPair):
        request = parse(
            socket_pair,
            b"POST / HTTP/1.1\r\nContent-Length: lots\r\n\r\nignored",
        )

        assert request.body == b""

    def test_headers_end_at_eof(self, socket_pair: SocketPair):
        """A peer that closes before the blank line still yields a request."""
        request = parse(socket_pair, b"GET / HTTP/1.1\r\nHost: example\r\n")

        assert request.get_header("host") == "example"


class TestParserFailures:
    """Tests for the parser's failure modes."""

    def test_empty_connection(self, socket_pair: SocketPair):
        """Nothing sent: abort without a response."""
        with pytest.raises(RequestAborted):
            parse(socket_pair, b"")

    def test_single_token_request_line(self, socket_pair: SocketPair):
        with pytest.raises(RequestAborted):
            parse(socket_pair, b"GARBAGE\r\n\r\n")

    def test_body_too_large(self, socket_pair: SocketPair):
        """Oversized bodies are refused before they are read."""
        data = b"POST / HTTP/1.1\r\nContent-Length: 100\r\n\r\n"

        with pytest.raises(PayloadTooLarge) as exc_info:
            parse(socket_pair, data, max_request_size=10)

        assert exc_info.value.status_code == 413
        assert socket_pair.conn.state == ConnectionState.HEADERS_READ

    def test_truncated_body(self, socket_pair: SocketPair):
        """Peer closes before Content-Length bytes arrived."""
        data = b"POST / HTTP/1.1\r\nContent-Length: 10\r\n\r\nabc"

        with pytest.raises(HTTPParseError) as exc_info:
            parse(socket_pair, data)

        assert exc_info.value.status_code == 400
        assert "expected 10 bytes" in exc_info.value.message


class TestIncomingRequest:
    """Tests for accessors on a hand-built request."""

    def test_form_params_require_urlencoded(self):
        """Multipart bodies are not parsed as form fields."""
        request = IncomingRequest(
            method="POST",
            path="/",
            headers={"content-type": "multipart/form-data; boundary=x"},
            query_params={"new_name": ["from-query"]},
            body=b"new_name=from-body",
        )

        assert request.form_params == {}
        assert request.get_param("new_name") == "from-query"

    def test_media_type_strips_parameters(self):
        request = IncomingRequest(
            method="POST",
            path="/",
            headers={"content-type": "Multipart/Form-Data; boundary=abc"},
        )

        assert request.media_type == "multipart/form-data"
        assert request.content_type == "Multipart/Form-Data; boundary=abc"

    def test_request_is_immutable(self):
        request = IncomingRequest(method="GET", path="/")

        with pytest.raises(AttributeError):
            request.method = "POST"


class TestParseContentLength:
    """Tests for parse_content_length()."""

    @pytest.mark.parametrize("value, expected", [
        (None, 0),
        ("", 0),
        ("42", 42),
        (" 7 ", 7),
        ("-5", 0),
        ("abc", 0),
    ])
    def test_values(self, value, expected):
        assert parse_content_length(value) == expected
