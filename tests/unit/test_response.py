"""
Unit tests for HTTP response building and writing.
"""

import threading
from datetime import datetime, timezone

import pytest

from filemanager.core.connection import ConnectionState
from filemanager.http.errors import MethodNotAllowed, NotFound
from filemanager.http.response import (
    OutgoingResponse,
    ResponseBuilder,
    ResponseWriter,
    format_http_date,
    html_page,
    redirect,
    text_error,
)
from filemanager.http.status_codes import HTTPStatus

from conftest import SocketPair, parse_raw_response


class RecordingStream:
    """Chunk source that remembers whether it was closed."""

    def __init__(self, chunks):
        self.chunks = list(chunks)
        self.closed = False

    def __iter__(self):
        return iter(self.chunks)

    def close(self):
        self.closed = True


class TestOutgoingResponse:
    """Tests for OutgoingResponse class."""

    def test_status_line(self):
        """Test status line generation."""
        response = OutgoingResponse(status=HTTPStatus.OK)
        assert response.status_line == "HTTP/1.1 200 OK"

        response = OutgoingResponse(status=HTTPStatus.PARTIAL_CONTENT)
        assert response.status_line == "HTTP/1.1 206 Partial Content"

    def test_head_bytes_includes_headers(self):
        """Test that the head carries custom and default headers."""
        response = OutgoingResponse(
            status=HTTPStatus.OK,
            headers={"X-Custom": "value"},
            body=b"test",
        )

        head = response.head_bytes("Test/1.0")

        assert head.startswith(b"HTTP/1.1 200 OK\r\n")
        assert b"X-Custom: value\r\n" in head
        assert b"Content-Length: 4\r\n" in head
        assert b"Connection: close\r\n" in head
        assert b"Server: Test/1.0\r\n" in head
        assert b"Date: " in head
        assert head.endswith(b"\r\n\r\n")

    def test_connection_close_always(self):
        """Connection: close overrides whatever the handler set."""
        response = OutgoingResponse(headers={"Connection": "keep-alive"})

        assert b"Connection: close\r\n" in response.head_bytes()
        assert b"keep-alive" not in response.head_bytes()

    def test_stream_content_length_not_derived_from_body(self):
        """Streams announce their own length."""
        response = ResponseBuilder().stream(iter([b"abc"]), 3).build()

        assert b"Content-Length: 3\r\n" in response.head_bytes()
        assert response.content_length == 3


class TestResponseBuilder:
    """Tests for ResponseBuilder class."""

    def test_status(self):
        response = ResponseBuilder().status(HTTPStatus.NOT_FOUND).build()
        assert response.status == HTTPStatus.NOT_FOUND

    def test_html_body(self):
        response = ResponseBuilder().html("<h1>Hi</h1>").build()

        assert response.body == b"<h1>Hi</h1>"
        assert response.headers["Content-Type"] == "text/html; charset=UTF-8"

    def test_text_body(self):
        response = ResponseBuilder().text("Not found").build()

        assert response.body == b"Not found"
        assert response.headers["Content-Type"] == "text/plain; charset=utf-8"

    def test_redirect_encodes_location(self):
        """Non-ASCII and spaces are percent-encoded, "/" stays."""
        response = ResponseBuilder().redirect("/My Files/日本").build()

        assert response.status == HTTPStatus.FOUND
        assert response.headers["Location"] == "/My%20Files/%E6%97%A5%E6%9C%AC"
        assert response.headers["Content-Length"] == "0"
        assert response.body == b""

    def test_method_chaining(self):
        response = (ResponseBuilder()
            .status(HTTPStatus.OK)
            .header("X-One", "1")
            .headers({"X-Two": "2"})
            .content_type("video/mp4")
            .body("payload")
            .build())

        assert response.headers == {
            "X-One": "1",
            "X-Two": "2",
            "Content-Type": "video/mp4",
        }
        assert response.body == b"payload"


class TestConvenienceFunctions:
    """Tests for response helpers."""

    def test_redirect(self):
        response = redirect("/docs")
        assert response.status == 302
        assert response.headers["Location"] == "/docs"

    def test_html_page(self):
        response = html_page("<p>x</p>")
        assert response.status == 200
        assert response.body == b"<p>x</p>"

    def test_text_error(self):
        response = text_error(HTTPStatus.NOT_FOUND, "File not found")

        assert response.status == 404
        assert response.body == b"File not found"
        assert response.headers["Content-Type"].startswith("text/plain")

    def test_text_error_from_http_error(self):
        """Errors carry extra headers such as Allow."""
        error = MethodNotAllowed("PUT")
        response = text_error(error.status, error.message, error.headers)

        assert response.status == 405
        assert response.body == b"Method PUT not allowed"
        assert response.headers["Allow"] == "GET, POST"

    def test_error_defaults_to_phrase(self):
        assert NotFound().message == "Not Found"

    def test_format_http_date(self):
        dt = datetime(2026, 10, 17, 9, 5, 3, tzinfo=timezone.utc)
        assert format_http_date(dt) == "Sat, 17 Oct 2026 09:05:03 GMT"


class TestResponseWriter:
    """Tests for ResponseWriter."""

    def test_write_body(self, socket_pair: SocketPair):
        """In-memory bodies go out right after the head."""
        writer = ResponseWriter(server_name="Test/1.0")

        assert writer.write(socket_pair.conn, text_error(HTTPStatus.NOT_FOUND, "nope")) is True
        assert socket_pair.conn.state == ConnectionState.RESPONSE_SENT
        socket_pair.conn.close()

        result = parse_raw_response(socket_pair.received())
        assert result.status == 404
        assert result.reason == "Not Found"
        assert result.headers["server"] == "Test/1.0"
        assert result.headers["content-length"] == "4"
        assert result.body == b"nope"

    def test_write_stream_closes_source(self, socket_pair: SocketPair):
        """Every chunk is written and the source is closed."""
        stream = RecordingStream([b"ab", b"cd", b"e"])
        response = ResponseBuilder().stream(stream, 5).build()

        assert ResponseWriter().write(socket_pair.conn, response) is True
        socket_pair.conn.close()

        assert stream.closed
        assert parse_raw_response(socket_pair.received()).body == b"abcde"

    def test_cancelled_stream_stops(self, socket_pair: SocketPair):
        """A set cancel event stops streaming at the next chunk."""
        cancel = threading.Event()
        cancel.set()
        stream = RecordingStream([b"never"])
        response = ResponseBuilder().stream(stream, 5).build()

        assert ResponseWriter(cancel_event=cancel).write(socket_pair.conn, response) is False
        socket_pair.conn.close()

        assert stream.closed
        result = parse_raw_response(socket_pair.received())
        assert result.status == 200
        assert result.body == b""

    def test_peer_gone(self, socket_pair: SocketPair):
        """A closed peer makes write() report failure and still close the source."""
        socket_pair.peer.close()
        stream = RecordingStream([b"x" * 65536] * 20)
        response = ResponseBuilder().stream(stream, 65536 * 20).build()

        assert ResponseWriter().write(socket_pair.conn, response) is False
        assert stream.closed
