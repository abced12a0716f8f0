"""
pytest configuration and fixtures.
"""

import socket
import threading
from dataclasses import dataclass, field
from typing import Dict, Generator, Optional

import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from filemanager import FileManagerServer, ServerConfig
from filemanager.core.connection import Connection


# =============================================================================
# RAW REQUESTS
# =============================================================================

@pytest.fixture
def sample_get_request() -> bytes:
    """Sample GET request for a video with a byte range."""
    return (
        b"GET /My%20Videos/clip.mp4?view=video&view=text HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Range: bytes=0-99\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample rename POST with the new name in an urlencoded body."""
    body = b"new_name=renamed.txt"
    return (
        b"POST /?action=rename&path=%2Fold.txt&old_name=old.txt HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/x-www-form-urlencoded\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"\r\n"
    ) + body


def multipart_body(
    filename: str,
    content: bytes,
    boundary: str = "----TestBoundary7MA4YWxk",
    field_name: str = "file",
) -> bytes:
    """Build a multipart/form-data body the way a browser form does."""
    return (
        f"--{boundary}\r\n"
        f'Content-Disposition: form-data; name="{field_name}"; filename="{filename}"\r\n'
        f"Content-Type: application/octet-stream\r\n"
        f"\r\n"
    ).encode("utf-8") + content + f"\r\n--{boundary}--\r\n".encode("utf-8")


# =============================================================================
# CONNECTIONS
# =============================================================================

class SocketPair:
    """A Connection whose peer end is driven by the test."""

    def __init__(self, timeout: float = 2.0, max_line_size: int = 64 * 1024):
        server_side, self.peer = socket.socketpair()
        self.peer.settimeout(timeout)
        self.conn = Connection(
            socket=server_side,
            address=("127.0.0.1", 54321),
            timeout=timeout,
            max_line_size=max_line_size,
        )

    def feed(self, data: bytes, eof: bool = True):
        """Send `data` to the connection, optionally closing our write side."""
        self.peer.sendall(data)
        if eof:
            self.peer.shutdown(socket.SHUT_WR)

    def received(self) -> bytes:
        """Everything the connection wrote, up to its close."""
        chunks = []
        while True:
            chunk = self.peer.recv(65536)
            if not chunk:
                break
            chunks.append(chunk)
        return b"".join(chunks)

    def close(self):
        self.conn.close()
        self.peer.close()


@pytest.fixture
def socket_pair() -> Generator[SocketPair, None, None]:
    """Connected Connection + peer socket."""
    pair = SocketPair()
    yield pair
    pair.close()


# =============================================================================
# FILE TREE
# =============================================================================

CLIP_BYTES = bytes(range(256)) * 4  # 1024 bytes


@pytest.fixture
def root_dir(tmp_path: Path) -> Path:
    """
    A small served tree:

        root/
        ├── hello.txt          "hello world\\n"
        ├── clip.mp4           1024 bytes
        ├── photo.png
        ├── data.bin           binary
        ├── noext              text without extension
        ├── docs/
        │   └── readme.md
        └── My Files/
            └── 日本語.txt
    """
    root = tmp_path / "root"
    root.mkdir()
    (root / "hello.txt").write_bytes(b"hello world\n")
    (root / "clip.mp4").write_bytes(CLIP_BYTES)
    (root / "photo.png").write_bytes(b"\x89PNG\r\n\x1a\n" + b"\x00" * 32)
    (root / "data.bin").write_bytes(b"\x00\x01\x02\x03" * 64)
    (root / "noext").write_bytes(b"plain words only\n")
    (root / "docs").mkdir()
    (root / "docs" / "readme.md").write_text("# Docs\n")
    (root / "My Files").mkdir()
    (root / "My Files" / "日本語.txt").write_text("こんにちは", encoding="utf-8")
    return root


# =============================================================================
# RUNNING SERVER
# =============================================================================

@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


@dataclass
class HTTPResult:
    """A response as seen by a raw-socket client."""

    status: int
    reason: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")


def parse_raw_response(raw: bytes) -> HTTPResult:
    head, _, body = raw.partition(b"\r\n\r\n")
    lines = head.decode("utf-8").split("\r\n")
    _, status, reason = lines[0].split(" ", 2)
    headers = {}
    for line in lines[1:]:
        name, _, value = line.partition(": ")
        headers[name.lower()] = value
    return HTTPResult(status=int(status), reason=reason, headers=headers, body=body)


class HTTPClient:
    """Minimal client: one request per connection, read until close."""

    def __init__(self, port: int, host: str = "127.0.0.1"):
        self.address = (host, port)

    def raw(self, data: bytes, timeout: float = 5.0) -> bytes:
        with socket.create_connection(self.address, timeout=timeout) as sock:
            sock.sendall(data)
            chunks = []
            while True:
                chunk = sock.recv(65536)
                if not chunk:
                    break
                chunks.append(chunk)
        return b"".join(chunks)

    def request(
        self,
        method: str,
        target: str,
        headers: Optional[Dict[str, str]] = None,
        body: bytes = b"",
    ) -> HTTPResult:
        lines = [f"{method} {target} HTTP/1.1", f"Host: {self.address[0]}"]
        for name, value in (headers or {}).items():
            lines.append(f"{name}: {value}")
        if body:
            lines.append(f"Content-Length: {len(body)}")
        head = ("\r\n".join(lines) + "\r\n\r\n").encode("utf-8")
        return parse_raw_response(self.raw(head + body))

    def get(self, target: str, headers: Optional[Dict[str, str]] = None) -> HTTPResult:
        return self.request("GET", target, headers)

    def post(
        self,
        target: str,
        body: bytes = b"",
        content_type: Optional[str] = None,
    ) -> HTTPResult:
        headers = {"Content-Type": content_type} if content_type else {}
        return self.request("POST", target, headers, body)

    def upload(self, directory: str, filename: str, content: bytes) -> HTTPResult:
        boundary = "----TestBoundary7MA4YWxk"
        return self.post(
            f"/?action=upload&path={directory}",
            multipart_body(filename, content, boundary),
            f"multipart/form-data; boundary={boundary}",
        )


class RunningServer:
    """FileManagerServer running in a background thread."""

    def __init__(self, server: FileManagerServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.server.port

    @property
    def client(self) -> HTTPClient:
        return HTTPClient(self.port)

    def start(self):
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()
        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)


def make_config(root: Path, port: int, **overrides) -> ServerConfig:
    settings = dict(
        root_dir=str(root),
        host="127.0.0.1",
        port=port,
        timeout=5.0,
        log_level="WARNING",
    )
    settings.update(overrides)
    return ServerConfig(**settings)


@pytest.fixture
def running_server(root_dir: Path, free_port: int) -> Generator[RunningServer, None, None]:
    """A file manager serving `root_dir`."""
    running = RunningServer(FileManagerServer(make_config(root_dir, free_port)))
    running.start()
    yield running
    running.stop()


@pytest.fixture
def client(running_server: RunningServer) -> HTTPClient:
    return running_server.client
