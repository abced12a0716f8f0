"""
=============================================================================
RANGE-AWARE FILE STREAMING
=============================================================================

Serves files from disk in fixed-size chunks, honouring "Range: bytes=..."
for video files so that browsers can seek inside a clip.

=============================================================================
RANGE REQUESTS IN ONE PICTURE
=============================================================================

    Browser                                      Server
       │  GET /clip.mp4                            │
       │  Range: bytes=1048576-                    │
       │ ─────────────────────────────────────────►│
       │                                           │  size = 73400320
       │  206 Partial Content                      │  start = 1048576
       │  Content-Range: bytes 1048576-73400319/73400320
       │  Content-Length: 72351744                 │
       │  Accept-Ranges: bytes                     │
       │ ◄─────────────────────────────────────────│
       │  <bytes 1048576 … 73400319, 8 KB at a time>

=============================================================================
RULES
=============================================================================

Only files in the video category are rangeable. For them:

    header            start        end
    ──────────────    ─────────    ───────────
    bytes=100-199     100          199
    bytes=100-        100          size-1
    bytes=-500        0 (!)        500          ← suffix form NOT supported:
                                                  an empty start means "from 0"
    bytes=0-999999    0            size-1       ← end clamped

A header that does not match, or that cannot produce start <= end after
clamping (start past EOF, empty file), is ignored and the whole file is
sent with 200. There is no 416. Only the first range of a multi-range
header is considered.

Non-video files always get 200 with the full body, even when a Range
header is present.

    ┌──────────────────┬──────────────────────┬────────────────────────────┐
    │ Response         │ Accept-Ranges        │ Cache-Control              │
    ├──────────────────┼──────────────────────┼────────────────────────────┤
    │ 206 (video)      │ bytes                │ no-cache                   │
    │ 200 video        │ bytes                │ (none)                     │
    │ 200 other        │ (none)               │ public, max-age=3600       │
    └──────────────────┴──────────────────────┴────────────────────────────┘

=============================================================================
"""

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Union

from ..http.mime_types import get_mime_type, is_video_file
from ..http.response import OutgoingResponse, ResponseBuilder
from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)


DEFAULT_CHUNK_SIZE = 8192

RANGE_PATTERN = re.compile(r"bytes=(\d*)-(\d*)")


@dataclass(frozen=True)
class RangeSpec:
    """
    A satisfiable byte window of a file.

    Invariant: 0 <= start <= end <= total - 1.
    """

    start: int
    end: int
    total: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    @property
    def content_range(self) -> str:
        return f"bytes {self.start}-{self.end}/{self.total}"


def parse_range(header: Optional[str], total: int) -> Optional[RangeSpec]:
    """
    Parse a Range header against a file of `total` bytes.

    Returns:
        A RangeSpec, or None if the header is absent, malformed or not
        satisfiable (the caller then serves the whole file).

    Examples:
        >>> parse_range("bytes=0-99", 1000)
        RangeSpec(start=0, end=99, total=1000)
        >>> parse_range("bytes=-100", 1000)     # suffix form: from 0
        RangeSpec(start=0, end=100, total=1000)
        >>> parse_range("bytes=2000-", 1000) is None
        True
    """
    if not header:
        return None

    match = RANGE_PATTERN.match(header.strip())
    if not match:
        return None

    first, last = match.groups()
    start = int(first) if first else 0
    end = int(last) if last else total - 1

    start = max(start, 0)
    end = min(end, total - 1)

    if start > end:
        return None
    return RangeSpec(start=start, end=end, total=total)


class FileChunkSource:
    """
    Iterable over a window of an open file, one chunk at a time.

    The file is opened in the constructor so that permission problems
    surface before any response byte is written. close() is idempotent
    and is called by ResponseWriter however the stream ends.
    """

    def __init__(
        self,
        path: Union[str, os.PathLike],
        offset: int = 0,
        length: Optional[int] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self.path = Path(path)
        self.chunk_size = chunk_size
        self._file = open(self.path, "rb")
        try:
            size = os.fstat(self._file.fileno()).st_size
            self.offset = offset
            self.length = size - offset if length is None else length
            if offset:
                self._file.seek(offset)
        except OSError:
            self._file.close()
            raise

    def __iter__(self) -> Iterator[bytes]:
        remaining = self.length
        while remaining > 0:
            chunk = self._file.read(min(self.chunk_size, remaining))
            if not chunk:
                # File shrank under us; stop rather than pad
                logger.warning(f"{self.path} truncated during streaming")
                return
            remaining -= len(chunk)
            yield chunk

    def close(self):
        if not self._file.closed:
            self._file.close()


class RangeFileStreamer:
    """
    Builds streaming responses for files on disk.

    Usage:
        streamer = RangeFileStreamer(chunk_size=8192)
        response = streamer.build_response(path, request.get_header("range"))
        writer.write(conn, response)
    """

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.chunk_size = chunk_size

    @staticmethod
    def supports_range(path: Union[str, os.PathLike]) -> bool:
        """Byte ranges are honoured for video files only."""
        return is_video_file(path)

    def build_response(
        self,
        path: Union[str, os.PathLike],
        range_header: Optional[str] = None,
    ) -> OutgoingResponse:
        """
        Build a 206 or 200 response streaming `path`.

        Raises:
            OSError: If the file cannot be opened or stat'ed.
        """
        rangeable = self.supports_range(path)
        content_type = get_mime_type(path)

        # ─────────────────────────────────────────────────────────────────
        # PARTIAL CONTENT
        # ─────────────────────────────────────────────────────────────────
        if rangeable and range_header:
            total = os.stat(path).st_size
            spec = parse_range(range_header, total)
            if spec is not None:
                source = FileChunkSource(path, spec.start, spec.length, self.chunk_size)
                return (ResponseBuilder()
                    .status(HTTPStatus.PARTIAL_CONTENT)
                    .content_type(content_type)
                    .stream(source, spec.length)
                    .header("Content-Range", spec.content_range)
                    .header("Accept-Ranges", "bytes")
                    .header("Cache-Control", "no-cache")
                    .build())
            logger.debug(f"Ignoring unusable Range {range_header!r} for {path}")

        # ─────────────────────────────────────────────────────────────────
        # FULL FILE
        # ─────────────────────────────────────────────────────────────────
        source = FileChunkSource(path, chunk_size=self.chunk_size)
        builder = (ResponseBuilder()
            .status(HTTPStatus.OK)
            .content_type(content_type)
            .stream(source, source.length))

        if rangeable:
            builder.header("Accept-Ranges", "bytes")
        else:
            builder.header("Cache-Control", "public, max-age=3600")

        return builder.build()
