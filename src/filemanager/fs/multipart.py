"""
=============================================================================
MULTIPART UPLOAD PARSING
=============================================================================

Extracts the uploaded file from a multipart/form-data body produced by the
directory page's upload form (<input type="file" name="file">).

=============================================================================
BODY LAYOUT
=============================================================================

    Content-Type: multipart/form-data; boundary=----WebKitFormBoundaryX

    ------WebKitFormBoundaryX\\r\\n                        ← "--" + boundary
    Content-Disposition: form-data; name="file"; filename="a.txt"\\r\\n
    Content-Type: text/plain\\r\\n
    \\r\\n                                                 ← blank line
    hello\\r\\n                                            ← content + CRLF
    ------WebKitFormBoundaryX--\\r\\n                      ← closing delimiter

Algorithm:

    1. split the body on b"--" + boundary
    2. for each segment:
         - must carry "Content-Disposition: form-data"
         - header block must match  name="file" … filename="<name>"
         - content = everything after the first blank line
         - strip ONE trailing CRLF (it belongs to the delimiter)
    3. the first matching segment wins; the rest are ignored

The body is handled as bytes throughout, so binary uploads survive
untouched. The whole body is already in memory (read by RequestParser),
bounded by max_request_size.

=============================================================================
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from ..http.errors import BadRequest
from .paths import ResolvedPath, validate_entry_name


logger = logging.getLogger(__name__)


BOUNDARY_PATTERN = re.compile(r'boundary=(?:"([^"]+)"|([^;]+))', re.IGNORECASE)
DISPOSITION_MARKER = b"content-disposition: form-data"
FILE_FIELD_PATTERN = re.compile(rb'name="file".*?filename="(.+?)"', re.DOTALL)
HEADER_END = b"\r\n\r\n"


@dataclass(frozen=True)
class UploadedFile:
    """The first file part of an upload."""

    filename: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


class MultipartParser:
    """
    Parses multipart/form-data bodies.

    Usage:
        boundary = MultipartParser.extract_boundary(request.content_type)
        upload = MultipartParser().parse(request.body, boundary)
        save_upload(upload, target_dir)
    """

    @staticmethod
    def extract_boundary(content_type: str) -> str:
        """
        Pull the boundary out of a Content-Type header.

        Raises:
            BadRequest: If the type is not multipart/form-data or carries
                        no boundary.
        """
        if "multipart/form-data" not in content_type.lower():
            raise BadRequest("Expected multipart/form-data upload")

        match = BOUNDARY_PATTERN.search(content_type)
        if not match:
            raise BadRequest("Missing multipart boundary")

        boundary = (match.group(1) or match.group(2) or "").strip()
        if not boundary:
            raise BadRequest("Missing multipart boundary")
        return boundary

    def parse(self, body: bytes, boundary: str) -> Optional[UploadedFile]:
        """
        Find the first file part in `body`.

        Returns:
            The upload, or None if no part is a file field.

        Raises:
            BadRequest: If the file part's filename is not a plain name.
        """
        delimiter = b"--" + boundary.encode("latin-1")

        for segment in body.split(delimiter):
            header_end = segment.find(HEADER_END)
            if header_end == -1:
                continue

            header_block = segment[:header_end]
            if DISPOSITION_MARKER not in header_block.lower():
                continue

            match = FILE_FIELD_PATTERN.search(header_block)
            if not match:
                continue

            filename = match.group(1).decode("utf-8", errors="replace")
            validate_entry_name(filename)

            content = segment[header_end + len(HEADER_END):]
            if content.endswith(b"\r\n"):
                content = content[:-2]

            return UploadedFile(filename=filename, content=content)

        return None


def save_upload(upload: UploadedFile, directory: ResolvedPath) -> ResolvedPath:
    """
    Write `upload` into `directory`, replacing any file of the same name.

    Returns:
        The resolved path of the written file.
    """
    target = directory.child(upload.filename)
    with open(target.path, "wb") as f:
        f.write(upload.content)

    logger.info(f"Uploaded {target.web_path} ({upload.size} bytes)")
    return target
