"""
=============================================================================
CONTENT TYPES AND FILE CATEGORIES
=============================================================================

Maps file extensions to Content-Type values and classifies files into the
three categories the file manager treats specially.

=============================================================================
CATEGORIES
=============================================================================

    ┌──────────┬───────────────────────────────────────────────────────────┐
    │ Category │ Effect                                                    │
    ├──────────┼───────────────────────────────────────────────────────────┤
    │  video   │ Byte ranges honoured (206), Accept-Ranges advertised,     │
    │          │ no public caching, "?view=video" player page              │
    │  image   │ Listing opens a lightbox instead of navigating            │
    │  text    │ "?view=text" viewer with a selectable encoding            │
    └──────────┴───────────────────────────────────────────────────────────┘

Video and image are decided purely by extension. Text is decided by
extension first and, failing that, by sniffing the first 512 bytes:

    sample = first 512 bytes
    binary = count of bytes that are NUL or control chars (except \\t \\n \\r)
    text  ⇔ sample non-empty AND binary / len(sample) < 0.1

=============================================================================
"""

import os
from pathlib import Path
from typing import Union


PathLike = Union[str, os.PathLike]


# =============================================================================
# CONTENT-TYPE TABLE
# =============================================================================
#
# Anything not listed is served as application/octet-stream, which makes
# browsers download rather than render.
#
MIME_TYPES = {
    ".html": "text/html",
    ".htm": "text/html",
    ".css": "text/css",
    ".js": "application/javascript",
    ".json": "application/json",
    ".txt": "text/plain",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".pdf": "application/pdf",
    # Video containers
    ".mp4": "video/mp4",
    ".m4v": "video/mp4",
    ".webm": "video/webm",
    ".ogg": "video/ogg",
    ".avi": "video/x-msvideo",
    ".mov": "video/quicktime",
    ".wmv": "video/x-ms-wmv",
    ".flv": "video/x-flv",
    ".mkv": "video/x-matroska",
}

DEFAULT_MIME_TYPE = "application/octet-stream"


VIDEO_EXTENSIONS = frozenset({
    ".mp4", ".webm", ".ogg", ".avi", ".mov", ".wmv", ".flv", ".mkv", ".m4v",
})

IMAGE_EXTENSIONS = frozenset({
    ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".webp",
})

TEXT_EXTENSIONS = frozenset({
    ".txt", ".log", ".md", ".rb", ".py", ".js", ".html", ".htm", ".css",
    ".json", ".xml", ".yml", ".yaml", ".csv", ".ini", ".cfg", ".conf",
    ".sh", ".bat", ".cmd",
})

# Sniffing parameters for files whose extension says nothing
TEXT_SNIFF_BYTES = 512
TEXT_BINARY_RATIO = 0.1
_ALLOWED_CONTROL = {0x09, 0x0A, 0x0D}  # tab, LF, CR


def _extension(path: PathLike) -> str:
    return Path(path).suffix.lower()


def get_mime_type(path: PathLike) -> str:
    """
    Get the Content-Type for a file from its extension.

    Examples:
        >>> get_mime_type("clip.M4V")
        'video/mp4'
        >>> get_mime_type("archive.tar.xz")
        'application/octet-stream'
    """
    return MIME_TYPES.get(_extension(path), DEFAULT_MIME_TYPE)


def is_video_file(path: PathLike) -> bool:
    """True if the extension is a known video container."""
    return _extension(path) in VIDEO_EXTENSIONS


def is_image_file(path: PathLike) -> bool:
    """True if the extension is a browser-displayable image."""
    return _extension(path) in IMAGE_EXTENSIONS


def looks_like_text(sample: bytes) -> bool:
    """
    Decide whether a byte sample is text.

    A sample is text if it is non-empty and fewer than 10% of its bytes
    are NUL or ASCII control characters other than tab, LF and CR.
    """
    if not sample:
        return False

    binary = sum(
        1 for byte in sample
        if byte == 0 or (byte < 0x20 and byte not in _ALLOWED_CONTROL)
    )
    return binary / len(sample) < TEXT_BINARY_RATIO


def is_text_file(path: PathLike) -> bool:
    """
    True if the file should open in the text viewer.

    Known text extensions short-circuit; otherwise the first 512 bytes are
    sniffed. Unreadable files are never text.
    """
    if _extension(path) in TEXT_EXTENSIONS:
        return True

    try:
        with open(path, "rb") as f:
            sample = f.read(TEXT_SNIFF_BYTES)
    except OSError:
        return False

    return looks_like_text(sample)
