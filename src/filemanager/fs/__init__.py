"""
Filesystem layer: everything that touches the served tree.

    paths.py       PathResolver → ResolvedPath (sandboxed to the root)
    listing.py     directory entries for the listing page
    streaming.py   RangeFileStreamer, byte-range parsing
    multipart.py   MultipartParser, upload saving
"""

from .paths import PathResolver, ResolvedPath, validate_entry_name
from .listing import DirectoryEntry, EntryKind, list_directory
from .streaming import FileChunkSource, RangeFileStreamer, RangeSpec, parse_range
from .multipart import MultipartParser, UploadedFile, save_upload

__all__ = [
    "PathResolver",
    "ResolvedPath",
    "validate_entry_name",
    "DirectoryEntry",
    "EntryKind",
    "list_directory",
    "FileChunkSource",
    "RangeFileStreamer",
    "RangeSpec",
    "parse_range",
    "MultipartParser",
    "UploadedFile",
    "save_upload",
]
