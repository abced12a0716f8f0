"""
Directory listing.

Produces the sorted entry list a directory page is rendered from. Pure data;
markup lives in handlers.pages.
"""

import os
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from ..http.mime_types import is_image_file, is_text_file, is_video_file
from .paths import ResolvedPath


logger = logging.getLogger(__name__)


class EntryKind(Enum):
    """How the listing presents an entry (first match wins, top to bottom)."""
    DIRECTORY = "directory"
    IMAGE = "image"
    VIDEO = "video"
    TEXT = "text"
    FILE = "file"


@dataclass(frozen=True)
class DirectoryEntry:
    """One row of a directory listing."""

    name: str
    is_directory: bool
    size: Optional[int]      # None for directories
    modified: datetime
    web_path: str
    kind: EntryKind = EntryKind.FILE

    @property
    def display_size(self) -> str:
        return "-" if self.size is None else str(self.size)

    @property
    def display_modified(self) -> str:
        return self.modified.strftime("%Y-%m-%d %H:%M:%S")

    @property
    def display_type(self) -> str:
        return "Directory" if self.is_directory else "File"


def classify_entry(path: str, is_directory: bool) -> EntryKind:
    """Pick the presentation for a filesystem entry."""
    if is_directory:
        return EntryKind.DIRECTORY
    if is_image_file(path):
        return EntryKind.IMAGE
    if is_video_file(path):
        return EntryKind.VIDEO
    if is_text_file(path):
        return EntryKind.TEXT
    return EntryKind.FILE


def list_directory(directory: ResolvedPath) -> list[DirectoryEntry]:
    """
    List the entries of `directory`, sorted by name.

    "." and ".." are never included (os.scandir does not yield them).
    Dangling symlinks are listed with the link's own metadata; an entry
    that vanishes between scandir() and stat() is skipped.

    Raises:
        OSError: If the directory itself cannot be read.
    """
    entries = []

    with os.scandir(directory.path) as it:
        for item in it:
            try:
                is_dir = item.is_dir()
                try:
                    stat = item.stat()
                except FileNotFoundError:
                    stat = item.stat(follow_symlinks=False)  # dangling symlink
            except OSError as e:
                logger.debug(f"Skipping {item.path}: {e}")
                continue

            entries.append(DirectoryEntry(
                name=item.name,
                is_directory=is_dir,
                size=None if is_dir else stat.st_size,
                modified=datetime.fromtimestamp(stat.st_mtime),
                web_path=directory.child(item.name).web_path,
                kind=classify_entry(item.path, is_dir),
            ))

    entries.sort(key=lambda entry: entry.name)
    return entries
