"""
Unit tests for directory listing and MIME helpers.
"""

import os
from pathlib import Path

import pytest

from filemanager.fs.listing import EntryKind, classify_entry, list_directory
from filemanager.fs.paths import PathResolver
from filemanager.http.mime_types import (
    DEFAULT_MIME_TYPE,
    get_mime_type,
    is_image_file,
    is_text_file,
    is_video_file,
    looks_like_text,
)


class TestListDirectory:
    """Tests for list_directory()."""

    def test_entry_count_matches_filesystem(self, root_dir: Path):
        """Every entry except "." and ".." is listed."""
        entries = list_directory(PathResolver(root_dir).resolve("/"))

        assert len(entries) == len(os.listdir(root_dir))
        assert {e.name for e in entries} == set(os.listdir(root_dir))

    def test_sorted_by_name(self, root_dir: Path):
        entries = list_directory(PathResolver(root_dir).resolve("/"))
        names = [e.name for e in entries]

        assert names == sorted(names)

    def test_entry_fields(self, root_dir: Path):
        entries = {e.name: e for e in list_directory(PathResolver(root_dir).resolve("/"))}

        hello = entries["hello.txt"]
        assert hello.size == 12
        assert hello.display_size == "12"
        assert hello.display_type == "File"
        assert hello.web_path == "/hello.txt"
        assert hello.kind is EntryKind.TEXT

        docs = entries["docs"]
        assert docs.is_directory
        assert docs.size is None
        assert docs.display_size == "-"
        assert docs.display_type == "Directory"
        assert docs.kind is EntryKind.DIRECTORY

        assert entries["clip.mp4"].kind is EntryKind.VIDEO
        assert entries["photo.png"].kind is EntryKind.IMAGE
        assert entries["data.bin"].kind is EntryKind.FILE
        assert entries["noext"].kind is EntryKind.TEXT

    def test_subdirectory_web_paths(self, root_dir: Path):
        entries = list_directory(PathResolver(root_dir).resolve("/My%20Files"))

        assert [e.web_path for e in entries] == ["/My Files/日本語.txt"]

    def test_empty_directory(self, root_dir: Path):
        (root_dir / "empty").mkdir()
        assert list_directory(PathResolver(root_dir).resolve("/empty")) == []

    def test_dangling_symlink_listed(self, root_dir: Path):
        (root_dir / "broken").symlink_to(root_dir / "nowhere")

        entries = {e.name: e for e in list_directory(PathResolver(root_dir).resolve("/"))}

        assert "broken" in entries
        assert not entries["broken"].is_directory

    def test_display_modified_format(self, root_dir: Path):
        entry = list_directory(PathResolver(root_dir).resolve("/docs"))[0]
        assert len(entry.display_modified) == len("2026-10-17 09:00:00")


class TestClassifyEntry:
    """Directory wins, then image, video, text."""

    def test_directory_beats_extension(self, root_dir: Path):
        assert classify_entry(str(root_dir / "docs"), True) is EntryKind.DIRECTORY

    def test_image_before_sniffing(self, root_dir: Path):
        assert classify_entry(str(root_dir / "photo.png"), False) is EntryKind.IMAGE


class TestMimeTypes:
    """Tests for the extension and sniffing helpers."""

    @pytest.mark.parametrize("name, expected", [
        ("clip.mp4", "video/mp4"),
        ("clip.M4V", "video/mp4"),
        ("movie.mkv", "video/x-matroska"),
        ("page.html", "text/html"),
        ("photo.JPG", "image/jpeg"),
        ("archive.tar.xz", DEFAULT_MIME_TYPE),
        ("noext", DEFAULT_MIME_TYPE),
    ])
    def test_get_mime_type(self, name: str, expected: str):
        assert get_mime_type(name) == expected

    def test_categories(self):
        assert is_video_file("a.webm")
        assert not is_video_file("a.mp3")
        assert is_image_file("a.webp")
        assert not is_image_file("a.svg")

    def test_text_extension_short_circuits(self, tmp_path: Path):
        """Known text extensions need not even exist."""
        assert is_text_file(tmp_path / "missing.py")

    def test_sniffed_text(self, root_dir: Path):
        assert is_text_file(root_dir / "noext")
        assert not is_text_file(root_dir / "data.bin")

    def test_unreadable_is_not_text(self, tmp_path: Path):
        assert not is_text_file(tmp_path / "missing")

    def test_looks_like_text(self):
        assert looks_like_text(b"line one\n\tline two\r\n")
        assert not looks_like_text(b"")
        assert not looks_like_text(b"\x00" * 10 + b"abc")
        # 1 control byte in 20 is under the 10% threshold
        assert looks_like_text(b"\x01" + b"a" * 19)
