"""
Request handlers.

    files.py   FileManagerHandler: listing, download, viewers, mutations
    pages.py   HTML rendering for the listing and viewer pages
"""

from .files import FileManagerHandler
from .pages import render_directory, render_text_viewer, render_video_viewer

__all__ = [
    "FileManagerHandler",
    "render_directory",
    "render_text_viewer",
    "render_video_viewer",
]
