"""
=============================================================================
SANDBOXED PATH RESOLUTION
=============================================================================

Turns a client-supplied path (URL path or form parameter) into a
filesystem path that is guaranteed to sit inside the served root.

=============================================================================
THE ALGORITHM
=============================================================================

    "/docs/..%2F..%2Fetc\\passwd"
          │
          ▼  URL-decode                 "/docs/../../etc\\passwd"
          ▼  backslash → "/"            "/docs/../../etc/passwd"
          ▼  split on "/"               ["", "docs", "..", "..", "etc", "passwd"]
          ▼  drop "", ".", ".."         ["docs", "etc", "passwd"]
          ▼  join under root            /srv/files/docs/etc/passwd
          ▼  containment check          inside /srv/files ✓

".." segments are DROPPED, not applied, so they can never climb. The
containment check afterwards is a second line of defence.

=============================================================================
CONTAINMENT CHECK
=============================================================================

The check is separator-aware:

    root = /srv/files
    /srv/files            ✓ (the root itself)
    /srv/files/a/b        ✓
    /srv/files2/a         ✗ (a plain startswith() would accept this)

It compares STRINGS only. Symlinks inside the root are not resolved, so a
link pointing outside is followed; likewise Unicode normalization is not
applied. Both are known limitations.

=============================================================================
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Union
from urllib.parse import unquote

from ..http.errors import BadRequest, Forbidden


@dataclass(frozen=True)
class ResolvedPath:
    """
    A path proven to lie under the root.

    Attributes:
        path: Absolute filesystem path.
        web_path: Normalized URL-style path, "/" or "/a/b" (decoded).
        root: Absolute root directory.
    """

    path: Path
    web_path: str
    root: Path

    @property
    def is_root(self) -> bool:
        return self.web_path == "/"

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def parent_web_path(self) -> str:
        """Web path of the containing directory ("/" at the top)."""
        if self.is_root:
            return "/"
        parent = self.web_path.rsplit("/", 1)[0]
        return parent or "/"

    def child(self, name: str) -> "ResolvedPath":
        """Resolve a single already-validated entry name below this path."""
        web_path = f"{self.web_path.rstrip('/')}/{name}"
        return ResolvedPath(path=self.path / name, web_path=web_path, root=self.root)

    def sibling(self, name: str) -> "ResolvedPath":
        """Resolve an entry name next to this path (same parent)."""
        parent = ResolvedPath(
            path=self.path.parent if not self.is_root else self.path,
            web_path=self.parent_web_path,
            root=self.root,
        )
        return parent.child(name)


class PathResolver:
    """
    Resolves client paths against a fixed root directory.

    Usage:
        resolver = PathResolver("/srv/files")
        target = resolver.resolve("/My%20Videos/clip.mp4")
        target.path      # Path("/srv/files/My Videos/clip.mp4")
        target.web_path  # "/My Videos/clip.mp4"
    """

    def __init__(self, root: Union[str, os.PathLike]):
        # abspath, not resolve(): symlinks stay unresolved
        self.root = Path(os.path.abspath(root))
        self._root_str = str(self.root)
        self._root_prefix = self._root_str.rstrip(os.sep) + os.sep

    def resolve(self, raw_path: str) -> ResolvedPath:
        """
        Resolve a URL-encoded path (the path part of a request target).

        Raises:
            Forbidden: If the result is not under the root.
        """
        return self.resolve_decoded(unquote(raw_path, errors="surrogateescape"))

    def resolve_decoded(self, decoded_path: str) -> ResolvedPath:
        """
        Resolve a path that is already URL-decoded.

        Query parameters come through parse_qs, which decodes them; running
        them through unquote() again would turn a literal "%2F" in a file
        name into a separator.
        """
        if "\x00" in decoded_path:
            raise BadRequest("Invalid path")

        segments = [
            part
            for part in decoded_path.replace("\\", "/").split("/")
            if part not in ("", ".", "..")
        ]

        full_path = os.path.join(self._root_str, *segments) if segments else self._root_str
        if not self.contains(full_path):
            raise Forbidden("Access denied")

        web_path = "/" + "/".join(segments)
        return ResolvedPath(path=Path(full_path), web_path=web_path, root=self.root)

    def contains(self, candidate: Union[str, os.PathLike]) -> bool:
        """True if `candidate` is the root or lies below it (string test)."""
        candidate = os.fspath(candidate)
        return candidate == self._root_str or candidate.startswith(self._root_prefix)


def validate_entry_name(name: str) -> str:
    """
    Check that `name` is a single directory entry name.

    Upload filenames and rename targets are joined onto a directory as-is,
    so anything that could address a different directory is refused.

    Raises:
        BadRequest: For "", ".", "..", or names containing "/", "\\" or NUL.
    """
    if name in ("", ".", "..") or any(ch in name for ch in ("/", "\\", "\x00")):
        raise BadRequest(f"Invalid file name: {name!r}")
    return name
