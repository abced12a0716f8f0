"""
=============================================================================
FILE MANAGER HANDLER
=============================================================================

Turns an IncomingRequest into an OutgoingResponse. This is the only place
that mutates the served tree.

=============================================================================
ROUTES
=============================================================================

    GET  /<path>                        directory → listing page
                                        file      → raw bytes (range-aware)
    GET  /<path>?view=text[&encoding=]  text file → text viewer
    GET  /<path>?view=video             video     → player page

    POST ?action=upload&path=<dir>      multipart body → file in <dir>
    POST ?action=delete&path=<target>   file or whole directory tree
    POST ?action=rename&path=<target>&old_name=<o>&new_name=<n>

    anything else                       405, Allow: GET, POST

A viewer query on a file of the wrong kind falls through to the raw file.

POST ignores the request path: the target always comes from the "path"
query parameter, which the forms in the listing page fill in.

=============================================================================
ERRORS
=============================================================================

Problems are raised as HTTPError subclasses and turned into plain-text
responses by the server:

    Missing "path"                      400 Missing path parameter
    Unknown action                      400 Unknown action
    Empty / unsafe names                400
    Path escapes the root               403 Access denied
    Deleting the root itself            403
    Target does not exist               404 File not found
    Upload target is not a directory    404 Directory not found

=============================================================================
"""

import logging
import os
import shutil
from typing import Optional

from ..fs.listing import list_directory
from ..fs.multipart import MultipartParser, save_upload
from ..fs.paths import PathResolver, ResolvedPath, validate_entry_name
from ..fs.streaming import RangeFileStreamer
from ..http.errors import BadRequest, Forbidden, MethodNotAllowed, NotFound
from ..http.mime_types import get_mime_type, is_text_file, is_video_file
from ..http.request import IncomingRequest
from ..http.response import OutgoingResponse, html_page, redirect
from .pages import (
    DEFAULT_ENCODING,
    decode_text,
    normalize_encoding,
    render_directory,
    render_text_viewer,
    render_video_viewer,
)


logger = logging.getLogger(__name__)


class FileManagerHandler:
    """
    Request handler for the file manager.

    Usage:
        handler = FileManagerHandler(PathResolver("/srv/files"))
        response = handler.handle(request)
    """

    ALLOWED_METHODS = ("GET", "POST")

    def __init__(
        self,
        resolver: PathResolver,
        streamer: Optional[RangeFileStreamer] = None,
        multipart: Optional[MultipartParser] = None,
    ):
        self.resolver = resolver
        self.streamer = streamer or RangeFileStreamer()
        self.multipart = multipart or MultipartParser()

        self._actions = {
            "upload": self._upload,
            "delete": self._delete,
            "rename": self._rename,
        }

    def handle(self, request: IncomingRequest) -> OutgoingResponse:
        if request.method == "GET":
            return self._get(request)
        if request.method == "POST":
            return self._post(request)
        raise MethodNotAllowed(request.method, self.ALLOWED_METHODS)

    __call__ = handle

    # =========================================================================
    # GET
    # =========================================================================

    def _get(self, request: IncomingRequest) -> OutgoingResponse:
        target = self.resolver.resolve(request.path)

        try:
            if target.path.is_dir():
                return html_page(render_directory(target.web_path, list_directory(target)))

            if target.path.is_file():
                return self._serve_file(target, request)
        except PermissionError:
            raise Forbidden("Permission denied")

        raise NotFound("File not found")

    def _serve_file(self, target: ResolvedPath, request: IncomingRequest) -> OutgoingResponse:
        view = request.get_query("view")

        if view == "text" and is_text_file(target.path):
            encoding = normalize_encoding(request.get_query("encoding", DEFAULT_ENCODING))
            try:
                content = decode_text(target.path.read_bytes(), encoding)
            except OSError as e:
                content = f"Error reading file: {e}"
            return html_page(render_text_viewer(target.web_path, content, encoding))

        if view == "video" and is_video_file(target.path):
            return html_page(render_video_viewer(target.web_path, get_mime_type(target.path)))

        return self.streamer.build_response(target.path, request.get_header("range"))

    # =========================================================================
    # POST
    # =========================================================================

    def _post(self, request: IncomingRequest) -> OutgoingResponse:
        raw_target = request.get_query("path")
        if raw_target is None:
            raise BadRequest("Missing path parameter")

        # parse_qs already decoded the parameter
        target = self.resolver.resolve_decoded(raw_target)

        action = self._actions.get(request.get_query("action", ""))
        if action is None:
            raise BadRequest("Unknown action")
        return action(target, request)

    def _upload(self, target: ResolvedPath, request: IncomingRequest) -> OutgoingResponse:
        if not target.path.is_dir():
            raise NotFound("Directory not found")

        boundary = self.multipart.extract_boundary(request.content_type)
        upload = self.multipart.parse(request.body, boundary)
        if upload is None:
            raise BadRequest("No file in upload")

        save_upload(upload, target)
        return redirect(target.web_path)

    def _delete(self, target: ResolvedPath, request: IncomingRequest) -> OutgoingResponse:
        if target.is_root:
            raise Forbidden("Cannot delete the root directory")
        if not os.path.lexists(target.path):
            raise NotFound("File not found")

        if target.path.is_dir() and not target.path.is_symlink():
            shutil.rmtree(target.path)
        else:
            os.remove(target.path)

        logger.info(f"Deleted {target.web_path}")
        return redirect(target.parent_web_path)

    def _rename(self, target: ResolvedPath, request: IncomingRequest) -> OutgoingResponse:
        old_name = request.get_param("old_name") or ""
        new_name = request.get_param("new_name") or ""
        if not old_name or not new_name:
            raise BadRequest("Invalid names")

        source = target.sibling(validate_entry_name(old_name))
        destination = target.sibling(validate_entry_name(new_name))

        if not os.path.lexists(source.path):
            raise NotFound("File not found")

        os.replace(source.path, destination.path)

        logger.info(f"Renamed {source.web_path} -> {destination.web_path}")
        return redirect(target.parent_web_path)
