"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Everything that knows what HTTP/1.1 bytes look like:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  status_codes.py   HTTPStatus enum + reason phrases                  │
    │  errors.py         exceptions that carry a status                    │
    │  mime_types.py     Content-Type table, video/image/text categories   │
    │  request.py        RequestParser → IncomingRequest                   │
    │  response.py       OutgoingResponse, ResponseBuilder, ResponseWriter │
    └─────────────────────────────────────────────────────────────────────┘

Import order matters: errors must load before request, because the
connection wrapper that request.py depends on imports errors.py.
"""

from .status_codes import HTTPStatus
from .errors import (
    HTTPError,
    HTTPParseError,
    RequestAborted,
    BadRequest,
    Forbidden,
    NotFound,
    MethodNotAllowed,
    PayloadTooLarge,
    InternalError,
)
from .mime_types import (
    get_mime_type,
    is_video_file,
    is_image_file,
    is_text_file,
)
from .request import IncomingRequest, RequestParser
from .response import (
    OutgoingResponse,
    ResponseBuilder,
    ResponseWriter,
    redirect,
    html_page,
    text_error,
)

__all__ = [
    "HTTPStatus",
    "HTTPError",
    "HTTPParseError",
    "RequestAborted",
    "BadRequest",
    "Forbidden",
    "NotFound",
    "MethodNotAllowed",
    "PayloadTooLarge",
    "InternalError",
    "get_mime_type",
    "is_video_file",
    "is_image_file",
    "is_text_file",
    "IncomingRequest",
    "RequestParser",
    "OutgoingResponse",
    "ResponseBuilder",
    "ResponseWriter",
    "redirect",
    "html_page",
    "text_error",
]
