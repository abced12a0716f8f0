"""
=============================================================================
FILEMANAGER
=============================================================================

A browser-based file manager served over raw TCP sockets.

    filemanager ~/Videos 8080

Point a browser at http://<host>:8080/ to browse the directory, stream
videos with seeking, read text files in several encodings, and upload,
rename or delete files.

=============================================================================
PACKAGE LAYOUT
=============================================================================

    filemanager/
    ├── config.py        ServerConfig
    ├── server.py        FileManagerServer: wiring and error boundary
    ├── __main__.py      CLI
    ├── http/            request parsing, responses, status, MIME types
    ├── core/            connection wrapper, acceptor, supervisor
    ├── fs/              sandboxed paths, listing, streaming, uploads
    ├── handlers/        request handler and HTML pages
    └── middleware/      pipeline and access log

=============================================================================
"""

__version__ = "1.0.0"

# http before anything that imports core: http.request and core.connection
# import each other's modules
from . import http
from .config import ServerConfig
from .server import FileManagerServer, create_app

__all__ = ["FileManagerServer", "ServerConfig", "create_app", "__version__"]
