"""
=============================================================================
MIDDLEWARE BASE
=============================================================================

Middleware wraps the file manager handler so cross-cutting concerns
(access logging today) stay out of the handler itself.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      REQUEST / RESPONSE FLOW                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   IncomingRequest ──► MW1 ──► MW2 ──► FileManagerHandler.handle      │
    │                                              │                       │
    │   OutgoingResponse ◄── MW1 ◄── MW2 ◄─────────┘                       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

First added = outermost. The server adds LoggingMiddleware first so the
access log sees every request, including ones a later layer rejects.

Streaming responses leave the pipeline before their body is sent: a
middleware sees the status and headers of a file download, never its
bytes.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, List
import logging

from ..http.request import IncomingRequest
from ..http.response import OutgoingResponse


logger = logging.getLogger(__name__)


# Signature of the next middleware or the final handler.
NextHandler = Callable[[IncomingRequest], OutgoingResponse]


class Middleware(ABC):
    """
    Abstract base class for middleware.

    Every middleware implements:

        def __call__(self, request, next) -> OutgoingResponse

    and either calls next(request) to continue the chain or returns a
    response of its own to short-circuit it.
    """

    @abstractmethod
    def __call__(self, request: IncomingRequest, next: NextHandler) -> OutgoingResponse:
        """
        Process the request.

        Args:
            request: The parsed request.
            next: The next handler in the chain.

        Returns:
            The response from next() or a short-circuit response.
        """
        pass

    @property
    def name(self) -> str:
        """Middleware name for logging."""
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    Chains middleware around a final handler.

        pipeline = MiddlewarePipeline()
        pipeline.add(LoggingMiddleware())
        handler = pipeline.wrap(file_handler.handle)
        response = handler(request)
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        """Append a middleware (first added = outermost). Chainable."""
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self


    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Wrap `handler` with every middleware in the pipeline.

        Given [MW1, MW2] the result calls MW1 → MW2 → handler, so the
        list is wrapped in reverse.
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = self._create_wrapped_handler(middleware, current)
        return current

    def _create_wrapped_handler(
        self,
        middleware: Middleware,
        next_handler: NextHandler
    ) -> NextHandler:
        def wrapped(request: IncomingRequest) -> OutgoingResponse:
            return middleware(request, next_handler)
        return wrapped

    def __len__(self) -> int:
        return len(self._middleware)
