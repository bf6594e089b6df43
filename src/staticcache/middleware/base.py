"""
=============================================================================
BASE MIDDLEWARE INTERFACE
=============================================================================

Defines the middleware protocol and the pipeline for chaining middleware
(Chain of Responsibility).

    ┌─────────────────────────────────────────────────────────────────────┐
    │                 HOW A STATIC CACHE FITS IN A CHAIN                  │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Request ───────────────────────────────────────────────►          │
    │                                                                      │
    │   ┌──────────┐    ┌──────────────┐    ┌──────────────────┐          │
    │   │ Logging  │───►│ Static cache │───►│ Fallback handler │          │
    │   │    MW    │    │      MW      │    │   (404 / app)    │          │
    │   └──────────┘    └──────┬───────┘    └──────────────────┘          │
    │                          │                                          │
    │                 file found: answer 200/304                          │
    │                 otherwise:  next(request)  ("decline")              │
    │                                                                      │
    │   ◄─────────────────────────────────────────────── Response         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘
"""

from abc import ABC, abstractmethod
from typing import Callable, List
import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)


# NextHandler is the signature for the next middleware or final handler.
NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    Abstract base class for middleware.

    Every middleware implements:

        def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse

    and either answers the request itself (short-circuit) or returns
    next(request).
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        """
        Process the request.

        Args:
            request: The incoming HTTP request
            next: The next handler in the chain

        Returns:
            HTTP response (either from next() or short-circuited)
        """
        pass

    @property
    def name(self) -> str:
        """Get the middleware name for logging."""
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    Chains multiple middleware together with a final handler.

        pipeline = MiddlewarePipeline()
        pipeline.add(LoggingMiddleware())         # first added = outermost
        pipeline.add(StaticCacheMiddleware(config))

        handler = pipeline.wrap(lambda request: not_found())
        response = handler(request)
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        """Add middleware to the pipeline. Returns self for chaining."""
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Wrap a handler with all middleware in the pipeline.

        Given [MW1, MW2] and handler, the result calls MW1 → MW2 → handler.
        We wrap in REVERSE order so the first-added middleware is the
        outermost wrapper.
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
        def wrapped(request: HTTPRequest) -> HTTPResponse:
            return middleware(request, next_handler)

        return wrapped

    def __len__(self) -> int:
        return len(self._middleware)

