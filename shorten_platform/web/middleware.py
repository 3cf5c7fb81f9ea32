"""Request logging middleware."""

import itertools
import logging
import threading
import time
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request


class RequestSequence:
    """Monotonic request counter scoped to one application instance."""

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            return next(self._counter)


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Tag each request with a sequence number (`request.state.req_seq`) and
    log the incoming request and outgoing response at DEBUG.
    """

    def __init__(self, app, logger: Optional[logging.Logger] = None):
        super().__init__(app)
        self.logger = logger or logging.getLogger("shorten.http")
        self.sequence = RequestSequence()

    async def dispatch(self, request: Request, call_next: Callable):
        req_seq = self.sequence.next()
        request.state.req_seq = req_seq
        start = time.perf_counter()

        self.logger.debug(
            "incoming request req_seq=%d method=%s url=%s referer=%s user_agent=%s",
            req_seq,
            request.method,
            request.url,
            request.headers.get("referer", ""),
            request.headers.get("user-agent", ""),
        )

        response = await call_next(request)

        self.logger.debug(
            "outgoing response req_seq=%d status=%d duration_ms=%.2f",
            req_seq,
            response.status_code,
            (time.perf_counter() - start) * 1000,
        )
        return response
