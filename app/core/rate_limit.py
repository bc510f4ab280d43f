"""
Per-client request throttling.

Fixed window counter keyed by client address: at most `max_requests` per
`window_sec`. Rejected requests get a 429 JSON body; every response carries
the standard RateLimit-* headers plus the legacy X-RateLimit-* ones.
"""
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

log = logging.getLogger("app.rate_limit")


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app,
        max_requests: int = 10,
        window_sec: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(app)
        self.max_requests = max_requests
        self.window_sec = window_sec
        self._clock = clock
        self._windows: Dict[str, _Window] = {}
        self.rejected = 0

    def _client_key(self, request: Request) -> str:
        return request.client.host if request.client else "unknown"

    def _hit(self, key: str) -> _Window:
        now = self._clock()
        window = self._windows.get(key)
        if window is None or now >= window.reset_at:
            # drop expired windows so the table doesn't grow with every client seen
            self._windows = {k: w for k, w in self._windows.items() if w.reset_at > now}
            window = _Window(count=0, reset_at=now + self.window_sec)
            self._windows[key] = window
        window.count += 1
        return window

    def _headers(self, window: _Window) -> Dict[str, str]:
        remaining = max(0, self.max_requests - window.count)
        reset = max(0, math.ceil(window.reset_at - self._clock()))
        return {
            "RateLimit-Limit": str(self.max_requests),
            "RateLimit-Remaining": str(remaining),
            "RateLimit-Reset": str(reset),
            "X-RateLimit-Limit": str(self.max_requests),
            "X-RateLimit-Remaining": str(remaining),
            "X-RateLimit-Reset": str(reset),
        }

    async def dispatch(self, request: Request, call_next):
        key = self._client_key(request)
        window = self._hit(key)
        headers = self._headers(window)

        if window.count > self.max_requests:
            self.rejected += 1
            log.warning("Rate limit exceeded for %s on %s", key, request.url.path)
            headers["Retry-After"] = headers["RateLimit-Reset"]
            return JSONResponse(
                status_code=429,
                content={"code": 429, "message": "Too many requests, please try again later."},
                headers=headers,
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response
