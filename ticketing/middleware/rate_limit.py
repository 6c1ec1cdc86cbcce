"""Fixed-window request limiting per client address."""

from __future__ import annotations

import time
from typing import Awaitable, Callable

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Reject clients that exceed `limit` requests per window on prefixed paths."""

    def __init__(
        self,
        app: ASGIApp,
        *,
        limit: int,
        window_seconds: float,
        path_prefix: str = "/api/",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(app)
        self.limit = limit
        self.window_seconds = window_seconds
        self.path_prefix = path_prefix
        self._clock = clock
        self._windows: dict[str, tuple[float, int]] = {}
        self._last_sweep = clock()

    def _sweep(self, now: float) -> None:
        # at most once per window, drop clients whose window has closed
        if now - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = now
        expired = [
            client for client, (started, _) in self._windows.items() if now - started >= self.window_seconds
        ]
        for client in expired:
            del self._windows[client]

    def _hit(self, client: str) -> bool:
        now = self._clock()
        self._sweep(now)
        started, count = self._windows.get(client, (now, 0))
        if now - started >= self.window_seconds:
            started, count = now, 0
        count += 1
        self._windows[client] = (started, count)
        return count <= self.limit

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        if self.limit <= 0 or not request.url.path.startswith(self.path_prefix):
            return await call_next(request)

        client = request.client.host if request.client else "unknown"
        if not self._hit(client):
            return JSONResponse(
                status_code=429,
                content={
                    "success": False,
                    "message": "Too many requests from this IP, please try again later.",
                },
            )
        return await call_next(request)
