"""In-memory sliding window rate limiter keyed by client address."""

import time
from collections import defaultdict, deque

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from seatline.config.settings import Settings
from seatline.middleware.error_handler import error_body

WINDOW_SECONDS = 60.0

# The live channel is long-lived and reconnects on its own schedule
EXEMPT_PATHS = {"/health", "/docs", "/redoc", "/openapi.json", "/api/v1/events"}

SEND_PATH = "/api/v1/messages"


class RateLimiterMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, settings: Settings):
        super().__init__(app)
        self.standard_limit = settings.RATE_LIMIT_STANDARD
        self.send_limit = settings.RATE_LIMIT_SEND
        # client -> request timestamps inside the window
        self._standard_windows: dict[str, deque[float]] = defaultdict(deque)
        self._send_windows: dict[str, deque[float]] = defaultdict(deque)
        self._last_sweep = time.time()

    def _check_limit(self, window: deque[float], limit: int, now: float) -> tuple[bool, int]:
        """Remove expired entries, check if under limit. Returns (allowed, retry_after_seconds)."""
        cutoff = now - WINDOW_SECONDS
        while window and window[0] < cutoff:
            window.popleft()

        if len(window) >= limit:
            retry_after = int(window[0] - cutoff) + 1
            return False, retry_after

        window.append(now)
        return True, 0

    def _sweep(self, now: float) -> None:
        """Forget clients with no requests left in the window. Runs at most once per window."""
        if now - self._last_sweep < WINDOW_SECONDS:
            return
        self._last_sweep = now
        cutoff = now - WINDOW_SECONDS
        for windows in (self._standard_windows, self._send_windows):
            idle = [client for client, window in windows.items() if not window or window[-1] < cutoff]
            for client in idle:
                del windows[client]

    def _reject(self, request: Request, message: str, retry_after: int) -> Response:
        request_id = getattr(request.state, "request_id", "unknown")
        return JSONResponse(
            status_code=429,
            content=error_body(429, "RATE_LIMITED", message, request_id),
            headers={"Retry-After": str(retry_after)},
        )

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path.rstrip("/") or "/"
        if path in EXEMPT_PATHS:
            return await call_next(request)

        client = request.client.host if request.client else "anonymous"
        now = time.time()
        self._sweep(now)

        if path == SEND_PATH and request.method == "POST":
            allowed, retry_after = self._check_limit(self._send_windows[client], self.send_limit, now)
            if not allowed:
                return self._reject(request, "Message send rate limit exceeded", retry_after)

        allowed, retry_after = self._check_limit(self._standard_windows[client], self.standard_limit, now)
        if not allowed:
            return self._reject(request, "Rate limit exceeded", retry_after)

        return await call_next(request)
