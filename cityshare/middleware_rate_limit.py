import time
from collections import deque
from typing import Deque, Dict, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from .config import settings
from .middleware_request_id import request_id_of


AUTH_PATHS = ("/api/login", "/api/register", "/api/auth/login", "/api/auth/register")
EXEMPT_PATHS = ("/health", "/metrics")


class SlidingWindowLimiter(BaseHTTPMiddleware):
    """In-memory, per-process sliding window keyed by session token or client IP.

    Credential endpoints get the tighter ``auth_limit_per_minute`` budget.
    Keys whose window has emptied are dropped, so idle clients do not accumulate.
    """

    def __init__(self, app, limit_per_minute: int = 120, auth_limit_per_minute: int = 20):
        super().__init__(app)
        self.window_seconds = 60
        self.limit_per_minute = limit_per_minute
        self.auth_limit_per_minute = auth_limit_per_minute
        self.store: Dict[str, Deque[float]] = {}
        self._last_sweep = 0.0

    def _key(self, request: Request, bucket: str) -> str:
        sid = request.cookies.get(settings.SESSION_COOKIE_NAME) or request.headers.get("authorization")
        if sid:
            return f"{bucket}:token:{sid[-24:]}"
        client = request.client.host if request.client else "unknown"
        return f"{bucket}:ip:{client}"

    def _trim(self, key: str, now: float) -> Optional[Deque[float]]:
        dq = self.store.get(key)
        if dq is None:
            return None
        while dq and now - dq[0] > self.window_seconds:
            dq.popleft()
        if not dq:
            del self.store[key]
            return None
        return dq

    def sweep(self, now: float) -> None:
        for key in list(self.store):
            self._trim(key, now)
        self._last_sweep = now

    def hit(self, key: str, limit: int, now: float) -> Optional[int]:
        """Record one request; returns retry-after seconds when over budget."""
        if now - self._last_sweep > self.window_seconds:
            self.sweep(now)
        dq = self._trim(key, now)
        if dq is not None and len(dq) >= limit:
            return max(1, int(self.window_seconds - (now - dq[0])))
        self.store.setdefault(key, deque()).append(now)
        return None

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if path in EXEMPT_PATHS:
            return await call_next(request)
        if path in AUTH_PATHS:
            bucket, limit = "auth", self.auth_limit_per_minute
        else:
            bucket, limit = "api", self.limit_per_minute
        retry_after = self.hit(self._key(request, bucket), limit, time.time())
        if retry_after is not None:
            error = {"code": "rate_limited", "message": "Too many requests", "details": {"retry_after": retry_after}}
            req_id = request_id_of(request)
            if req_id:
                error["requestId"] = req_id
            return JSONResponse(
                status_code=429,
                content={"error": error},
                headers={"Retry-After": str(retry_after)},
            )
        return await call_next(request)
