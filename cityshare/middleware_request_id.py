import json
import logging
import re
import time
import uuid
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


logger = logging.getLogger("cityshare.request")

HEADER = "X-Request-ID"
_VALID_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def request_id_of(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


def _incoming_id(request: Request) -> str:
    # Client ids end up in logs and error bodies; anything odd is replaced
    candidate = request.headers.get(HEADER)
    if candidate and _VALID_ID.match(candidate):
        return candidate
    return uuid.uuid4().hex


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tags each request with an id and logs one JSON line when it finishes.

    The id is kept on ``request.state`` so the error handlers can echo it in
    the envelope. Unhandled exceptions are logged here as status 500 and
    re-raised for the 500 handler.
    """

    def _log(self, request: Request, req_id: str, status: int, start: float, **extra) -> None:
        line = {
            "request_id": req_id,
            "method": request.method,
            "path": request.url.path,
            "status": status,
            "duration_ms": int((time.perf_counter() - start) * 1000),
        }
        line.update(extra)
        if status >= 500:
            logger.error(json.dumps(line))
        else:
            logger.info(json.dumps(line))

    async def dispatch(self, request: Request, call_next):
        req_id = _incoming_id(request)
        request.state.request_id = req_id
        start = time.perf_counter()
        try:
            response: Response = await call_next(request)
        except Exception as exc:
            self._log(request, req_id, 500, start, error=type(exc).__name__)
            raise
        response.headers[HEADER] = req_id
        self._log(request, req_id, response.status_code, start)
        return response
