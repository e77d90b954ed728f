# app/core/middleware.py
import json
import time

import structlog
from fastapi import FastAPI, Request

from app.core.logging import get_logger, set_request_id

logger = get_logger("app.http")

REQUEST_ID_HEADER = "X-Request-ID"
MAX_LOGGED_BODY = 64 * 1024
_BODY_METHODS = {"POST", "PUT", "PATCH"}


async def _request_payload(request: Request):
    if request.method not in _BODY_METHODS:
        return None
    raw = (await request.body())[:MAX_LOGGED_BODY]
    if not raw:
        return None
    if "application/json" in request.headers.get("content-type", ""):
        try:
            # sensitive keys are masked by the log pipeline
            return json.loads(raw)
        except ValueError:
            pass
    # opaque bodies cannot be masked key by key
    return f"<{len(raw)} bytes>"


async def request_id_middleware(request: Request, call_next):
    """Reuses the caller's X-Request-ID or mints one, and echoes it back."""
    request_id = set_request_id(request.headers.get(REQUEST_ID_HEADER))
    request.state.request_id = request_id
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)
    response = await call_next(request)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


async def request_log_middleware(request: Request, call_next):
    started = time.perf_counter()
    payload = await _request_payload(request)
    response = await call_next(request)
    logger.info(
        "http_request",
        method=request.method,
        path=request.url.path,
        query=dict(request.query_params) or None,
        body=payload,
        status=response.status_code,
        latency_ms=round((time.perf_counter() - started) * 1000, 2),
    )
    return response


def register_middlewares(app: FastAPI) -> None:
    # last registered runs first: the id is set before the request is logged
    app.middleware("http")(request_log_middleware)
    app.middleware("http")(request_id_middleware)
