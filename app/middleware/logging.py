"""Request/response logging middleware."""

import json
import logging
import time
from typing import Any, Callable, Dict, Optional, Tuple

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.utils.logging_config import generate_request_id, set_request_id

logger = logging.getLogger(__name__)

SENSITIVE_KEYS = ("api_key", "password", "token", "secret", "authorization")
MAX_LOGGED_STRING = 200


def mask_sensitive_data(data: Any) -> Any:
    """Mask secrets and shorten long strings (data-URL images, chat history) for logs."""
    if isinstance(data, dict):
        masked = {}
        for key, value in data.items():
            if any(s in str(key).lower() for s in SENSITIVE_KEYS):
                masked[key] = "***"
            else:
                masked[key] = mask_sensitive_data(value)
        return masked
    if isinstance(data, list):
        return [mask_sensitive_data(item) for item in data]
    if isinstance(data, str) and len(data) > MAX_LOGGED_STRING:
        return f"{data[:MAX_LOGGED_STRING]}...({len(data)} chars)"
    return data


async def get_request_params(request: Request) -> Tuple[Dict[str, Any], Optional[bytes]]:
    """
    Collect query, path and JSON body parameters.

    Returns the params and the raw body so it can be replayed downstream.
    """
    params: Dict[str, Any] = {}
    body_bytes: Optional[bytes] = None

    if request.query_params:
        params["query"] = dict(request.query_params)
    if request.path_params:
        params["path"] = dict(request.path_params)

    if "application/json" in request.headers.get("content-type", "").lower():
        body_bytes = await request.body()
        if body_bytes:
            try:
                params["body"] = json.loads(body_bytes)
            except json.JSONDecodeError:
                params["body"] = body_bytes.decode("utf-8", errors="ignore")[:500]

    return params, body_bytes


def _replay_body(request: Request, body_bytes: bytes) -> None:
    """Serve the already-read body once, then fall through to the real receive channel."""
    original_receive = request._receive
    body_sent = False

    async def receive():
        nonlocal body_sent
        if not body_sent:
            body_sent = True
            return {"type": "http.request", "body": body_bytes, "more_body": False}
        message = await original_receive()
        # some servers send a trailing empty http.request before disconnecting
        if message["type"] == "http.request" and not message.get("more_body"):
            return {"type": "http.disconnect"}
        return message

    request._receive = receive


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Assigns a request id and logs every request and response."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # honour an id set by an upstream proxy
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        set_request_id(request_id)
        request.state.request_id = request_id

        start_time = time.perf_counter()
        method = request.method
        path = request.url.path

        request_params, body_bytes = await get_request_params(request)
        if body_bytes is not None:
            _replay_body(request, body_bytes)

        logger.info(
            f"API Request: {method} {path}",
            extra={
                "request_id": request_id,
                "method": method,
                "path": path,
                "user_id": request.headers.get("X-User-Id"),
                "params": mask_sensitive_data(request_params),
                "client_ip": request.client.host if request.client else None,
            },
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"API Error: {method} {path} - {str(e)}",
                extra={
                    "request_id": request_id,
                    "method": method,
                    "path": path,
                    "process_time_ms": round((time.perf_counter() - start_time) * 1000, 2),
                },
                exc_info=True,
            )
            raise

        logger.info(
            f"API Response: {method} {path} - {response.status_code}",
            extra={
                "request_id": request_id,
                "method": method,
                "path": path,
                "status_code": response.status_code,
                "process_time_ms": round((time.perf_counter() - start_time) * 1000, 2),
            },
        )
        response.headers["X-Request-ID"] = request_id
        return response
