"""Rate limiting middleware using slowapi."""

from fastapi import Request
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address

from app.config import settings


def get_user_for_rate_limit(request) -> str:
    """
    Rate-limit key: the caller's user id, else the client address.

    Handles both Request objects and scope dicts (ASGI scope).
    """
    if isinstance(request, dict):
        # ASGI headers are a list of (b'name', b'value') tuples
        for key, value in request.get("headers", []):
            name = key.decode("latin-1").lower() if isinstance(key, bytes) else str(key).lower()
            if name == "x-user-id":
                user_id = value.decode("latin-1") if isinstance(value, bytes) else str(value)
                if user_id.strip():
                    return user_id.strip()
        client = request.get("client")
        return client[0] if client else "unknown"

    user_id = (request.headers.get("X-User-Id") or "").strip()
    return user_id or get_remote_address(request)


# Initialize limiter
limiter = Limiter(
    key_func=get_user_for_rate_limit,
    default_limits=[f"{settings.rate_limit_per_hour}/hour"],
    storage_uri="memory://",  # In-memory storage
)


def get_rate_limit_exceeded_handler():
    """Get rate limit exceeded handler."""
    return _rate_limit_exceeded_handler


def rate_limit_dependency(request: Request) -> None:
    """
    Rate limit dependency for FastAPI.

    Raises:
        RateLimitExceeded: If rate limit is exceeded
    """
    # slowapi has no public "check" helper; `_check_request_limit` raises
    # RateLimitExceeded when the limit is hit.
    try:
        limiter._check_request_limit(request, endpoint_func=None)
    except (AttributeError, TypeError):
        limiter._check_request_limit(request.scope, endpoint_func=None)
