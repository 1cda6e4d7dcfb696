"""Security headers, CORS and compression."""

from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from app.config import settings

# Headers browsers may send and read cross-origin
ALLOWED_HEADERS = ["Content-Type", "X-User-Id", "X-Request-ID"]
EXPOSED_HEADERS = ["X-Request-ID", "X-Response-Time"]


def setup_cors(app: ASGIApp) -> None:
    """Setup CORS middleware. Credentials only with an explicit origin list."""
    origins = settings.cors_origins_list
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=ALLOWED_HEADERS,
        expose_headers=EXPOSED_HEADERS,
    )


def setup_compression(app: ASGIApp) -> None:
    """Recipe pages and data-URL images compress well."""
    app.add_middleware(GZipMiddleware, minimum_size=1000)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds standard security headers; audio and JSON are never framed or sniffed."""

    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if request.url.path.startswith("/api/"):
            # user-specific data
            response.headers["Cache-Control"] = "no-store"
        return response
