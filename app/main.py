"""FastAPI application entry point."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from app.api.routes import chat, health, ingredients, recipes, wizard
from app.config import settings
from app.middleware.logging import RequestLoggingMiddleware
from app.middleware.performance import PerformanceMiddleware
from app.middleware.rate_limit import get_rate_limit_exceeded_handler, limiter
from app.middleware.security import SecurityHeadersMiddleware, setup_compression, setup_cors
from app.utils.exceptions import (
    AuthenticationError,
    GeminiError,
    GeminiQuotaError,
    NotFoundError,
    PersistenceError,
    QuotaExceededError,
    RecipeWizardException,
    UpstreamParseError,
    ValidationError,
    WizardStateError,
)
from app.utils.logging_config import get_request_id, setup_logging

# Setup logging
setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Recipe Wizard API",
    description="AI recipe generation wizard backed by Gemini",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# Add rate limiter to app
app.state.limiter = limiter

# Add exception handler for rate limiting
app.add_exception_handler(RateLimitExceeded, get_rate_limit_exceeded_handler())


# Most specific first; the first isinstance match wins.
_ERROR_STATUS = [
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED, "Authentication failed"),
    (WizardStateError, status.HTTP_409_CONFLICT, "Action not allowed in the current step"),
    (ValidationError, status.HTTP_400_BAD_REQUEST, "Validation error"),
    (NotFoundError, status.HTTP_404_NOT_FOUND, "Not found"),
    (QuotaExceededError, status.HTTP_429_TOO_MANY_REQUESTS, "AI interaction limit reached"),
    (GeminiQuotaError, status.HTTP_429_TOO_MANY_REQUESTS, "AI service over capacity"),
    (GeminiError, status.HTTP_502_BAD_GATEWAY, "AI service unavailable"),
    (UpstreamParseError, status.HTTP_500_INTERNAL_SERVER_ERROR, "AI service returned an unusable response"),
    (PersistenceError, status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to save data"),
]


def error_status(exc: RecipeWizardException):
    for exc_type, status_code, error_message in _ERROR_STATUS:
        if isinstance(exc, exc_type):
            return status_code, error_message
    return status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error"


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may hold exception instances
    return [{k: v for k, v in err.items() if k != "ctx"} for err in exc.errors()]


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors with detailed messages."""
    request_id = get_request_id()

    logger.warning(
        f"Validation error: {str(exc)}",
        extra={
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
            "errors": exc.errors(),
        },
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "Validation error",
            "detail": jsonable_errors(exc),
            "request_id": request_id,
        },
    )


@app.exception_handler(RecipeWizardException)
async def recipe_wizard_exception_handler(request: Request, exc: RecipeWizardException) -> JSONResponse:
    """Map domain exceptions to status codes."""
    request_id = get_request_id()
    status_code, error_message = error_status(exc)

    log = logger.error if status_code >= 500 else logger.warning
    log(
        f"Exception: {error_message}",
        extra={"request_id": request_id, "path": request.url.path, "exception": str(exc)},
        exc_info=status_code >= 500,
    )

    return JSONResponse(
        status_code=status_code,
        content={
            "error": error_message,
            "detail": str(exc),
            "request_id": request_id,
        },
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    request_id = get_request_id()

    logger.error(
        f"Unexpected exception: {str(exc)}",
        extra={"request_id": request_id},
        exc_info=True,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "detail": "An unexpected error occurred",
            "request_id": request_id,
        },
    )


# Add middleware (order matters!)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(PerformanceMiddleware, slow_request_threshold=2.0, ai_slow_request_threshold=15.0)
app.add_middleware(RequestLoggingMiddleware)
setup_compression(app)
setup_cors(app)

# Include routers
app.include_router(health.router)
app.include_router(recipes.router)
app.include_router(ingredients.router)
app.include_router(chat.router)
app.include_router(wizard.router)


@app.on_event("startup")
async def startup_event():
    """Application startup event."""
    logger.info("Recipe Wizard API starting up...")
    logger.info(f"Log level: {settings.log_level}")
    logger.info(f"Storage backend: {settings.storage_backend}")
    logger.info(f"Rate limit: {settings.rate_limit_per_hour} requests/hour")
    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY is not set; AI endpoints will fail")


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event."""
    logger.info("Recipe Wizard API shutting down...")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Recipe Wizard API",
        "version": "1.0.0",
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.port)
