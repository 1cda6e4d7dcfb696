"""Request timing: slow-request logging and in-process metrics."""

import logging
import threading
import time
from collections import defaultdict
from typing import Callable, Dict

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

logger = logging.getLogger(__name__)

# Endpoints that wait on the generative service get a longer threshold.
AI_PATH_PREFIXES = (
    "/api/generate-recipes",
    "/api/save-recipes",
    "/api/validate-ingredient",
    "/api/tts",
    "/api/chat-assistant",
    "/api/wizard/sessions/",
)


class PerformanceMetrics:
    """Counters for requests served by this process."""

    def __init__(self, slow_threshold: float = 2.0, very_slow_threshold: float = 5.0) -> None:
        self.slow_threshold = slow_threshold
        self.very_slow_threshold = very_slow_threshold
        self._lock = threading.Lock()
        self.reset()

    def reset(self) -> None:
        self.request_count = 0
        self.total_duration = 0.0
        self.slow_requests = 0
        self.very_slow_requests = 0
        self.errors = 0
        self.by_path: Dict[str, int] = defaultdict(int)

    def record_request(self, path: str, duration: float, is_error: bool = False) -> None:
        with self._lock:
            self.request_count += 1
            self.total_duration += duration
            self.by_path[path] += 1
            if is_error:
                self.errors += 1
            if duration >= self.very_slow_threshold:
                self.very_slow_requests += 1
            elif duration >= self.slow_threshold:
                self.slow_requests += 1

    def get_summary(self) -> dict:
        count = self.request_count
        return {
            "total_requests": count,
            "average_duration_ms": round(self.total_duration / count * 1000, 2) if count else 0.0,
            "slow_requests": self.slow_requests,
            "very_slow_requests": self.very_slow_requests,
            "errors": self.errors,
            "error_rate": round(self.errors / count * 100, 2) if count else 0.0,
            "requests_by_path": dict(self.by_path),
        }


# Global metrics instance
metrics = PerformanceMetrics()


class PerformanceMiddleware(BaseHTTPMiddleware):
    """Times each request, adds X-Response-Time and feeds `metrics`."""

    def __init__(
        self,
        app: ASGIApp,
        slow_request_threshold: float = 2.0,
        ai_slow_request_threshold: float = 15.0,
    ):
        super().__init__(app)
        self.slow_threshold = slow_request_threshold
        self.ai_slow_threshold = ai_slow_request_threshold

    def _threshold(self, path: str) -> float:
        if path.startswith(AI_PATH_PREFIXES):
            return self.ai_slow_threshold
        return self.slow_threshold

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        method = request.method
        path = request.url.path

        try:
            response = await call_next(request)
        except Exception:
            metrics.record_request(path, time.perf_counter() - start_time, is_error=True)
            raise

        duration = time.perf_counter() - start_time
        duration_ms = round(duration * 1000, 2)
        metrics.record_request(path, duration, is_error=response.status_code >= 500)
        response.headers["X-Response-Time"] = f"{duration_ms}ms"

        if duration >= self._threshold(path):
            logger.warning(
                f"Slow request: {method} {path} took {duration_ms}ms",
                extra={
                    "request_id": getattr(request.state, "request_id", None),
                    "method": method,
                    "path": path,
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                },
            )

        return response
