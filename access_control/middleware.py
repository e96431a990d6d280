"""
Custom middleware for the face access control service.
"""

import time
from datetime import datetime, timezone
from typing import Callable, Dict, Any, List, Optional

import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger()


def _error_body(error: str, message: str, correlation_id: str) -> Dict[str, Any]:
    return {
        "error": error,
        "message": message,
        "correlation_id": correlation_id,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for request/response logging with correlation ID support.
    """

    def __init__(self, app, exclude_paths: Optional[set] = None):
        super().__init__(app)
        self.exclude_paths = exclude_paths or {"/healthz", "/docs", "/redoc", "/openapi.json"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.exclude_paths:
            return await call_next(request)

        correlation_id = request.headers.get("X-Call-ID", f"req_{int(time.time() * 1000)}")

        structlog.contextvars.bind_contextvars(correlation_id=correlation_id)

        start_time = time.time()
        logger.info(
            "Request started",
            method=request.method,
            path=request.url.path,
            query_params=dict(request.query_params),
            user_agent=request.headers.get("User-Agent", "unknown")
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                error=str(e),
                error_type=type(e).__name__,
                process_time_ms=round((time.time() - start_time) * 1000, 2)
            )
            return JSONResponse(
                status_code=500,
                content=_error_body("InternalServerError", "An unexpected error occurred", correlation_id),
                headers={"X-Call-ID": correlation_id}
            )

        logger.info(
            "Request completed",
            status_code=response.status_code,
            process_time_ms=round((time.time() - start_time) * 1000, 2)
        )

        response.headers["X-Call-ID"] = correlation_id
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add security headers to responses.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers.update({
            "X-Content-Type-Options": "nosniff",
            "X-Frame-Options": "DENY",
            "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
            "Referrer-Policy": "strict-origin-when-cross-origin",
            "Cache-Control": "no-store"
        })

        return response


class RequestMetrics:
    """In-process request counters served by the /metrics endpoint."""

    def __init__(self):
        self.reset()

    def reset(self) -> None:
        self.request_count = 0
        self.error_count = 0
        self.total_processing_time = 0.0

    def record(self, status_code: int, processing_time: float) -> None:
        self.request_count += 1
        self.total_processing_time += processing_time
        if status_code >= 400:
            self.error_count += 1

    def snapshot(self) -> Dict[str, Any]:
        count = self.request_count
        return {
            "total_requests": count,
            "error_count": self.error_count,
            "error_rate": self.error_count / count if count > 0 else 0,
            "avg_processing_time_ms": round(self.total_processing_time / count * 1000, 2) if count > 0 else 0
        }


# Global metrics store shared by the middleware and the /metrics endpoint
request_metrics = RequestMetrics()


def get_metrics() -> Dict[str, Any]:
    """Get current application metrics."""
    return request_metrics.snapshot()


class MetricsMiddleware(BaseHTTPMiddleware):
    """
    Middleware to collect basic metrics about requests.
    """

    def __init__(self, app, store: Optional[RequestMetrics] = None):
        super().__init__(app)
        self.store = store or request_metrics

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception:
            self.store.record(500, time.time() - start_time)
            raise

        self.store.record(response.status_code, time.time() - start_time)
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Simple rate limiting middleware (in-memory, per client address).
    """

    def __init__(self, app, max_requests: int = 100, window_seconds: int = 60):
        super().__init__(app)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.requests: Dict[str, List[float]] = {}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        client_ip = request.client.host if request.client else "unknown"
        current_time = time.time()

        recent = [
            req_time for req_time in self.requests.get(client_ip, [])
            if current_time - req_time < self.window_seconds
        ]

        if len(recent) >= self.max_requests:
            self.requests[client_ip] = recent
            logger.warning(
                "Rate limit exceeded",
                client_ip=client_ip,
                request_count=len(recent),
                max_requests=self.max_requests
            )
            return JSONResponse(
                status_code=429,
                content=_error_body(
                    "RateLimitExceeded",
                    f"Too many requests. Limit: {self.max_requests} per {self.window_seconds} seconds",
                    request.headers.get("X-Call-ID", "unknown")
                ),
                headers={"Retry-After": str(self.window_seconds)}
            )

        recent.append(current_time)
        self.requests[client_ip] = recent

        return await call_next(request)
