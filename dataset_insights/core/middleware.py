"""
Request middleware: correlation IDs, request timing and request timeouts.
"""
import asyncio
import uuid
import logging
import time
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from fastapi import status
from fastapi.responses import JSONResponse
from dataset_insights.core.errors import ErrorCodes, get_error_response
from dataset_insights.core.logging import correlation_id_var, install_correlation_factory
from dataset_insights.core.performance import PerformanceMonitor

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """Attach a correlation ID to the request, its log records and its response."""

    def __init__(self, app):
        super().__init__(app)
        install_correlation_factory()

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id

        token = correlation_id_var.set(correlation_id)
        try:
            return await self._serve(request, call_next, correlation_id)
        finally:
            correlation_id_var.reset(token)

    async def _serve(self, request: Request, call_next, correlation_id: str):
        start_time = time.perf_counter()
        logger.info(
            f"Request started: {request.method} {request.url.path}",
            extra={"method": request.method, "path": request.url.path}
        )

        try:
            response = await call_next(request)
        except Exception as e:
            duration = time.perf_counter() - start_time
            logger.error(
                f"Request failed: {request.method} {request.url.path} - {e} ({duration:.3f}s)",
                extra={"method": request.method, "path": request.url.path, "duration": duration},
                exc_info=True
            )
            error_info = get_error_response(ErrorCodes.UNKNOWN_ERROR)
            error_info["correlation_id"] = correlation_id
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content=error_info,
                headers={CORRELATION_HEADER: correlation_id}
            )

        duration = time.perf_counter() - start_time
        response.headers[CORRELATION_HEADER] = correlation_id
        response.headers["X-Response-Time"] = f"{duration:.3f}"

        PerformanceMonitor.record_metric(
            "request_duration",
            duration,
            {
                "correlation_id": correlation_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code
            }
        )

        logger.info(
            f"Request completed: {request.method} {request.url.path} - {response.status_code} ({duration:.3f}s)",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration": duration
            }
        )
        return response


class TimeoutMiddleware(BaseHTTPMiddleware):
    """Answer 504 when a request runs past the configured timeout."""

    def __init__(self, app, timeout_seconds: float):
        super().__init__(app)
        self.timeout_seconds = timeout_seconds

    async def dispatch(self, request: Request, call_next):
        correlation_id = getattr(request.state, 'correlation_id', 'unknown')
        try:
            return await asyncio.wait_for(call_next(request), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.error(f"Request timeout after {self.timeout_seconds} seconds: {request.url.path}")
            error_info = get_error_response(ErrorCodes.TIMEOUT)
            error_info["correlation_id"] = correlation_id
            return JSONResponse(
                status_code=status.HTTP_504_GATEWAY_TIMEOUT,
                content=error_info,
                headers={CORRELATION_HEADER: correlation_id}
            )
