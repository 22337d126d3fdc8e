"""
Security headers and production configuration checks.
"""
import os
import logging
from typing import Dict, Optional
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

logger = logging.getLogger(__name__)

# JSON-only API: nothing may be loaded or framed
DEFAULT_CSP = {
    "default-src": "'none'",
    "frame-ancestors": "'none'",
    "base-uri": "'none'",
    "form-action": "'none'",
}


def build_csp_header(csp_dict: Dict[str, str]) -> str:
    """Build CSP header string from dictionary."""
    return "; ".join(f"{key} {value}" for key, value in csp_dict.items())


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add CSP, nosniff, frame and referrer headers to every response."""

    def __init__(self, app, csp_overrides: Optional[Dict[str, str]] = None):
        super().__init__(app)
        csp = DEFAULT_CSP.copy()
        if csp_overrides:
            csp.update(csp_overrides)
        self.csp_header = build_csp_header(csp)

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers["Content-Security-Policy"] = self.csp_header
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


def validate_production_security(allowed_origins: list) -> None:
    """
    Validate CORS configuration for production.

    Raises RuntimeError when production allows every origin.
    """
    env = os.getenv('ENVIRONMENT', 'development').lower()

    if env not in ('production', 'prod'):
        logger.info(f"Running in {env} mode - security validation skipped")
        return

    if '*' in allowed_origins:
        raise RuntimeError("ALLOWED_ORIGINS must list explicit origins in production, not '*'")

    if any('localhost' in origin for origin in allowed_origins):
        logger.warning(
            "ALLOWED_ORIGINS contains 'localhost' in production. "
            "Consider removing for security."
        )

    logger.info("Production security validation passed")
