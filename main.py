import sys
import logging
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from dataset_insights.api.routes import router, limiter
from dataset_insights.api.metrics import router as metrics_router
from dataset_insights.core.config import get_settings
from dataset_insights.core.errors import ErrorCodes, get_error_response
from dataset_insights.core.logging import configure_logging
from dataset_insights.core.middleware import CorrelationIDMiddleware, TimeoutMiddleware
from dataset_insights.core.security import SecurityHeadersMiddleware, validate_production_security

# Load environment variables
load_dotenv()

# Load and validate configuration
try:
    settings = get_settings()
except Exception as e:
    logging.basicConfig(level=logging.ERROR)
    logging.getLogger(__name__).error(f"Failed to load configuration: {e}")
    sys.exit(1)

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Dataset Insights API",
    description="Column profiling and chart suggestions for tabular datasets",
    version="1.0.0"
)

app.state.limiter = limiter
app.state.settings = settings


def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    """Structured 429 response."""
    correlation_id = getattr(request.state, 'correlation_id', 'unknown')
    error_info = get_error_response(ErrorCodes.RATE_LIMIT_EXCEEDED)
    error_info['correlation_id'] = correlation_id
    return JSONResponse(
        status_code=429,
        content=error_info,
        headers={"Retry-After": "60", "X-Correlation-ID": correlation_id}
    )


app.add_exception_handler(RateLimitExceeded, rate_limit_handler)

# Last added runs first: correlation IDs wrap everything else
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(TimeoutMiddleware, timeout_seconds=settings.request_timeout_seconds)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization", "X-Correlation-ID"],
    expose_headers=["X-Correlation-ID"]
)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(CorrelationIDMiddleware)

validate_production_security(settings.allowed_origins_list)

logger.info(f"CORS allowed origins: {settings.allowed_origins_list}")

app.include_router(router, prefix="/api")
app.include_router(metrics_router, prefix="/api")


@app.get("/")
async def root():
    return {"message": "Dataset Insights API is running"}


logger.info("Application started successfully")
