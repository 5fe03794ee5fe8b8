"""
AwardMatch Backend API

FastAPI application for award matching and AI decision support.
"""

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from slowapi.errors import RateLimitExceeded
import traceback
import logging

from llm_advisor import ConfigurationError, ParseError, UpstreamError
from app.core.config import settings
from app.core.middleware import RequestLogMiddleware, get_rate_limiter
from app.api.v1 import api_router
from app.services.session_service import SessionStore

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for startup and shutdown."""
    # Startup
    app.state.sessions = SessionStore(max_sessions=settings.MAX_SESSIONS)
    if not settings.ANTHROPIC_API_KEY:
        logger.warning("ANTHROPIC_API_KEY is not set; AI insight endpoints will return 503")
    yield
    # Shutdown: sessions are memory-only and simply dropped
    app.state.sessions = None


app = FastAPI(
    title="AwardMatch API",
    description="Financial-aid award matching with AI chance analysis and essay guides",
    version="1.0.0",
    lifespan=lifespan,
)

# Rate limiter
limiter = get_rate_limiter()
app.state.limiter = limiter


def _error_response(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "message": message})


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.error(f"AI service not configured: {exc}")
    return _error_response(status.HTTP_503_SERVICE_UNAVAILABLE, "configuration_error", str(exc))


@app.exception_handler(UpstreamError)
async def upstream_error_handler(request: Request, exc: UpstreamError):
    return _error_response(status.HTTP_502_BAD_GATEWAY, "upstream_error", str(exc))


@app.exception_handler(ParseError)
async def parse_error_handler(request: Request, exc: ParseError):
    return _error_response(
        status.HTTP_502_BAD_GATEWAY,
        "ai_response_malformed",
        f"AI response malformed: {exc}",
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = [
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg', 'invalid')}"
        for error in exc.errors()
    ]
    return _error_response(
        422,
        "validation_error",
        "Invalid request: " + "; ".join(problems),
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    logger.warning(f"Rate limit exceeded for {request.client.host if request.client else 'unknown'} on {request.url.path}")
    return _error_response(
        status.HTTP_429_TOO_MANY_REQUESTS,
        "rate_limited",
        f"Rate limit exceeded: {exc.detail}",
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    error = "not_found" if exc.status_code == status.HTTP_404_NOT_FOUND else "http_error"
    return _error_response(exc.status_code, error, str(exc.detail))


# Global exception handler to ensure CORS headers in error responses
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler that ensures CORS headers are included."""
    # Log full error details server-side
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    # For production, use generic error message
    if settings.DEBUG:
        error_detail = str(exc)
        error_detail += f"\n{traceback.format_exc()}"
    else:
        error_detail = "An internal error occurred. Please try again later."

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "internal_error", "message": error_detail},
        headers={
            "Access-Control-Allow-Origin": request.headers.get("origin", "*"),
            "Access-Control-Allow-Credentials": "true",
            "Access-Control-Allow-Methods": "*",
            "Access-Control-Allow-Headers": "*",
        }
    )


# Security headers middleware
@app.middleware("http")
async def security_headers_middleware(request: Request, call_next):
    """Add security headers to all responses."""
    response = await call_next(request)

    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

    return response

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Request logging middleware
app.add_middleware(RequestLogMiddleware)


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "AwardMatch API", "version": "1.0.0"}


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


# The browser client posts to /api/analyze-chance
app.include_router(api_router, prefix="/api")
