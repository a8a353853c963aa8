"""
trustbadge.security — Shared HTTP plumbing: logging, auth, rate limiting, errors.

Used by trustbadge.api. The core engine only ever talks to the standard
``logging`` module; this is where the ``trustbadge`` logger gets its JSON
formatting and request ids.
"""

import hmac
import logging
import os
import time
import uuid
from contextvars import ContextVar
from typing import Optional

from fastapi import HTTPException, Request, Response, Security
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import APIKeyHeader
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from trustbadge.errors import StoreError, ValidationError
from trustbadge.models import VerifierContext

# ─── Context var for request ID ────────────────────────────────────

request_id_var: ContextVar[str] = ContextVar("request_id", default="")


# ─── Structured JSON logging ──────────────────────────────────────

class RequestIdFilter(logging.Filter):
    def filter(self, record):
        record.request_id = request_id_var.get("")
        return True


def setup_structured_logging(level: str = "INFO") -> logging.Logger:
    """Configure JSON structured logging with request IDs."""
    from pythonjsonlogger.json import JsonFormatter

    logger = logging.getLogger("trustbadge")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = JsonFormatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s",
            rename_fields={"asctime": "timestamp", "levelname": "level"},
        )
        handler.setFormatter(formatter)
        handler.addFilter(RequestIdFilter())
        logger.addHandler(handler)

    return logger


logger = setup_structured_logging(os.environ.get("LOG_LEVEL", "INFO"))


# ─── Rate Limiter (slowapi) ───────────────────────────────────────

limiter = Limiter(key_func=get_remote_address)


def retry_after_seconds(exc: RateLimitExceeded) -> str:
    """Length of the exceeded limit's window in seconds, "60" when unknown."""
    try:
        return str(int(exc.limit.limit.get_expiry()))
    except (AttributeError, TypeError, ValueError):
        return "60"


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """Custom 429 handler."""
    return Response(
        content='{"detail":"Rate limit exceeded. Try again later."}',
        status_code=429,
        media_type="application/json",
        headers={"Retry-After": retry_after_seconds(exc)},
    )


# ─── API Key Auth ─────────────────────────────────────────────────

_api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def require_api_key(
    request: Request,
    api_key: Optional[str] = Security(_api_key_header),
) -> str:
    """Guard for issue/revoke/list. Subject-level authorization is upstream."""
    settings = getattr(request.app.state, "settings", None)
    admin_key = getattr(settings, "admin_api_key", "") or os.environ.get("ADMIN_API_KEY", "")
    if not admin_key:
        raise HTTPException(status_code=503, detail="API key access not configured")
    if not api_key:
        log_auth_failure(_client_ip(request), "missing api key", request.url.path)
        raise HTTPException(status_code=401, detail="Missing X-API-Key header")
    if not hmac.compare_digest(api_key, admin_key):
        log_auth_failure(_client_ip(request), "invalid api key", request.url.path)
        raise HTTPException(status_code=403, detail="Invalid API key")
    return "admin"


def log_auth_failure(ip: str, reason: str, endpoint: str = ""):
    logger.warning("Auth failure: %s from %s on %s", reason, ip, endpoint,
                   extra={"event": "auth_failure", "ip": ip, "reason": reason, "endpoint": endpoint})


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def verifier_context(request: Request) -> VerifierContext:
    """Audit context for a verification request."""
    return VerifierContext(
        ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
        platform_id=request.headers.get("x-platform-id"),
    )


# ─── Request ID + Logging Middleware ──────────────────────────────

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Inject request ID, log requests, add security headers."""

    async def dispatch(self, request: Request, call_next):
        rid = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])
        request_id_var.set(rid)

        t0 = time.time()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("Unhandled error", extra={"path": request.url.path})
            raise

        elapsed_ms = round((time.time() - t0) * 1000, 1)
        logger.info(
            "request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": elapsed_ms,
            },
        )

        response.headers["X-Request-ID"] = rid
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response


# ─── CORS configuration ──────────────────────────────────────────

def configure_cors(app, allowed_origins: Optional[list[str]] = None):
    """Add CORS middleware. Verification is public, so the default is open."""
    origins = allowed_origins
    if not origins:
        env_origins = os.environ.get("ALLOWED_ORIGINS", "")
        if env_origins:
            origins = [o.strip() for o in env_origins.split(",") if o.strip()]
        else:
            origins = ["*"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )


# ─── Exception handlers (never leak internals) ───────────────────

async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": exc.to_dict()})


async def store_error_handler(request: Request, exc: StoreError):
    logger.error("Store failure on %s: %s", request.url.path, exc,
                 extra={"event": "store_error"})
    return JSONResponse(status_code=503, content={"detail": "Badge store unavailable"})


async def generic_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception on %s: %s", request.url.path, type(exc).__name__)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# ─── Apply all security to a FastAPI app ──────────────────────────

def apply_security(app, allowed_origins: Optional[list[str]] = None):
    """One-call setup: CORS, rate limiting, logging middleware, error handlers."""
    configure_cors(app, allowed_origins)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(StoreError, store_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
    app.add_middleware(RequestLoggingMiddleware)
