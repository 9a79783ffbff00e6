"""
Security and error-handling layer for the Form Portal API

Implements:
- Rate limiting (IP-based using slowapi)
- Security headers middleware with a per-request ID
- Request size validation
- Error responses for portal errors, HTTP errors and unhandled exceptions

Configuration comes from ``formportal.config``:
- RATE_LIMIT_PER_MINUTE: Requests per minute per IP (default: 100)
- SUBMIT_RATE_LIMIT: Limit for the submit endpoints (default: 20/minute)
- MAX_REQUEST_SIZE_MB: Maximum request body size in MB (default: 80)
- ENVIRONMENT: 'production' or 'development' (production adds HSTS)
"""

import ipaddress
import logging
import time
import uuid
from typing import Callable

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from formportal import config
from formportal.errors import PortalError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_RATE_LIMIT = f"{config.RATE_LIMIT_PER_MINUTE}/minute"


# =============================================================================
# Rate Limiter Setup
# =============================================================================

def _is_valid_ip(ip_str: str) -> bool:
    """Validate that a string is a valid IP address (IPv4 or IPv6)."""
    if not ip_str or len(ip_str) > 45:
        return False
    try:
        ipaddress.ip_address(ip_str)
        return True
    except ValueError:
        return False


def get_client_ip(request: Request) -> str:
    """
    Extract the client IP address from a request.

    X-Forwarded-For is read right to left past ``TRUSTED_PROXY_COUNT``
    proxies; anything further left may be spoofed.

    Returns:
        The client IP address, or "unknown" if not determinable
    """
    direct_ip = request.client.host if request.client else None

    if forwarded_for := request.headers.get("X-Forwarded-For"):
        if ips := [ip.strip() for ip in forwarded_for.split(",") if ip.strip()]:
            if len(ips) > config.TRUSTED_PROXY_COUNT:
                client_ip = ips[-(config.TRUSTED_PROXY_COUNT + 1)]
            else:
                client_ip = ips[0]

            if _is_valid_ip(client_ip):
                return client_ip
            logger.warning(
                "Invalid IP in X-Forwarded-For header: %r (direct_ip=%s)",
                client_ip[:50],
                direct_ip,
            )

    if real_ip := request.headers.get("X-Real-IP"):
        real_ip = real_ip.strip()
        if _is_valid_ip(real_ip):
            return real_ip
        logger.warning("Invalid X-Real-IP header: %r (direct_ip=%s)", real_ip[:50], direct_ip)

    return direct_ip if direct_ip and _is_valid_ip(direct_ip) else "unknown"


limiter = Limiter(
    key_func=get_client_ip,
    default_limits=[DEFAULT_RATE_LIMIT],
    storage_uri="memory://",
    strategy="fixed-window",
)


def rate_limit_submit():
    """Decorator for the submit endpoints."""
    return limiter.limit(config.SUBMIT_RATE_LIMIT)


# =============================================================================
# Security Headers Middleware
# =============================================================================

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Add security headers and an X-Request-ID to every response, and log
    each completed request.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        request.state.start_time = time.time()

        response = await call_next(request)

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if config.IS_PRODUCTION:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains; preload"
            )
        response.headers["X-Request-ID"] = request_id
        if not response.headers.get("Cache-Control"):
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, private"

        duration = time.time() - request.state.start_time
        logger.info(
            "Request completed: %s %s status=%s duration=%.3fs request_id=%s client_ip=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration,
            request_id,
            get_client_ip(request),
        )
        return response


# =============================================================================
# Request Size Limit Middleware
# =============================================================================

class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject bodies larger than MAX_REQUEST_SIZE_MB before they are parsed."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if content_length := request.headers.get("content-length"):
            try:
                size = int(content_length)
            except ValueError:
                return JSONResponse(
                    status_code=400,
                    content={"message": "Invalid Content-Length header"},
                )
            if size > config.MAX_REQUEST_SIZE_BYTES:
                return JSONResponse(
                    status_code=413,
                    content={
                        "message": (
                            "Request body too large. "
                            f"Maximum size is {config.MAX_REQUEST_SIZE_MB}MB."
                        )
                    },
                )

        return await call_next(request)


# =============================================================================
# Exception Handlers
# =============================================================================

def _response_headers(request: Request, allowed_origins: list[str]) -> dict[str, str]:
    request_id = getattr(request.state, "request_id", str(uuid.uuid4()))
    headers = {"X-Request-ID": request_id}
    origin = request.headers.get("origin", "")
    if origin in allowed_origins:
        headers["Access-Control-Allow-Origin"] = origin
        headers["Access-Control-Allow-Credentials"] = "true"
    return headers


def create_portal_exception_handler(allowed_origins: list[str]) -> Callable:
    """
    Map PortalError subclasses to ``{"message": ...}`` responses with the
    error's status code.  Validation failures also carry the offending
    ``role``; server-side failures are logged with their cause.
    """

    async def portal_exception_handler(request: Request, exc: PortalError) -> JSONResponse:
        headers = _response_headers(request, allowed_origins)
        content: dict[str, str] = {"message": exc.message, "request_id": headers["X-Request-ID"]}
        if isinstance(exc, ValidationError):
            content["role"] = exc.role
            logger.info(
                "Rejected submission on %s: role=%s reason=%s",
                request.url.path,
                exc.role,
                exc.reason,
            )
        elif exc.status_code >= 500:
            logger.error(
                "%s on %s request_id=%s cause=%r",
                type(exc).__name__,
                request.url.path,
                headers["X-Request-ID"],
                exc.__cause__,
            )
        return JSONResponse(status_code=exc.status_code, content=content, headers=headers)

    return portal_exception_handler


def create_secure_exception_handler(allowed_origins: list[str]) -> Callable:
    """
    Handle unhandled exceptions.  The response is always generic; the
    exception itself only goes to the log.
    """

    async def secure_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        headers = _response_headers(request, allowed_origins)
        request_id = headers["X-Request-ID"]
        logger.error(
            "Unhandled exception: %s: %s request_id=%s path=%s method=%s client_ip=%s",
            type(exc).__name__,
            exc,
            request_id,
            request.url.path,
            request.method,
            get_client_ip(request),
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={
                "message": "An internal server error occurred. Please try again later.",
                "request_id": request_id,
            },
            headers=headers,
        )

    return secure_exception_handler


def create_rate_limit_exceeded_handler(allowed_origins: list[str]) -> Callable:
    """Rate limit responses with CORS headers and a Retry-After hint."""

    async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        headers = _response_headers(request, allowed_origins)
        headers["Retry-After"] = "60"
        logger.warning(
            "Rate limit exceeded: client_ip=%s path=%s request_id=%s",
            get_client_ip(request),
            request.url.path,
            headers["X-Request-ID"],
        )
        return JSONResponse(
            status_code=429,
            content={
                "message": "Rate limit exceeded. Please slow down your requests.",
                "retry_after_seconds": 60,
                "request_id": headers["X-Request-ID"],
            },
            headers=headers,
        )

    return rate_limit_handler


def create_http_exception_handler(allowed_origins: list[str]) -> Callable:
    """HTTP exceptions rendered as ``{"message": ...}`` with CORS preserved."""

    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        headers = _response_headers(request, allowed_origins)
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": exc.detail, "request_id": headers["X-Request-ID"]},
            headers=headers,
        )

    return http_exception_handler


# =============================================================================
# Security Setup Function
# =============================================================================

def setup_security(app: FastAPI, allowed_origins: list[str]) -> None:
    """
    Configure rate limiting, security headers, request size limits and the
    exception handlers on ``app``.
    """
    app.state.limiter = limiter

    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestSizeLimitMiddleware)

    app.add_exception_handler(
        RateLimitExceeded, create_rate_limit_exceeded_handler(allowed_origins)
    )
    app.add_exception_handler(PortalError, create_portal_exception_handler(allowed_origins))
    app.add_exception_handler(
        StarletteHTTPException, create_http_exception_handler(allowed_origins)
    )
    app.add_exception_handler(Exception, create_secure_exception_handler(allowed_origins))

    logger.info(
        "Security middleware configured: rate_limit=%s, submit_rate_limit=%s, "
        "max_request_size=%sMB, environment=%s",
        DEFAULT_RATE_LIMIT,
        config.SUBMIT_RATE_LIMIT,
        config.MAX_REQUEST_SIZE_MB,
        config.ENVIRONMENT,
    )
