"""
Middleware for company (tenant) context
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from uuid import UUID
import logging

logger = logging.getLogger(__name__)


class CompanyContextMiddleware(BaseHTTPMiddleware):
    """
    Middleware that extracts company_id from X-Company-ID header
    and sets it on request.state for use in endpoint handlers
    """

    # Paths that don't require company context
    EXEMPT_PREFIXES = [
        "/docs",
        "/redoc",
        "/openapi.json",
        "/auth/",
        "/admin/",
        "/health",
        "/companies",
    ]

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if path == "/" or any(path.startswith(prefix) for prefix in self.EXEMPT_PREFIXES):
            return await call_next(request)

        # Skip for OPTIONS requests (CORS preflight)
        if request.method == "OPTIONS":
            return await call_next(request)

        company_header = request.headers.get("X-Company-ID")

        if not company_header:
            return JSONResponse(
                content={"detail": "Missing X-Company-ID header"},
                status_code=status.HTTP_400_BAD_REQUEST
            )

        try:
            company_id = UUID(company_header)
        except ValueError:
            return JSONResponse(
                content={"detail": "Invalid X-Company-ID format. Must be a valid UUID"},
                status_code=status.HTTP_400_BAD_REQUEST
            )

        request.state.company_id = company_id
        logger.debug(f"Request to {path} with company_id: {company_id}")

        response = await call_next(request)
        response.headers["X-Company-ID"] = str(company_id)
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add security headers for production
    """

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        return response
