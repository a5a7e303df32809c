"""
ExLab - Error Handler Middleware
Consistent error response format
"""

import traceback
from typing import Callable

import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from exlab.core.errors import (
    CatalogError,
    EventNotFoundError,
    LabNotFoundError,
    LifecycleError,
    NetworkBindError,
    ProvisioningError,
    ValidationError,
)

logger = structlog.get_logger(__name__)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Global error handler middleware.
    
    Catches all unhandled exceptions and returns consistent error responses.
    """
    
    async def dispatch(
        self,
        request: Request,
        call_next: Callable,
    ) -> Response:
        try:
            return await call_next(request)
        
        except Exception as exc:
            request_id = request.headers.get("X-Request-ID")
            
            error_code, status_code, detail = self._classify_error(exc)
            
            log = logger.warning if status_code < 500 else logger.error
            log(
                "Request failed",
                error=str(exc),
                error_type=type(exc).__name__,
                path=request.url.path,
                method=request.method,
                request_id=request_id,
                traceback=traceback.format_exc() if status_code >= 500 else None,
            )
            
            return JSONResponse(
                status_code=status_code,
                content={
                    "error": error_code,
                    "detail": detail,
                    "request_id": request_id,
                },
            )
    
    def _classify_error(self, exc: Exception) -> tuple[str, int, str]:
        """
        Classify exception and return error details.
        
        Returns:
            Tuple of (error_code, status_code, detail)
        """
        if isinstance(exc, ValidationError):
            return "VALIDATION_ERROR", 400, str(exc)
        
        if isinstance(exc, (LabNotFoundError, EventNotFoundError)):
            return "NOT_FOUND", 404, str(exc)
        
        if isinstance(exc, NetworkBindError):
            return "NETWORK_BIND_ERROR", 409, str(exc)
        
        if isinstance(exc, ProvisioningError):
            return "PROVISIONING_ERROR", 502, str(exc)
        
        if isinstance(exc, LifecycleError):
            return "LIFECYCLE_ERROR", 502, str(exc)
        
        if isinstance(exc, CatalogError):
            return "CATALOG_ERROR", 503, str(exc)
        
        # Default: internal server error
        return "INTERNAL_ERROR", 500, "An unexpected error occurred"
