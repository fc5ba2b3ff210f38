"""
    Centralized exception handling for the FastAPI application.

    Every error leaves the service as the JSON envelope
    ``{"success": false, "message": ..., "failed"?: [...]}``.
"""
from typing import List, Optional

from fastapi import Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import logging

log = logging.getLogger(__name__)

class APIException(Exception):
    """Base class for API exceptions."""
    def __init__(self, status_code: int, detail: str, failed: Optional[List[str]] = None):
        self.status_code = status_code
        self.detail = detail
        self.failed = failed
        super().__init__(self.detail)

class ValidationError(APIException):
    """Bad MIME type, size, category or name. Raised before any storage call."""
    def __init__(self, detail: str, failed: Optional[List[str]] = None):
        super().__init__(status_code=400, detail=detail, failed=failed)

class TransformError(APIException):
    """Image bytes could not be decoded or re-encoded."""
    def __init__(self, detail: str):
        super().__init__(status_code=400, detail=detail)

class ImageNotFound(APIException):
    """Exception for when a stored image is not found."""
    def __init__(self, filename: str):
        super().__init__(status_code=404, detail=f"Image '{filename}' not found.")

class StorageError(APIException):
    """The storage backend rejected a write or delete."""
    def __init__(self, detail: str, failed: Optional[List[str]] = None):
        super().__init__(status_code=500, detail=detail, failed=failed)

class BackendUnavailable(APIException):
    """Storage credentials or client are not configured."""
    def __init__(self, detail: str = "Image storage is not configured."):
        super().__init__(status_code=503, detail=detail)

def error_envelope(message: str, failed: Optional[List[str]] = None) -> dict:
    body = {"success": False, "message": message}
    if failed is not None:
        body["failed"] = failed
    return body

async def api_exception_handler(request: Request, exc: APIException):
    """Handles API exceptions."""
    if exc.status_code >= 500:
        log.error(f"API Exception: {exc.detail}", exc_info=exc)
    else:
        log.warning("API Exception: %s", exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_envelope(exc.detail, exc.failed),
    )

async def http_exception_handler(request: Request, exc: HTTPException):
    """Handles FastAPI HTTP exceptions."""
    log.error(f"HTTP Exception: {exc.detail}", exc_info=exc)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_envelope(str(exc.detail)),
    )

async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Renders malformed request bodies as 400 envelopes instead of 422."""
    errors = exc.errors()
    fields = [".".join(str(part) for part in err.get("loc", [])) for err in errors]
    log.warning("Request validation failed: %s", fields)
    message = "Invalid request"
    if errors:
        message = f"Invalid request: {errors[0].get('msg', 'invalid value')} ({fields[0]})"
    return JSONResponse(status_code=400, content=error_envelope(message))

async def generic_exception_handler(request: Request, exc: Exception):
    """Handles all other exceptions."""
    log.error(f"Unhandled Exception: {str(exc)}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content=error_envelope("An unexpected error occurred."),
    )

def add_exception_handlers(app):
    """Adds exception handlers to the FastAPI app."""
    app.add_exception_handler(APIException, api_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
