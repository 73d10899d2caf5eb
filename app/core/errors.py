"""
Error types for the launch dashboard.

Domain exceptions raised by the synchronization pipeline, plus the
standardized error envelope returned by the HTTP API.
"""

from datetime import datetime
from typing import Any, List, Optional
from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
import logging
import uuid

logger = logging.getLogger(__name__)


# Domain errors

class LaunchDataError(Exception):
    """Base class for synchronization pipeline errors."""


class SourceUnavailable(LaunchDataError):
    """The SpaceX API could not be reached or answered with an error status."""

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class MalformedRemoteRecord(LaunchDataError):
    """A fetched record could not be mapped to the local entity shape."""

    def __init__(self, kind: str, message: str, record_id: Optional[str] = None):
        super().__init__(f"Malformed {kind} record{f' {record_id}' if record_id else ''}: {message}")
        self.kind = kind
        self.record_id = record_id


class RecordPersistenceFailure(LaunchDataError):
    """A single enriched launch could not be written."""

    def __init__(self, launch_id: str, cause: Exception):
        super().__init__(f"Failed to persist launch {launch_id}: {cause}")
        self.launch_id = launch_id
        self.cause = cause


# API error envelope

class ErrorDetail(BaseModel):
    """Individual error detail following RFC 7807 Problem Details specification."""
    type: str = Field(description="Error type identifier")
    title: str = Field(description="Human-readable summary")
    detail: str = Field(description="Specific error message")
    instance: Optional[str] = Field(default=None, description="Request instance identifier")


class APIErrorBody(BaseModel):
    """Standardized API error response schema."""
    error: bool = Field(default=True, description="Always true for error responses")
    status: int = Field(description="HTTP status code")
    code: str = Field(description="Internal error code")
    message: str = Field(description="Human-readable error message")
    details: List[ErrorDetail] = Field(default_factory=list, description="Detailed error information")
    timestamp: str = Field(default_factory=lambda: datetime.utcnow().isoformat() + "Z")
    request_id: str = Field(default_factory=lambda: str(uuid.uuid4()))


class APIError(HTTPException):
    """Exception carrying a standardized error response."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: Optional[List[ErrorDetail]] = None,
        headers: Optional[dict] = None,
    ):
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details or []
        super().__init__(status_code=status_code, detail=message, headers=headers)


class ErrorCodes:
    # Data and Validation Errors (400-499)
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Authentication and Authorization (401, 403)
    AUTHENTICATION_REQUIRED = "AUTHENTICATION_REQUIRED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    ACCESS_DENIED = "ACCESS_DENIED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"

    # Resource Errors (404)
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"

    # Server Errors (500-599)
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"
    DATA_SOURCE_ERROR = "DATA_SOURCE_ERROR"


def create_error_response(
    status_code: int,
    code: str,
    message: str,
    details: Optional[List[ErrorDetail]] = None,
    request: Optional[Request] = None,
    headers: Optional[dict] = None,
) -> JSONResponse:
    """Create standardized error response."""

    error_response = APIErrorBody(
        status=status_code,
        code=code,
        message=message,
        details=details or [],
    )

    if request:
        error_response.request_id = getattr(request.state, 'request_id', error_response.request_id)

    log = logger.error if status_code >= 500 else logger.info
    log(
        f"API Error: {code} - {message}",
        extra={
            "status_code": status_code,
            "error_code": code,
            "request_id": error_response.request_id,
        }
    )

    return JSONResponse(
        status_code=status_code,
        content=error_response.model_dump(),
        headers=headers,
    )


def validation_error_details(exc_info: Any) -> List[ErrorDetail]:
    """Convert Pydantic validation errors to standardized format."""
    details = []

    if hasattr(exc_info, 'errors'):
        for error in exc_info.errors():
            field_path = " -> ".join(str(loc) for loc in error.get('loc', []))
            details.append(ErrorDetail(
                type=error.get('type', 'validation_error'),
                title=f"Validation Error in {field_path}",
                detail=error.get('msg', 'Invalid value'),
                instance=field_path
            ))

    return details


# Standard error response factories
def not_found_error(resource: str, identifier: str = None) -> APIError:
    """Create standardized 404 error."""
    message = f"{resource} not found"
    if identifier:
        message += f": {identifier}"
    return APIError(status_code=404, code=ErrorCodes.RESOURCE_NOT_FOUND, message=message)


def authentication_error(message: str, code: str = ErrorCodes.AUTHENTICATION_REQUIRED) -> APIError:
    return APIError(
        status_code=401,
        code=code,
        message=message,
        headers={"WWW-Authenticate": "Bearer"},
    )


def access_denied_error(required_roles: List[str]) -> APIError:
    return APIError(
        status_code=403,
        code=ErrorCodes.ACCESS_DENIED,
        message=f"Insufficient permissions. Required role: {' or '.join(required_roles)}",
    )


def source_unavailable_error(exc: SourceUnavailable) -> APIError:
    """Create the 502 returned when a sync pass could not even start."""
    return APIError(
        status_code=502,
        code=ErrorCodes.DATA_SOURCE_ERROR,
        message=f"Synchronization failed: {exc}",
        details=[
            ErrorDetail(
                type="source_unavailable",
                title="SpaceX API unavailable",
                detail=str(exc),
                instance=exc.url,
            )
        ],
    )


# Exception handlers for FastAPI
async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Global handler for APIError exceptions."""
    return create_error_response(
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        details=exc.details,
        request=request,
        headers=exc.headers,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global handler for unhandled exceptions."""
    logger.exception("Unhandled exception in API", extra={"path": request.url.path})

    return create_error_response(
        status_code=500,
        code=ErrorCodes.INTERNAL_SERVER_ERROR,
        message="An unexpected error occurred. Please try again later.",
        request=request
    )


async def validation_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global handler for request validation exceptions."""
    return create_error_response(
        status_code=422,
        code=ErrorCodes.VALIDATION_ERROR,
        message="Request validation failed",
        details=validation_error_details(exc),
        request=request
    )
