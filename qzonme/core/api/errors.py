"""
Standardized error response handling for the QzonMe API.

Every error leaves the API as ``{"error": {"message", ...}}`` so clients
can rely on one shape.
"""

from __future__ import annotations

from typing import Any
from fastapi import HTTPException, status


def error_response(
    message: str,
    details: list[str] | None = None,
    field: str | None = None,
    code: str | None = None
) -> dict[str, Any]:
    """
    Create a standardized error response.

    Args:
        message: Human-readable error summary
        details: List of specific error details (optional)
        field: Field name that caused the error (optional)
        code: Error code for programmatic handling (optional)

    Returns:
        Standardized error response dictionary

    Examples:
        >>> error_response("No file uploaded", code="MISSING_FILE")
        {'error': {'message': 'No file uploaded', 'code': 'MISSING_FILE'}}
    """
    error_dict: dict[str, Any] = {"message": message}

    if details is not None:
        error_dict["details"] = details

    if field is not None:
        error_dict["field"] = field

    if code is not None:
        error_dict["code"] = code

    return {"error": error_dict}


def raise_error(
    message: str,
    status_code: int = status.HTTP_400_BAD_REQUEST,
    details: list[str] | None = None,
    field: str | None = None,
    code: str | None = None
) -> None:
    """
    Raise an HTTPException with standardized error format.

    Raises:
        HTTPException: With standardized error response format
    """
    raise HTTPException(
        status_code=status_code,
        detail=error_response(message, details, field, code)
    )


def validation_error(details: list[str], field: str | None = None) -> None:
    """Raise a validation error with details."""
    raise_error(
        message="Validation failed",
        status_code=status.HTTP_400_BAD_REQUEST,
        details=details,
        field=field,
        code="VALIDATION_ERROR"
    )


def upload_failed_error() -> None:
    """Raise a generic upload failure (no host details are exposed)."""
    raise_error(
        message="Image upload failed",
        status_code=status.HTTP_502_BAD_GATEWAY,
        code="UPLOAD_FAILED"
    )


def storage_error(operation: str) -> None:
    """Raise a local storage operation error."""
    raise_error(
        message=f"Storage operation failed: {operation}",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        code="STORAGE_ERROR"
    )
