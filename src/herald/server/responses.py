"""JSON envelope shared by every API route.

Responses look like {"success": bool, "data": ..., "error": str | None,
"message": str | None}; failures also carry a stable error "code".
"""

from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from herald.errors import (
    AuthenticationError,
    ConfigurationError,
    DeliveryError,
    DeliveryErrorKind,
    HeraldError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from herald.scheduling.lifecycle import OperationResult


def status_for_error(error: HeraldError) -> int:
    match error:
        case ValidationError():
            return 400
        case AuthenticationError():
            return 401
        case NotFoundError():
            return 404
        case InvalidStateError():
            return 409
        case ConfigurationError():
            return 503
        case DeliveryError(kind=DeliveryErrorKind.AUTH_INVALID):
            return 401
        case DeliveryError(kind=DeliveryErrorKind.RATE_LIMITED):
            return 429
        case DeliveryError():
            return 502
    return 500


def envelope(data: Any = None, message: str | None = None) -> dict[str, Any]:
    return {"success": True, "data": data, "error": None, "message": message}


def error_response(error: HeraldError) -> JSONResponse:
    content: dict[str, Any] = {
        "success": False,
        "data": None,
        "error": error.message,
        "message": None,
        "code": error.code,
    }
    if isinstance(error, DeliveryError):
        content["kind"] = error.kind.value
    headers = None
    if isinstance(error, DeliveryError) and error.retry_after is not None:
        headers = {"Retry-After": str(error.retry_after)}
    return JSONResponse(status_code=status_for_error(error), content=content, headers=headers)


def result_response(
    result: OperationResult[Any],
    *,
    message: str | None = None,
    status_code: int = 200,
) -> JSONResponse:
    """Translate a lifecycle result into an HTTP response."""
    if not result.ok:
        assert result.error is not None
        return error_response(result.error)
    value = result.value
    if hasattr(value, "to_dict"):
        data = value.to_dict()
    elif isinstance(value, list):
        data = [item.to_dict() for item in value]
    else:
        data = value
    return JSONResponse(status_code=status_code, content=envelope(data, message))


async def herald_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, HeraldError)
    return error_response(exc)


async def request_validation_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, RequestValidationError)
    details = [
        {
            "field": ".".join(str(part) for part in error["loc"] if part != "body"),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "data": None,
            "error": "Validation failed",
            "message": None,
            "code": ValidationError.code,
            "details": details,
        },
    )
