from typing import Any

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse


class AppError(Exception):
    """Base application error with consistent schema.

    Every request handler reports failure in the payload (``ok: false``) and
    keeps the HTTP transaction itself successful, so payment providers always
    receive a parseable response.
    """

    def __init__(
        self,
        message: str,
        code: str = "ERROR",
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)


class InvalidOrder(AppError):
    def __init__(self, message: str = "Invalid order", details: dict[str, Any] | None = None):
        super().__init__(message, code="INVALID_ORDER", details=details)


class MissingConfig(AppError):
    def __init__(self, message: str = "Missing configuration"):
        super().__init__(message, code="MISSING_CONFIG")


class ProviderApiError(AppError):
    def __init__(self, message: str = "Payment provider error", details: dict[str, Any] | None = None):
        super().__init__(message, code="PROVIDER_API_ERROR", details=details)


class MalformedWebhook(AppError):
    def __init__(self, message: str = "no resource"):
        super().__init__(message, code="MALFORMED_WEBHOOK")


class MissingOrderId(AppError):
    def __init__(self, message: str = "missing orderId"):
        super().__init__(message, code="MISSING_ORDER_ID")


class BadSignature(AppError):
    def __init__(self, message: str = "bad signature"):
        super().__init__(message, code="BAD_SIGNATURE")


class ValidationFailed(AppError):
    def __init__(self, message: str = "validate failed"):
        super().__init__(message, code="VALIDATION_FAILED")


class AmountMismatch(AppError):
    def __init__(self, message: str = "amount mismatch", details: dict[str, Any] | None = None):
        super().__init__(message, code="AMOUNT_MISMATCH", details=details)


class MissingHeaders(AppError):
    def __init__(self, message: str = "Missing expected headers", details: dict[str, Any] | None = None):
        super().__init__(message, code="MISSING_HEADERS", details=details)


class MissingTable(AppError):
    def __init__(self, name: str):
        super().__init__(f"Missing sheet: {name}", code="MISSING_TABLE", details={"table": name})


class UnauthorizedError(AppError):
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, code="UNAUTHORIZED")


class UnknownRequestType(AppError):
    def __init__(self, request_type: str):
        super().__init__(f"Unknown type: {request_type}", code="UNKNOWN_TYPE")


def failure_body(request: Request, message: str, code: str, details: dict[str, Any]) -> dict[str, Any]:
    body: dict[str, Any] = {
        "ok": False,
        "error": message,
        "code": code,
        "details": details,
    }
    if hasattr(request.state, "request_id"):
        body["request_id"] = request.state.request_id
    return body


def error_response(request: Request, exc: AppError) -> ORJSONResponse:
    return ORJSONResponse(
        status_code=status.HTTP_200_OK,
        content=failure_body(request, exc.message, exc.code, exc.details),
    )


async def app_exception_handler(request: Request, exc: AppError) -> ORJSONResponse:
    from sponsor_api.core.logging import get_logger
    get_logger(__name__).warning("request_failed", code=exc.code, error=exc.message, path=request.url.path)
    return error_response(request, exc)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> ORJSONResponse:
    return ORJSONResponse(
        status_code=status.HTTP_200_OK,
        content=failure_body(request, "Validation error", "VALIDATION_ERROR", {"errors": jsonable_encoder(exc.errors())}),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
    from sponsor_api.core.logging import get_logger
    get_logger(__name__).exception("unhandled_exception", exc_info=exc)
    return ORJSONResponse(
        status_code=status.HTTP_200_OK,
        content=failure_body(request, "Internal server error", "INTERNAL_ERROR", {}),
    )
