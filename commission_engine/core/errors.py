from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ErrorDetail(BaseModel):
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None


class AppError(Exception):
    def __init__(self, code: str, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code


class NotFoundError(AppError):
    def __init__(self, message: str = "Resource not found") -> None:
        super().__init__(code="not_found", message=message, status_code=404)


class BadRequestError(AppError):
    def __init__(self, message: str = "Bad request") -> None:
        super().__init__(code="bad_request", message=message, status_code=400)


class UnauthorizedError(AppError):
    def __init__(self, message: str = "Caller identity is required") -> None:
        super().__init__(code="unauthorized", message=message, status_code=401)


class InvalidPeriodError(AppError):
    def __init__(self, period: object, reason: str = "Period must be formatted as YYYY-MM") -> None:
        super().__init__(code="invalid_period", message=f"{reason}: {period!r}", status_code=400)
        self.period = period


class UpstreamUnavailableError(AppError):
    def __init__(self, message: str = "Upstream data source unavailable") -> None:
        super().__init__(code="upstream_unavailable", message=message, status_code=502)


class PersistenceError(Exception):
    """A ledger write failed for one station.

    Not an AppError: batch calculation collects these per station instead of
    turning them into an HTTP response.
    """

    def __init__(self, station_id: str, message: str) -> None:
        super().__init__(message)
        self.station_id = station_id
        self.message = message


class ErrorEnvelope(BaseModel):
    error: ErrorDetail


def app_error_handler(_: Request, exc: AppError) -> JSONResponse:
    envelope = ErrorEnvelope(error=ErrorDetail(code=exc.code, message=exc.message))
    return JSONResponse(status_code=exc.status_code, content=envelope.model_dump())


def validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    envelope = ErrorEnvelope(
        error=ErrorDetail(
            code="validation_error",
            message="Validation error",
            details={"errors": exc.errors()},
        )
    )
    return JSONResponse(status_code=422, content=envelope.model_dump())
