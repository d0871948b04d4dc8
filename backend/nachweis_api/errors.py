from __future__ import annotations

from enum import Enum
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse


class ErrorCode(str, Enum):
    VALIDATION = "VALIDATION"
    DUPLICATE_NUMBER = "DUPLICATE_NUMBER"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    TRANSPORT = "TRANSPORT"
    PARTIAL = "PARTIAL"


class NachweisError(HTTPException):
    """HTTP error carrying a machine readable code next to the detail text."""

    code: ErrorCode = ErrorCode.VALIDATION
    status_code_default: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str, **extra: Any) -> None:
        super().__init__(status_code=self.status_code_default, detail=detail)
        self.extra = extra


class ValidationFailed(NachweisError):
    code = ErrorCode.VALIDATION
    status_code_default = status.HTTP_400_BAD_REQUEST


class DuplicateNumberError(NachweisError):
    code = ErrorCode.DUPLICATE_NUMBER
    status_code_default = status.HTTP_409_CONFLICT

    def __init__(self, number: int) -> None:
        super().__init__(f"Sie haben bereits einen Nachweis mit der Nummer {number}.", number=number)


class ForbiddenError(NachweisError):
    code = ErrorCode.FORBIDDEN
    status_code_default = status.HTTP_403_FORBIDDEN


class NotFoundError(NachweisError):
    code = ErrorCode.NOT_FOUND
    status_code_default = status.HTTP_404_NOT_FOUND


class ConflictError(NachweisError):
    code = ErrorCode.CONFLICT
    status_code_default = status.HTTP_409_CONFLICT


async def nachweis_error_handler(_request: Request, exc: NachweisError) -> JSONResponse:
    payload: dict[str, Any] = {"detail": exc.detail, "code": exc.code.value}
    payload.update(exc.extra)
    return JSONResponse(payload, status_code=exc.status_code)
