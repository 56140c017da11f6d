"""
Error taxonomy and the ``{success, data | error}`` response envelope.

Handlers raise an ``ApiError`` subclass; the exception handlers registered in
``store_api.main`` turn it into a JSON envelope with the matching status code.
"""
from __future__ import annotations

from typing import Any

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


class ApiError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ApiError):
    """Missing or malformed input, or a business-rule conflict on create."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class Unauthorized(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class Forbidden(ApiError):
    """Authenticated, but the caller does not own the target resource."""
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Unauthorized"


class NotFound(ApiError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class InternalError(ApiError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Unknown error"


class NotImplementedYet(ApiError):
    """Stubbed integration."""
    status_code = status.HTTP_501_NOT_IMPLEMENTED
    default_message = "Not implemented"


# ── Envelope ─────────────────────────────────────────────────────────────────

def ok(data: Any = None, status_code: int = status.HTTP_200_OK, **extra: Any) -> JSONResponse:
    """Success envelope. ``data`` is omitted when None and no extras demand it."""
    content: dict[str, Any] = {"success": True}
    if data is not None or not extra:
        content["data"] = data
    content.update(extra)
    return JSONResponse(content=jsonable_encoder(content), status_code=status_code)


def fail(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        content={"success": False, "error": message},
        status_code=status_code,
    )
