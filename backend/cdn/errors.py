"""Error taxonomy shared by storage, uploads, serving and embeds.

Every externally-facing operation raises ``CDNError`` with one ``ErrorKind``.
Routes never see backend-specific exceptions (botocore, aiohttp, SQLAlchemy).
"""
import logging
from enum import Enum
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    FILE_TYPE_NOT_ALLOWED = "FILE_TYPE_NOT_ALLOWED"

    INVALID_DATA = "INVALID_DATA"
    MISSING_DATA = "MISSING_DATA"

    DATABASE_ERROR = "DATABASE_ERROR"
    UNKNOWN_STORE = "UNKNOWN_STORE"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"

    NOT_FOUND = "NOT_FOUND"
    PROCESSING_ERROR = "PROCESSING_ERROR"
    STORAGE_ERROR = "STORAGE_ERROR"

    META_PARSE_FAILED = "META_PARSE_FAILED"
    MISSING_CONTENT_TYPE = "MISSING_CONTENT_TYPE"
    CANNOT_PROXY = "CANNOT_PROXY"
    INTERNAL_REQUEST_FAILED = "INTERNAL_REQUEST_FAILED"
    REQUEST_FAILED = "REQUEST_FAILED"
    VALIDATION_FAILED = "VALIDATION_FAILED"


STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.FILE_TOO_LARGE: 413,
    ErrorKind.FILE_TYPE_NOT_ALLOWED: 400,
    ErrorKind.INVALID_DATA: 400,
    ErrorKind.MISSING_DATA: 400,
    ErrorKind.DATABASE_ERROR: 500,
    ErrorKind.UNKNOWN_STORE: 400,
    ErrorKind.UNKNOWN_ERROR: 500,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.PROCESSING_ERROR: 500,
    ErrorKind.STORAGE_ERROR: 500,
    ErrorKind.META_PARSE_FAILED: 500,
    ErrorKind.MISSING_CONTENT_TYPE: 400,
    ErrorKind.CANNOT_PROXY: 400,
    ErrorKind.INTERNAL_REQUEST_FAILED: 500,
    ErrorKind.REQUEST_FAILED: 400,
    ErrorKind.VALIDATION_FAILED: 400,
}


class CDNError(Exception):
    """A failure from the closed ``ErrorKind`` set, with its transport status."""

    def __init__(self, kind: ErrorKind, **payload: Any):
        self.kind = kind
        self.payload = payload
        super().__init__(str(self))

    @classmethod
    def file_too_large(cls, max_size: int) -> "CDNError":
        return cls(ErrorKind.FILE_TOO_LARGE, max_size=max_size)

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.kind.value, **self.payload}

    def __str__(self) -> str:
        if self.payload:
            details = ", ".join(f"{k}={v}" for k, v in self.payload.items())
            return f"{self.kind.value} ({details})"
        return self.kind.value


async def cdn_error_handler(request: Request, exc: CDNError) -> JSONResponse:
    """Render a CDNError as ``{"error": KIND, ...payload}``."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed query or path parameters: MISSING_DATA if one is absent, else INVALID_DATA."""
    missing = any(error.get("type") == "missing" for error in exc.errors())
    kind = ErrorKind.MISSING_DATA if missing else ErrorKind.INVALID_DATA
    return await cdn_error_handler(request, CDNError(kind))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything that escaped the taxonomy is reported as UNKNOWN_ERROR."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return await cdn_error_handler(request, CDNError(ErrorKind.UNKNOWN_ERROR))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CDNError, cdn_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
