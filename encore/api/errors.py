"""
Maps the EncoreError taxonomy to HTTP responses.

Body shape: {"error": {"kind": ..., "message": ...}}
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..core.errors import (
    AccountRestrictedError,
    BusyError,
    ConfigurationError,
    EmptyResponseError,
    EncoreError,
    LimitExceededError,
    NotFoundError,
    PermissionDeniedError,
    ProviderError,
    TransportError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# First match wins, so subclasses come before their parents
STATUS_BY_ERROR: list[tuple[type[EncoreError], int]] = [
    (ValidationError, 400),
    (PermissionDeniedError, 403),
    (NotFoundError, 404),
    (BusyError, 409),
    (LimitExceededError, 409),
    (AccountRestrictedError, 502),
    (ProviderError, 502),
    (EmptyResponseError, 502),
    (ConfigurationError, 503),
    (TransportError, 503),
]


def status_for(error: EncoreError) -> int:
    for error_type, code in STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return code
    return 500


def error_body(error: EncoreError) -> dict:
    return {"error": {"kind": error.kind, "message": error.message}}


async def encore_error_handler(request: Request, exc: EncoreError) -> JSONResponse:
    code = status_for(exc)
    if code >= 500:
        logger.error("%s %s failed (%s): %s", request.method, request.url.path, exc.kind, exc)
    else:
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.kind, exc)
    return JSONResponse(status_code=code, content=error_body(exc))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(EncoreError, encore_error_handler)
