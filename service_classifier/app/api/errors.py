"""Error-to-status mapping and the structured error body."""

import time
from typing import Dict, List, Optional, Tuple

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
import structlog

from ..runtime.errors import ErrorKind, PredictionError

logger = structlog.get_logger("classifier.api.errors")

# ErrorKind -> (HTTP status, error code)
STATUS_BY_KIND: Dict[ErrorKind, Tuple[int, str]] = {
    ErrorKind.INVALID_INPUT: (400, "INVALID_ARGUMENT"),
    ErrorKind.INFERENCE: (500, "MODEL_ERROR"),
    ErrorKind.UNKNOWN_CLASS: (500, "UNKNOWN_CLASS"),
    ErrorKind.NOT_READY: (503, "SERVICE_UNAVAILABLE"),
    ErrorKind.MODEL_LOAD: (503, "SERVICE_UNAVAILABLE"),
}

_VALUE_ERROR_PREFIX = "Value error, "


class ErrorResponse(BaseModel):
    """Body returned for every failed request."""
    error_code: str = Field(..., description="Stable machine-readable error code")
    message: Optional[str] = Field(None, description="Human-readable message")
    timestamp: int = Field(..., description="Epoch milliseconds")
    errors: Optional[List[str]] = Field(None, description="Field-level messages")


def error_response(
    status_code: int,
    error_code: str,
    message: Optional[str] = None,
    errors: Optional[List[str]] = None
) -> JSONResponse:
    body = ErrorResponse(
        error_code=error_code,
        message=message,
        timestamp=int(time.time() * 1000),
        errors=errors,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump())


def prediction_error_response(error: PredictionError) -> JSONResponse:
    """Translate a classified core failure into its HTTP response."""
    status_code, error_code = STATUS_BY_KIND[error.kind]
    return error_response(status_code, error_code, error.message)


async def handle_prediction_error(request: Request, exc: PredictionError) -> JSONResponse:
    log = logger.warning if exc.is_client_error else logger.error
    log("Request failed", path=request.url.path, kind=exc.kind.value, error=exc.message)
    return prediction_error_response(exc)


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = exc.errors()
    if any(problem.get("type") == "json_invalid" for problem in problems):
        logger.warning("Invalid request provided", path=request.url.path, reason="json_invalid")
        return error_response(400, "INVALID_REQUEST", "Malformed JSON request body")

    messages = []
    for problem in problems:
        message = str(problem.get("msg", "Invalid value"))
        if message.startswith(_VALUE_ERROR_PREFIX):
            message = message[len(_VALUE_ERROR_PREFIX):]
        messages.append(message)

    logger.warning("Invalid request provided", path=request.url.path, errors=messages)
    return error_response(400, "INVALID_REQUEST", errors=messages)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unexpected error occurred", path=request.url.path)
    return error_response(500, "INTERNAL_ERROR", "An unexpected error occurred")


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PredictionError, handle_prediction_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
