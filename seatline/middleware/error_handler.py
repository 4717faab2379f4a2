"""Global exception handlers that map errors to the JSON error envelope."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException
from starlette.responses import JSONResponse

from seatline.utils.errors import AppError

logger = logging.getLogger(__name__)

TYPE_MAP = {
    400: "validation_error",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    429: "rate_limit",
}


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


def error_body(status: int, code: str, message: str, request_id: str) -> dict:
    return {
        "status": "error",
        "error": {
            "type": TYPE_MAP.get(status, "http_error" if status < 500 else "internal_error"),
            "code": code,
            "message": message,
            "request_id": request_id,
        },
    }


def _error_response(status: int, code: str, message: str, request_id: str) -> JSONResponse:
    return JSONResponse(status_code=status, content=error_body(status, code, message, request_id))


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
        return _error_response(exc.status_code, exc.code, exc.message, _request_id(request))

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        code = "MISSING_FIELDS" if any(e["type"] == "missing" for e in errors) else "INVALID_INPUT"
        messages = "; ".join(
            f"{'.'.join(str(part) for part in e['loc'])}: {e['msg']}" for e in errors
        )
        return _error_response(400, code, messages, _request_id(request))

    @app.exception_handler(HTTPException)
    async def http_error(request: Request, exc: HTTPException):
        code = TYPE_MAP.get(exc.status_code, "http_error").upper()
        return _error_response(exc.status_code, code, str(exc.detail), _request_id(request))

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return _error_response(500, "INTERNAL", "An unexpected error occurred", _request_id(request))
