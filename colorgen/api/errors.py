"""
Exception handlers

Every failure is answered with the same envelope:
    {"status": "fail", "error_code": ..., "message": ..., "details": [...]}
"""
import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..core.exceptions import ErrorCode, GenerationError

logger = logging.getLogger(__name__)

HTTP_STATUS_CODES = {
    400: ErrorCode.VALIDATION_ERROR,
    401: ErrorCode.TOKEN_INVALID,
    403: ErrorCode.PERMISSION_DENIED,
    404: ErrorCode.TASK_NOT_FOUND,
    409: ErrorCode.TASK_ALREADY_TERMINAL,
    413: ErrorCode.FILE_TOO_LARGE,
}


def error_response(status_code: int, error_code: str, message: str, details=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder({
            "status": "fail",
            "error_code": error_code,
            "message": message,
            "details": details or [],
        })
    )


async def generation_error_handler(request: Request, exc: GenerationError):
    if exc.http_status >= 500:
        logger.error(f"[API] {request.method} {request.url.path}: {exc.error_code.value} {exc.message}")
    return error_response(exc.http_status, exc.error_code.value, exc.message, exc.details)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = [
        {
            "field": ".".join(str(part) for part in err.get("loc", []) if part != "body"),
            "message": err.get("msg", "")
        }
        for err in exc.errors()
    ]
    return error_response(400, ErrorCode.VALIDATION_ERROR.value, "Invalid request data", details)


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    code = HTTP_STATUS_CODES.get(exc.status_code, ErrorCode.INTERNAL_SERVER_ERROR)
    return error_response(exc.status_code, code.value, str(exc.detail))


async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"[API] Store failure on {request.method} {request.url.path}: {exc}", exc_info=True)
    return error_response(500, ErrorCode.STORE_UNAVAILABLE.value, "Data store unavailable")


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"[API] Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return error_response(500, ErrorCode.INTERNAL_SERVER_ERROR.value, "Internal server error")


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(GenerationError, generation_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
