"""Exception handlers for structured error responses."""

import logging
from fastapi import Request
from fastapi.responses import JSONResponse
from ..core.error_reporter import report_api_error
from ..exceptions import ErrorCode, OttowriteException

logger = logging.getLogger(__name__)


def _request_headers(request: Request) -> dict:
    return dict(request.headers)


async def ottowrite_exception_handler(request: Request, exc: OttowriteException) -> JSONResponse:
    """
    Convert domain exceptions to ``{error, message, details}`` JSON.

    Client errors are logged at INFO; server errors are also reported to
    the error classifier.
    """
    extra = {
        "error_code": exc.error_code.value,
        "path": request.url.path,
        "method": request.method,
        "status_code": exc.status_code,
    }
    if exc.status_code >= 500:
        logger.error(f"OttowriteException: {exc.error_code.value}", extra={**extra, "details": exc.details})
        report_api_error(
            exc,
            method=request.method,
            path=request.url.path,
            status_code=exc.status_code,
            headers=_request_headers(request),
            query_string=request.url.query,
        )
    else:
        logger.info(f"OttowriteException: {exc.error_code.value}", extra=extra)

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler: report the failure, answer 500 without internals."""
    logger.exception(
        "Unhandled exception",
        extra={"path": request.url.path, "method": request.method},
    )
    report_api_error(
        exc,
        method=request.method,
        path=request.url.path,
        status_code=500,
        headers=_request_headers(request),
        query_string=request.url.query,
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": ErrorCode.INTERNAL_ERROR.value,
            "message": "Internal server error",
            "details": {},
        },
    )
