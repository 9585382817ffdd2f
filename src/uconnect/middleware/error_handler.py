"""Global error handlers: every failure leaves as ``{"ok": false, "code", "detail"}``."""

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from uconnect.errors import AppError

logger = structlog.get_logger()


def _error_body(code: str, detail: object) -> dict[str, object]:
    return {"ok": False, "code": code, "detail": detail}


def setup_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        """Map recognised domain errors to their status and stable code."""
        if exc.status_code >= 500:
            logger.error("request_failed", path=request.url.path, method=request.method, code=exc.code)
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.code, exc.message))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Handle framework HTTP exceptions (404 route, 405 method, ...)."""
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body("http_error", exc.detail),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        """Missing or malformed request fields are a 400 validation error."""
        content = _error_body("validation_error", "Missing or invalid fields")
        content["errors"] = jsonable_encoder(exc.errors())
        return JSONResponse(status_code=400, content=content)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions; never leak internals."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(status_code=500, content=_error_body("server_error", "Server error"))
