"""Boundary translator: typed errors -> HTTP responses.

Learn: the only place in the app that knows status codes. Handlers log
the internal message (and store error text) and return just the safe
public message:

    {"error": {"code": "unauthorized", "message": "Token has expired"}}

401 responses carry WWW-Authenticate: Bearer.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from walletgate.errors import WalletGateError

logger = structlog.get_logger()


def error_response(status_code: int, code: str, message: str) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message}},
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers for domain errors, bad bodies and anything unexpected."""

    @app.exception_handler(WalletGateError)
    async def handle_walletgate_error(request: Request, exc: WalletGateError):
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "request.failed",
            path=request.url.path,
            method=request.method,
            status_code=exc.status_code,
            error=type(exc).__name__,
            reason=exc.message,
            **exc.detail,
        )
        return error_response(exc.status_code, exc.error_code, exc.public_message)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        fields = [
            ".".join(str(p) for p in err["loc"][1:]) for err in exc.errors() if err["loc"][1:]
        ]
        logger.info("request.invalid_body", path=request.url.path, fields=fields)
        message = f"Invalid fields: {', '.join(fields)}" if fields else "Invalid request"
        return error_response(400, "validation_error", message)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception(
            "request.crashed",
            path=request.url.path,
            method=request.method,
            error=type(exc).__name__,
        )
        return error_response(500, "server_error", "Internal server error")
