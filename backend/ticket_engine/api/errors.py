"""
Domain error -> HTTP response mapping.

Every TicketingError becomes {"error": {"code", "message", ...details}}.
Request validation errors keep FastAPI's default 422 body.
"""

from typing import Any, Callable, Coroutine

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.responses import Response

from ticket_engine.core.logging import get_logger
from ticket_engine.domain.errors import ConsistencyError, ErrorCode, TicketingError

logger = get_logger(__name__)

ExceptionHandler = Callable[[Request, Any], Coroutine[Any, Any, Response]]

STATUS_CODES: dict[ErrorCode, int] = {
    ErrorCode.CAPACITY_EXCEEDED: status.HTTP_409_CONFLICT,
    ErrorCode.PROMO_INVALID: status.HTTP_400_BAD_REQUEST,
    ErrorCode.SEAT_UNAVAILABLE: status.HTTP_409_CONFLICT,
    ErrorCode.EVENT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.EVENT_NOT_ACTIVE: status.HTTP_409_CONFLICT,
    ErrorCode.PAYMENT_NOT_CONFIRMED: status.HTTP_402_PAYMENT_REQUIRED,
    ErrorCode.INVALID_PURCHASE: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.INVALID_EVENT: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.INVALID_PROMO: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.PROMO_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.DUPLICATE_PROMO: status.HTTP_409_CONFLICT,
    ErrorCode.TICKET_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.ALREADY_CLAIMED: status.HTTP_409_CONFLICT,
    ErrorCode.HOLD_EXPIRED: status.HTTP_409_CONFLICT,
    ErrorCode.GATE_ACCESS_DENIED: status.HTTP_403_FORBIDDEN,
    ErrorCode.GATE_CODE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.INVALID_GATE_CODE: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.CONSISTENCY_VIOLATION: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def error_body(code: str, message: str, **details) -> dict:
    return {"error": {"code": code, "message": message, **details}}


async def ticketing_error_handler(request: Request, exc: TicketingError) -> JSONResponse:
    status_code = STATUS_CODES.get(exc.code, status.HTTP_400_BAD_REQUEST)
    return JSONResponse(status_code=status_code, content=error_body(exc.code.value, exc.message, **exc.details))


async def consistency_error_handler(request: Request, exc: ConsistencyError) -> JSONResponse:
    logger.exception("consistency_violation", error=str(exc), exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(ErrorCode.CONSISTENCY_VIOLATION.value, "Internal consistency error"),
    )


EXCEPTION_HANDLERS: dict[type[Exception], ExceptionHandler] = {
    ConsistencyError: consistency_error_handler,
    TicketingError: ticketing_error_handler,
}


def register_exception_handlers(app: FastAPI) -> None:
    for exception_class, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exception_class, handler)
