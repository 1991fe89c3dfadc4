import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ticketbox.core.exceptions import SeatsUnavailableError, StateConflictError, TicketboxError
from ticketbox.schemas.common import ErrorResponse, SeatsUnavailableError as SeatsUnavailableBody

logger = logging.getLogger(__name__)


async def ticketbox_error_handler(request: Request, exc: TicketboxError) -> JSONResponse:
    body = ErrorResponse(error=exc.error, message=exc.message)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


async def seats_unavailable_handler(request: Request, exc: SeatsUnavailableError) -> JSONResponse:
    body = SeatsUnavailableBody(
        error=exc.error,
        message=exc.message,
        unavailable_seat_ids=exc.unavailable_seat_ids,
    )
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


async def state_conflict_handler(request: Request, exc: StateConflictError) -> JSONResponse:
    logger.error(
        "%s %s: %s (expected %d, modified %d)",
        request.method, request.url.path, exc.message, exc.expected, exc.modified,
    )
    return await ticketbox_error_handler(request, exc)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SeatsUnavailableError, seats_unavailable_handler)
    app.add_exception_handler(StateConflictError, state_conflict_handler)
    app.add_exception_handler(TicketboxError, ticketbox_error_handler)
