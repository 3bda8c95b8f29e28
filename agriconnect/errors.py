import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from .access import PolicyViolation
from .order_fsm import InvalidTransition


log = logging.getLogger(__name__)


async def policy_violation_handler(request: Request, exc: PolicyViolation) -> JSONResponse:
    return JSONResponse(status_code=403, content={"detail": "not_permitted"})


async def invalid_transition_handler(request: Request, exc: InvalidTransition) -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content={"detail": "invalid_transition", "from": exc.current, "to": exc.target},
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    log.info("constraint violation on %s %s: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(status_code=400, content={"detail": "constraint_violation"})


def install(app) -> None:
    app.add_exception_handler(PolicyViolation, policy_violation_handler)
    app.add_exception_handler(InvalidTransition, invalid_transition_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
