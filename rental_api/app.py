"""
FastAPI application factory (``rental_api.app``).

Responsibility
--------------
Wires configuration, database, clock and notifier into ``app.state`` and
mounts the routers.  Translates the ``rental_kernel.exceptions`` categories
into HTTP status codes with a ``{"error", "code"}`` body.

Failure modes
-------------
* NotFoundError -> 404, InvalidInputError and body validation -> 400,
  AccessDeniedError -> 403, ConflictError -> 409, anything else in the
  taxonomy -> 500.  SQLAlchemy errors -> 500 with code INTERNAL_ERROR; the
  database message is logged, never returned.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Callable

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rental_api.routers import payments, termination_policies, termination_requests
from rental_batch.scheduler import build_scheduler
from rental_config import get_active_config
from rental_config.schema import RentalConfig
from rental_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url
from rental_kernel.domain.clock import Clock, SystemClock
from rental_kernel.exceptions import (
    AccessDeniedError,
    ConflictError,
    InternalError,
    InvalidInputError,
    NotFoundError,
    RentalKernelError,
)
from rental_kernel.logging_config import configure_logging, get_logger
from rental_kernel.services.notifications import LoggingNotificationSink, Notifier
from rental_modules.termination.models import DEFAULT_POLICY, default_policy_from_config

logger = get_logger("api")

_STATUS_BY_CATEGORY: tuple[tuple[type[RentalKernelError], int], ...] = (
    (NotFoundError, 404),
    (InvalidInputError, 400),
    (AccessDeniedError, 403),
    (ConflictError, 409),
)


def status_for(exc: RentalKernelError) -> int:
    for category, status in _STATUS_BY_CATEGORY:
        if isinstance(exc, category):
            return status
    return 500


async def rental_error_handler(request: Request, exc: RentalKernelError) -> JSONResponse:
    status = status_for(exc)
    extra = {"path": request.url.path, "code": exc.code, "status": status}
    if status >= 500:
        logger.error("api_request_failed", extra=extra, exc_info=exc)
    else:
        logger.info("api_request_rejected", extra={**extra, "error": str(exc)})
    return JSONResponse(status_code=status, content={"error": str(exc), "code": exc.code})


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error(
        "api_database_error",
        extra={"path": request.url.path, "code": InternalError.code, "status": 500},
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content={"error": "Database operation failed", "code": InternalError.code},
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}"
        for err in exc.errors()
    )
    return JSONResponse(
        status_code=400,
        content={"error": problems or "Invalid request", "code": InvalidInputError.code},
    )


def create_app(
    config: RentalConfig | None = None,
    session_factory: Callable[[], Session] | None = None,
    clock: Clock | None = None,
    notifier: Notifier | None = None,
    run_scheduler: bool = False,
) -> FastAPI:
    """Build the application.

    Without ``session_factory`` the engine is initialized from
    ``config.database`` and the tables are created.  With
    ``run_scheduler`` the lifecycle jobs run in a background thread for
    the lifetime of the app.
    """
    config = config or get_active_config()
    clock = clock or SystemClock()
    notifier = notifier or Notifier(LoggingNotificationSink())

    if session_factory is None:
        init_engine_from_url(
            config.database.url,
            echo=config.database.echo,
            pool_size=config.database.pool_size,
        )
        create_tables()
        session_factory = get_session_factory()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        scheduler = None
        if run_scheduler and config.scheduler.enabled:
            scheduler = build_scheduler(config, session_factory, clock=clock, notifier=notifier)
            scheduler.start()
        try:
            yield
        finally:
            if scheduler is not None:
                scheduler.stop()

    app = FastAPI(title="Rental Lifecycle Core", lifespan=lifespan)
    app.state.config = config
    app.state.session_factory = session_factory
    app.state.clock = clock
    app.state.notifier = notifier
    app.state.default_policy = (
        default_policy_from_config(config.termination.default_policy)
        if config.termination.default_policy.penalty_rules
        else DEFAULT_POLICY
    )

    app.add_exception_handler(RentalKernelError, rental_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)

    app.include_router(payments.router)
    app.include_router(termination_policies.router)
    app.include_router(termination_requests.router)

    logger.info("api_app_created", extra={"config_checksum": config.checksum})
    return app


def main() -> FastAPI:
    """Factory for ``uvicorn --factory rental_api.app:main``."""
    config = get_active_config()
    configure_logging(level=config.log_level)
    return create_app(config, run_scheduler=True)
