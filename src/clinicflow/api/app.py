"""FastAPI application factory."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from functools import partial
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse

from clinicflow import __version__
from clinicflow.api.routes import checkins, health, stats
from clinicflow.errors import ClinicFlowError, StoreUnavailableError
from clinicflow.lifecycle import CheckinLifecycle
from clinicflow.logging import configure_logging, new_correlation_id, start_request_context
from clinicflow.queue_view import QueueView
from clinicflow.reporting.reports import ReportService
from clinicflow.settings import Settings
from clinicflow.storage.appointments import InMemoryAppointmentStore, PostgresAppointmentStore
from clinicflow.storage.checkins import InMemoryCheckinStore, PostgresCheckinStore
from clinicflow.storage.locks import InProcessKeyedLock, RedisKeyedLock, get_redis_client
from clinicflow.storage.patients import InMemoryPatientDirectory, PostgresPatientDirectory

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from clinicflow.clock import Clock

__all__ = ["build_services", "create_app"]

logger = logging.getLogger(__name__)


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Tag each request with a correlation id, time it and count it by status."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        cid = start_request_context(request.headers.get("x-correlation-id"))
        request.state.request_id = cid

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        response.headers["x-correlation-id"] = cid
        response.headers["x-request-duration-ms"] = f"{elapsed_ms:.1f}"
        health.record_request(response.status_code)
        return response


# ── error responses ──────────────────────────────────────────


def _request_id(request: Request) -> str:
    """Id set by the middleware, else the caller's header, else a fresh one."""
    rid = getattr(request.state, "request_id", "") or request.headers.get("x-correlation-id", "")
    if not rid:
        rid = new_correlation_id()
    request.state.request_id = rid
    return rid


def _error_response(
    request: Request, status_code: int, error_code: str, message: str, details: Any = None
) -> JSONResponse:
    body: dict[str, Any] = {
        "error_code": error_code,
        "message": message,
        "request_id": _request_id(request),
    }
    if details is not None:
        body["details"] = details
    return JSONResponse(status_code=status_code, content=body)


async def _on_domain_error(request: Request, exc: ClinicFlowError) -> JSONResponse:
    logger.info("Request rejected: %s (%s)", exc.code, exc.message)
    return _error_response(request, exc.status_code, exc.code, exc.message, exc.details)


async def _on_store_unavailable(request: Request, exc: StoreUnavailableError) -> JSONResponse:
    health.record_store_error()
    logger.error("Store unavailable: %s", exc)
    return _error_response(request, 500, "INTERNAL_ERROR", "Internal server error")


async def _on_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    error_code = "INVALID_REQUEST" if 400 <= exc.status_code < 500 else "INTERNAL_ERROR"
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return _error_response(request, exc.status_code, error_code, message)


async def _on_invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = [{"loc": list(err.get("loc", ())), "msg": err.get("msg", "")} for err in exc.errors()]
    return _error_response(request, 422, "INVALID_REQUEST", "Request validation failed", problems)


async def _on_unhandled(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled application exception", exc_info=exc)
    return _error_response(request, 500, "INTERNAL_ERROR", "Internal server error")


# ── wiring ───────────────────────────────────────────────────


def build_services(app: FastAPI, settings: Settings, *, clock: Clock | None = None) -> None:
    """Wire stores, lock and services onto ``app.state``.

    PostgreSQL backs the stores when ``pg_dsn`` is set, Redis backs the
    check-in lock when ``redis_url`` is set; otherwise everything runs in
    process.
    """
    clock_kwargs: dict[str, Any] = {"clock": clock} if clock is not None else {}

    if settings.pg_dsn:
        from clinicflow.storage.postgres import ensure_schema, get_connection

        ensure_schema(settings.pg_dsn)
        connect = partial(get_connection, settings.pg_dsn, settings.pg_statement_timeout_ms)
        checkin_store: Any = PostgresCheckinStore(connect)
        patients: Any = PostgresPatientDirectory(connect)
        appointments: Any = PostgresAppointmentStore(connect)
    else:
        checkin_store = InMemoryCheckinStore()
        patients = InMemoryPatientDirectory()
        appointments = InMemoryAppointmentStore()
        if settings.seed_demo_data:
            from clinicflow.demo.seed import generate_history, load_history

            history = generate_history(end=clock() if clock is not None else None)
            load_history(history, checkins=checkin_store, patients=patients, appointments=appointments)
            logger.info("Seeded demo history: %s", history.to_dict())

    redis_client = None
    if settings.redis_url:
        redis_client = get_redis_client(settings.redis_url)
        lock: Any = RedisKeyedLock(redis_client, ttl_seconds=settings.lock_ttl_seconds)
    else:
        lock = InProcessKeyedLock(timeout=float(settings.lock_ttl_seconds))

    app.state.settings = settings
    app.state.checkin_store = checkin_store
    app.state.patients = patients
    app.state.appointments = appointments
    app.state.redis_client = redis_client
    app.state.lifecycle = CheckinLifecycle(
        checkin_store,
        patients,
        lock=lock,
        max_amount=settings.max_amount,
        **clock_kwargs,
    )
    app.state.queue = QueueView(
        checkin_store,
        patients,
        default_limit=settings.queue_default_limit,
        max_limit=settings.queue_max_limit,
        **clock_kwargs,
    )
    app.state.reports = ReportService(
        checkin_store,
        appointments,
        patients,
        settings=settings,
        **clock_kwargs,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # Startup
    settings = Settings()
    configure_logging(json_output=settings.log_json, level=settings.log_level)
    build_services(app, settings)
    logger.info(
        "clinicflow started (env=%s, postgres=%s, redis=%s)",
        settings.environment,
        bool(settings.pg_dsn),
        bool(settings.redis_url),
    )

    yield

    # Shutdown: close Redis
    if app.state.redis_client:
        app.state.redis_client.close()


def create_app() -> FastAPI:
    app = FastAPI(
        title="ClinicFlow",
        version=__version__,
        description="Patient check-in lifecycle and clinic attendance analytics.",
        lifespan=lifespan,
    )
    app.add_exception_handler(ClinicFlowError, _on_domain_error)  # type: ignore[arg-type]
    app.add_exception_handler(StoreUnavailableError, _on_store_unavailable)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, _on_http_error)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _on_invalid_body)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _on_unhandled)
    app.add_middleware(ObservabilityMiddleware)
    app.include_router(health.router, tags=["health"])
    app.include_router(checkins.router, tags=["checkins"])
    app.include_router(stats.router, tags=["stats"])
    return app


app = create_app()
