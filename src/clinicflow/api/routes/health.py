"""Health, readiness, and metrics endpoints."""

from __future__ import annotations

import time
from collections import Counter
from collections.abc import Iterable

from fastapi import APIRouter, Request, Response
from starlette.responses import JSONResponse

from clinicflow.healthchecks import probe_backends

router = APIRouter()

__all__ = [
    "record_checkin_event",
    "record_request",
    "record_store_error",
    "reset_metrics",
    "router",
]

# ──────────── In-process counters ────────────


class _Counters:
    def __init__(self) -> None:
        self.started = time.time()
        self.requests: Counter[str] = Counter()
        self.checkin_events: Counter[str] = Counter()
        self.store_errors = 0


_counters = _Counters()


def record_request(status: int) -> None:
    """Called by the middleware once per response."""
    _counters.requests[str(status)] += 1


def record_checkin_event(event: str) -> None:
    """Count lifecycle transitions: ``created``, ``attended``, ``duplicate``."""
    _counters.checkin_events[event] += 1


def record_store_error() -> None:
    _counters.store_errors += 1


def reset_metrics() -> None:
    global _counters
    _counters = _Counters()


def _family(name: str, kind: str, help_text: str, samples: Iterable[str]) -> list[str]:
    return [f"# HELP {name} {help_text}", f"# TYPE {name} {kind}", *samples, ""]


# ──────────── Endpoints ────────────


@router.get("/health", summary="Liveness probe", operation_id="health")
async def health() -> dict[str, str]:
    """Liveness: app process is running."""
    return {"status": "ok"}


@router.get("/ready", summary="Readiness probe", operation_id="ready")
async def ready(request: Request) -> JSONResponse:
    """Readiness: configured backends reachable.

    Returns 200 when all checks pass, 503 otherwise.
    """
    settings = request.app.state.settings
    checks = await probe_backends(settings.pg_dsn, settings.redis_url)
    all_ok = all(checks.values())
    return JSONResponse(
        status_code=200 if all_ok else 503,
        content={"ready": all_ok, "checks": checks},
    )


@router.get("/metrics", summary="Prometheus metrics", operation_id="metrics")
async def metrics() -> Response:
    """Prometheus text exposition format."""
    c = _counters
    requests_total = sum(c.requests.values())
    lines = [
        *_family("clinicflow_up", "gauge", "Service is up", ["clinicflow_up 1"]),
        *_family(
            "clinicflow_uptime_seconds",
            "gauge",
            "Seconds since process start",
            [f"clinicflow_uptime_seconds {time.time() - c.started:.1f}"],
        ),
        *_family(
            "clinicflow_requests_total",
            "counter",
            "Total HTTP requests",
            [
                f"clinicflow_requests_total {requests_total}",
                *(
                    f'clinicflow_requests_total{{status="{status}"}} {n}'
                    for status, n in sorted(c.requests.items())
                ),
            ],
        ),
        *_family(
            "clinicflow_checkin_events_total",
            "counter",
            "Check-in lifecycle transitions",
            (
                f'clinicflow_checkin_events_total{{event="{event}"}} {n}'
                for event, n in sorted(c.checkin_events.items())
            ),
        ),
        *_family(
            "clinicflow_store_errors_total",
            "counter",
            "Store reads that timed out or failed",
            [f"clinicflow_store_errors_total {c.store_errors}"],
        ),
    ]
    return Response(content="\n".join(lines), media_type="text/plain; charset=utf-8")
