"""Check-in creation, live queue and attend endpoints."""

from __future__ import annotations

import asyncio
from typing import Any

from fastapi import APIRouter, Query, Request, status
from pydantic import BaseModel, ConfigDict

from clinicflow.api.routes import health
from clinicflow.errors import StateConflictError

router = APIRouter()

__all__ = ["AttendIn", "CheckinIn", "router"]


class CheckinIn(BaseModel):
    """Desk check-in request.

    Fields are deliberately untyped: the lifecycle owns validation so that
    every malformed value maps to its documented error code.
    """

    model_config = ConfigDict(extra="ignore")

    patient_id: Any = None
    payment_method: Any = None
    amount: Any = None
    notes: str | None = None


class AttendIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    checkin_id: Any = None
    notes: str | None = None


@router.post(
    "/checkin",
    status_code=status.HTTP_201_CREATED,
    summary="Check a patient in",
    operation_id="create_checkin",
)
async def create_checkin(body: CheckinIn, request: Request) -> dict[str, Any]:
    """Validate, guard against duplicates and record a waiting check-in."""
    lifecycle = request.app.state.lifecycle
    try:
        created = await asyncio.to_thread(
            lifecycle.create,
            body.patient_id,
            body.payment_method,
            body.amount,
            body.notes,
        )
    except StateConflictError:
        health.record_checkin_event("duplicate")
        raise
    health.record_checkin_event("created")
    return created.to_dict()


@router.get("/queue", summary="List waiting patients", operation_id="list_queue")
async def list_queue(request: Request, limit: str | None = Query(default=None)) -> list[dict[str, Any]]:
    """Waiting check-ins in arrival order with live waiting times."""
    queue = request.app.state.queue

    def snapshot() -> list[dict[str, Any]]:
        return [entry.to_dict() for entry in queue.list(limit)]

    return await asyncio.to_thread(snapshot)


@router.put("/queue/attend", summary="Mark a check-in attended", operation_id="attend_checkin")
async def attend_checkin(body: AttendIn, request: Request) -> dict[str, Any]:
    """Finalize the waiting time of a waiting check-in."""
    lifecycle = request.app.state.lifecycle
    record = await asyncio.to_thread(lifecycle.attend, body.checkin_id, body.notes)
    health.record_checkin_event("attended")
    return record.to_dict()
