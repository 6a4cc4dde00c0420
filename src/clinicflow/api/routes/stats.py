"""Reporting endpoints: check-in statistics and appointment analytics."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Query, Request

router = APIRouter()

__all__ = ["router"]


@router.get("/checkin-stats/daily", summary="Daily check-in statistics", operation_id="daily_stats")
async def daily_stats(
    request: Request,
    start_date: str | None = Query(default=None),
    end_date: str | None = Query(default=None),
) -> dict[str, Any]:
    return await request.app.state.reports.daily_stats(start_date, end_date)


@router.get("/checkin-stats/weekly", summary="Weekly check-in statistics", operation_id="weekly_stats")
async def weekly_stats(
    request: Request,
    start_date: str | None = Query(default=None),
    end_date: str | None = Query(default=None),
) -> dict[str, Any]:
    return await request.app.state.reports.weekly_stats(start_date, end_date)


@router.get("/checkin-stats/monthly", summary="Monthly check-in statistics", operation_id="monthly_stats")
async def monthly_stats(
    request: Request,
    start_date: str | None = Query(default=None),
    end_date: str | None = Query(default=None),
) -> dict[str, Any]:
    return await request.app.state.reports.monthly_stats(start_date, end_date)


@router.get(
    "/stats/no-shows-cancellations",
    summary="No-show and cancellation analytics",
    operation_id="no_show_cancellation_stats",
)
async def no_show_cancellation_stats(
    request: Request,
    period: str | None = Query(default=None),
    start_date: str | None = Query(default=None),
    end_date: str | None = Query(default=None),
) -> dict[str, Any]:
    """Missed appointments this period vs the previous one, with problem patients."""
    return await request.app.state.reports.no_show_cancellation_stats(period, start_date, end_date)


@router.get(
    "/stats/appointments",
    summary="Appointment volume by period",
    operation_id="appointment_volume_stats",
)
async def appointment_volume_stats(
    request: Request,
    period: str | None = Query(default=None),
    start_date: str | None = Query(default=None),
    end_date: str | None = Query(default=None),
) -> dict[str, Any]:
    return await request.app.state.reports.appointment_volume_stats(period, start_date, end_date)
