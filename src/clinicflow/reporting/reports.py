"""Report orchestration: resolve the window, fan out store reads, assemble payloads.

Every report is a pure read over a per-request snapshot. Store calls are
blocking, so they run in worker threads bounded by
``settings.store_timeout_seconds``; independent reads (current window,
previous window, history) are awaited together.
"""

from __future__ import annotations

import asyncio
import calendar
from collections.abc import Callable, Sequence
from datetime import date, timedelta
from typing import TYPE_CHECKING, Any, TypeVar

from clinicflow.clock import Clock, utc_now
from clinicflow.errors import ClinicFlowError, StoreUnavailableError
from clinicflow.logging import get_logger
from clinicflow.models import AppointmentStatus
from clinicflow.reporting.aggregator import (
    AppointmentBucketStats,
    aggregate,
    aggregate_appointments,
    summarize_records,
)
from clinicflow.reporting.buckets import (
    Granularity,
    bucket_for,
    day_of,
    enumerate_buckets,
    parse_date,
    parse_granularity,
    previous_range,
    range_bounds,
    validate_range,
)
from clinicflow.reporting.trends import (
    classify_trend,
    compare_range,
    find_busiest_weekday,
    find_peak,
    find_problem_patients,
    growth_trend,
    percent_change,
)
from clinicflow.rounding import round_half_up, round_money, round_rate
from clinicflow.settings import Settings

if TYPE_CHECKING:
    from clinicflow.models import AppointmentRecord, CheckinRecord
    from clinicflow.storage.appointments import AppointmentStoreProtocol
    from clinicflow.storage.checkins import CheckinStoreProtocol
    from clinicflow.storage.patients import PatientDirectoryProtocol

__all__ = ["ReportService"]

T = TypeVar("T")

_HISTORY_MONTHS = 12
_BY_PERIOD_ROWS = 12


def _months_before(day: date, months: int) -> date:
    """Same day-of-month *months* earlier, clamped to the target month's length."""
    index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(index, 12)
    month += 1
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last))


def _default_start(granularity: Granularity, end: date) -> date:
    if granularity is Granularity.DAILY:
        return end - timedelta(days=30)
    if granularity is Granularity.WEEKLY:
        return end - timedelta(weeks=12)
    return _months_before(end, 12)


def _rate_label(part: int, whole: int) -> str:
    if whole == 0:
        return "0.0%"
    return f"{round_rate(part / whole * 100):.1f}%"


def _date_range(start: date, end: date) -> dict[str, str]:
    return {"start_date": start.isoformat(), "end_date": end.isoformat()}


class ReportService:
    """Check-in and appointment analytics over injected stores."""

    def __init__(
        self,
        checkins: CheckinStoreProtocol,
        appointments: AppointmentStoreProtocol,
        patients: PatientDirectoryProtocol,
        *,
        settings: Settings | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._checkins = checkins
        self._appointments = appointments
        self._patients = patients
        self._settings = settings or Settings()
        self._clock = clock
        self._log = get_logger(component="report_service")

    # ── plumbing ─────────────────────────────────────────────

    def _today(self) -> date:
        return day_of(self._clock())

    def _max_days(self, granularity: Granularity) -> int:
        s = self._settings
        return {
            Granularity.DAILY: s.daily_max_range_days,
            Granularity.WEEKLY: s.weekly_max_range_days,
            Granularity.MONTHLY: s.monthly_max_range_days,
        }[granularity]

    def _resolve_window(
        self,
        granularity: Granularity,
        start_raw: str | None,
        end_raw: str | None,
        *,
        default_start: Callable[[date], date] | None = None,
    ) -> tuple[date, date]:
        end = parse_date(end_raw, "end_date") if end_raw else self._today()
        if start_raw:
            start = parse_date(start_raw, "start_date")
        elif default_start is not None:
            start = default_start(end)
        else:
            start = _default_start(granularity, end)
        validate_range(start, end, self._max_days(granularity))
        return start, end

    async def _read(self, fn: Callable[..., T], *args: Any) -> T:
        """Run a blocking store call off the event loop with a deadline."""
        timeout = self._settings.store_timeout_seconds
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn, *args), timeout=timeout)
        except ClinicFlowError:
            raise
        except TimeoutError:
            self._log.warning("store_read_timeout", operation=fn.__name__, timeout_s=timeout)
            raise StoreUnavailableError(f"{fn.__name__} timed out after {timeout}s") from None
        except Exception as exc:
            self._log.warning("store_read_failed", operation=fn.__name__, exc_info=True)
            raise StoreUnavailableError(f"{fn.__name__} failed") from exc

    async def _checkins_in(self, start: date, end: date) -> list[CheckinRecord]:
        lo, hi = range_bounds(start, end)
        return await self._read(self._checkins.list_between, lo, hi)

    async def _appointments_in(self, start: date, end: date) -> list[AppointmentRecord]:
        lo, hi = range_bounds(start, end)
        return await self._read(self._appointments.list_between, lo, hi)

    async def _current_and_previous(
        self, start: date, end: date
    ) -> tuple[list[CheckinRecord], list[CheckinRecord]]:
        prev_start, prev_end = previous_range(start, end)
        current, previous = await asyncio.gather(
            self._checkins_in(start, end),
            self._checkins_in(prev_start, prev_end),
        )
        return current, previous

    def _change(self, current: int, previous: int) -> dict[str, str]:
        return {
            "previous_period_change": compare_range(current, previous),
            "trend": classify_trend(
                percent_change(current, previous), self._settings.trend_dead_band
            ).value,
        }

    # ── check-in reports ─────────────────────────────────────

    async def daily_stats(self, start_date: str | None = None, end_date: str | None = None) -> dict[str, Any]:
        start, end = self._resolve_window(Granularity.DAILY, start_date, end_date)
        current, previous = await self._current_and_previous(start, end)

        buckets = enumerate_buckets(Granularity.DAILY, start, end)
        stats = aggregate(current, buckets, Granularity.DAILY)
        tally = summarize_records(current)
        peak = find_peak(stats)

        summary: dict[str, Any] = {
            "total_days": len(buckets),
            "total_checkins": tally.total_checkins,
            "daily_average": round_money(tally.total_checkins / len(buckets)),
            "overall_avg_waiting_time": tally.average_waiting_time,
            "payment_method_totals": tally.method_counts(),
            "overall_attendance_rate": tally.attendance_rate,
            "peak_day": (
                {"date": peak.bucket.key, "checkins": peak.total_checkins} if peak else None
            ),
            "total_revenue": round_money(tally.total_amount_collected),
            "revenue_by_payment_method": tally.money_by_method(),
            **self._change(tally.total_checkins, len(previous)),
        }
        self._log.debug("report_built", report="daily", buckets=len(buckets), records=len(current))
        return {
            "period": _date_range(start, end),
            "daily_data": [s.to_dict() for s in stats],
            "summary": summary,
        }

    async def weekly_stats(self, start_date: str | None = None, end_date: str | None = None) -> dict[str, Any]:
        start, end = self._resolve_window(Granularity.WEEKLY, start_date, end_date)
        current, previous = await self._current_and_previous(start, end)

        buckets = enumerate_buckets(Granularity.WEEKLY, start, end)
        stats = aggregate(current, buckets, Granularity.WEEKLY)
        tally = summarize_records(current)
        weeks = len(buckets)
        peak = find_peak(stats)
        total_revenue = round_money(tally.total_amount_collected)

        summary: dict[str, Any] = {
            "total_weeks": weeks,
            "total_checkins": tally.total_checkins,
            "weekly_average_checkins": round_money(tally.total_checkins / weeks),
            "overall_avg_waiting_time": tally.average_waiting_time,
            "payment_method_totals": tally.method_counts(),
            "attendance_rate": tally.attendance_rate,
            "busiest_day_of_week": find_busiest_weekday(current),
            "total_revenue": total_revenue,
            "average_weekly_revenue": round_money(total_revenue / weeks),
            "revenue_by_payment_method": tally.money_by_method(),
            "average_amount_per_checkin": tally.average_amount_per_checkin,
            "growth_trend": growth_trend([s.total_checkins for s in stats]),
            "peak_week": (
                {
                    "week": peak.bucket.key,
                    "week_start": peak.bucket.start_date.isoformat(),
                    "checkins": peak.total_checkins,
                }
                if peak
                else None
            ),
            **self._change(tally.total_checkins, len(previous)),
        }
        self._log.debug("report_built", report="weekly", buckets=weeks, records=len(current))
        return {
            "weekly_data": [s.to_dict() for s in stats],
            "summary": summary,
            "date_range": _date_range(start, end),
        }

    async def monthly_stats(self, start_date: str | None = None, end_date: str | None = None) -> dict[str, Any]:
        start, end = self._resolve_window(Granularity.MONTHLY, start_date, end_date)
        current, previous = await self._current_and_previous(start, end)

        buckets = enumerate_buckets(Granularity.MONTHLY, start, end)
        stats = aggregate(current, buckets, Granularity.MONTHLY)
        tally = summarize_records(current)
        months = len(buckets)
        peak = find_peak(stats)

        summary: dict[str, Any] = {
            "total_months": months,
            "total_checkins": tally.total_checkins,
            "monthly_average": round_money(tally.total_checkins / months),
            "overall_avg_waiting_time": tally.average_waiting_time,
            "payment_method_totals": tally.method_counts(),
            "attendance_rate": tally.attendance_rate,
            "growth_trend": growth_trend([s.total_checkins for s in stats]),
            "peak_month": (
                {
                    "month": peak.bucket.key,
                    "month_name": peak.bucket.label,
                    "checkins": peak.total_checkins,
                }
                if peak
                else None
            ),
            "total_revenue": round_money(tally.total_amount_collected),
            "revenue_by_payment_method": tally.money_by_method(),
            **self._change(tally.total_checkins, len(previous)),
        }
        self._log.debug("report_built", report="monthly", buckets=months, records=len(current))
        return {
            "monthly_data": [s.to_dict() for s in stats],
            "summary": summary,
            "date_range": _date_range(start, end),
        }

    # ── appointment reports ──────────────────────────────────

    def _missed_windows(
        self, granularity: Granularity, start_raw: str | None, end_raw: str | None
    ) -> tuple[tuple[date, date], tuple[date, date]]:
        """Current and comparison windows for the no-show report."""
        if start_raw or end_raw:
            start, end = self._resolve_window(
                granularity,
                start_raw,
                end_raw,
                default_start=lambda e: bucket_for(granularity, e).start_date,
            )
            return (start, end), previous_range(start, end)
        today = self._today()
        current = bucket_for(granularity, today)
        prior = bucket_for(granularity, current.start_date - timedelta(days=1))
        return (current.start_date, today), (prior.start_date, prior.end_date)

    async def no_show_cancellation_stats(
        self,
        period: str | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> dict[str, Any]:
        granularity = parse_granularity(period)
        (cur_start, cur_end), (prev_start, prev_end) = self._missed_windows(
            granularity, start_date, end_date
        )
        today = self._today()
        hist_start = _months_before(today, _HISTORY_MONTHS)

        current, previous, history = await asyncio.gather(
            self._appointments_in(cur_start, cur_end),
            self._appointments_in(prev_start, prev_end),
            self._appointments_in(hist_start, today),
        )

        missed_ids = {a.patient_id for a in history if a.status.is_missed}
        patients = await self._read(self._patients.get_patients, sorted(missed_ids)) if missed_ids else {}
        problem = find_problem_patients(
            history,
            patients,
            threshold=self._settings.problem_patient_threshold,
            limit=self._settings.problem_patient_limit,
        )

        by_period = [
            s
            for s in aggregate_appointments(
                history, enumerate_buckets(granularity, hist_start, today), granularity
            )
            if s.total > 0
        ]
        by_period.sort(key=lambda s: s.bucket.key, reverse=True)

        def count(rows: Sequence[AppointmentRecord], status: AppointmentStatus) -> int:
            return sum(1 for a in rows if a.status is status)

        no_shows, no_show_trend = self._missed_block(
            total=count(history, AppointmentStatus.NO_SHOW),
            this_period=count(current, AppointmentStatus.NO_SHOW),
            last_period=count(previous, AppointmentStatus.NO_SHOW),
            scheduled=len(current),
        )
        cancellations, cancellation_trend = self._missed_block(
            total=count(history, AppointmentStatus.CANCELLED),
            this_period=count(current, AppointmentStatus.CANCELLED),
            last_period=count(previous, AppointmentStatus.CANCELLED),
            scheduled=len(current),
        )
        return {
            "period": granularity.value,
            "noShows": no_shows,
            "cancellations": cancellations,
            "byPeriod": [self._missed_row(s) for s in by_period[:_BY_PERIOD_ROWS]],
            "problemPatients": [p.to_dict() for p in problem],
            "trends": {
                "noShowTrend": no_show_trend,
                "cancellationTrend": cancellation_trend,
            },
        }

    def _missed_block(
        self, *, total: int, this_period: int, last_period: int, scheduled: int
    ) -> tuple[dict[str, Any], str]:
        # Direction is judged on the whole-percent change, as displayed
        pct = round_half_up(percent_change(this_period, last_period))
        block = {
            "total": total,
            "thisPeriod": this_period,
            "lastPeriod": last_period,
            "rate": _rate_label(this_period, scheduled),
            "trend": compare_range(this_period, last_period, places=0),
        }
        return block, classify_trend(pct, self._settings.trend_dead_band).value

    @staticmethod
    def _missed_row(stats: AppointmentBucketStats) -> dict[str, Any]:
        return {
            "period": stats.bucket.key,
            "label": stats.bucket.label,
            "scheduled": stats.total,
            "noShows": stats.no_shows,
            "cancelled": stats.cancellations,
            "noShowRate": _rate_label(stats.no_shows, stats.total),
            "cancellationRate": _rate_label(stats.cancellations, stats.total),
        }

    async def appointment_volume_stats(
        self,
        period: str | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> dict[str, Any]:
        granularity = parse_granularity(period, default=Granularity.DAILY)
        start, end = self._resolve_window(
            granularity, start_date, end_date, default_start=lambda e: e - timedelta(days=30)
        )
        prev_start, prev_end = previous_range(start, end)
        current, previous = await asyncio.gather(
            self._appointments_in(start, end),
            self._appointments_in(prev_start, prev_end),
        )

        stats = aggregate_appointments(
            current, enumerate_buckets(granularity, start, end), granularity
        )
        days = (end - start).days + 1
        rows = [
            {
                "period": s.bucket.key,
                "label": s.bucket.label,
                "total": s.total,
                **{status.value: s.by_status[status] for status in AppointmentStatus},
            }
            for s in stats
        ]
        return {
            "period": granularity.value,
            "date_range": _date_range(start, end),
            "data": rows,
            "summary": {
                "total_appointments": len(current),
                "avg_per_day": round_money(len(current) / days),
                **self._change(len(current), len(previous)),
            },
        }
