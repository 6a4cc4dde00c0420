"""Fold check-in records into per-bucket statistics.

Money is rounded to cents when a figure is derived here and rounded again
when the response is assembled; historical reports were produced that way
and the numbers must match them exactly.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from clinicflow.models import (
    AppointmentRecord,
    AppointmentStatus,
    CheckinRecord,
    CheckinStatus,
    PaymentMethod,
)
from clinicflow.reporting.buckets import Granularity, PeriodBucket, assign_bucket, day_of
from clinicflow.rounding import round_half_up, round_money, round_rate

__all__ = [
    "AppointmentBucketStats",
    "BucketStats",
    "CheckinTally",
    "aggregate",
    "aggregate_appointments",
    "summarize_records",
]


def _zero_by_method() -> dict[PaymentMethod, int]:
    return dict.fromkeys(PaymentMethod, 0)


def _zero_by_status() -> dict[CheckinStatus, int]:
    return dict.fromkeys(CheckinStatus, 0)


def _zero_amounts() -> dict[PaymentMethod, float]:
    return dict.fromkeys(PaymentMethod, 0.0)


@dataclass
class CheckinTally:
    """Running counts over a set of check-ins."""

    total_checkins: int = 0
    by_method: dict[PaymentMethod, int] = field(default_factory=_zero_by_method)
    by_status: dict[CheckinStatus, int] = field(default_factory=_zero_by_status)
    amounts: dict[PaymentMethod, float] = field(default_factory=_zero_amounts)
    waiting_times: list[int] = field(default_factory=list)
    per_day: Counter[date] = field(default_factory=Counter)

    def add(self, record: CheckinRecord) -> None:
        self.total_checkins += 1
        self.by_method[record.payment_method] += 1
        self.by_status[record.status] += 1
        if record.amount is not None:
            self.amounts[record.payment_method] += record.amount
        if record.status is CheckinStatus.ATTENDED and record.waiting_time_minutes is not None:
            self.waiting_times.append(record.waiting_time_minutes)
        self.per_day[day_of(record.checkin_time)] += 1

    @property
    def average_waiting_time(self) -> int:
        """Mean wait of attended check-ins, whole minutes; 0 when none."""
        if not self.waiting_times:
            return 0
        return int(round_half_up(sum(self.waiting_times) / len(self.waiting_times)))

    @property
    def attended(self) -> int:
        return self.by_status[CheckinStatus.ATTENDED]

    @property
    def attendance_rate(self) -> float:
        if self.total_checkins == 0:
            return 0.0
        return round_rate(self.attended / self.total_checkins * 100)

    @property
    def no_shows(self) -> int:
        # Check-ins never attended nor cancelled count as no-shows in history
        return self.by_status[CheckinStatus.WAITING]

    @property
    def revenue_by_method(self) -> dict[PaymentMethod, float]:
        return {method: round_money(total) for method, total in self.amounts.items()}

    @property
    def total_amount_collected(self) -> float:
        return round_money(sum(self.amounts.values()))

    @property
    def average_amount_per_checkin(self) -> float:
        if self.total_checkins == 0:
            return 0.0
        return round_money(sum(self.amounts.values()) / self.total_checkins)

    @property
    def peak_day(self) -> date | None:
        """Earliest date with the highest count; None when empty."""
        if not self.per_day:
            return None
        return min(self.per_day, key=lambda d: (-self.per_day[d], d))

    def method_counts(self) -> dict[str, int]:
        return {m.value: n for m, n in self.by_method.items()}

    def status_counts(self) -> dict[str, int]:
        return {s.value: n for s, n in self.by_status.items()}

    def money_by_method(self) -> dict[str, float]:
        return {m.value: round_money(v) for m, v in self.revenue_by_method.items()}


@dataclass
class BucketStats:
    bucket: PeriodBucket
    granularity: Granularity
    tally: CheckinTally = field(default_factory=CheckinTally)

    @property
    def total_checkins(self) -> int:
        return self.tally.total_checkins

    @property
    def daily_average(self) -> float:
        """Check-ins per calendar day of the bucket (7 for a week, month length for a month)."""
        return round_money(self.tally.total_checkins / self.bucket.days)

    def to_dict(self) -> dict[str, Any]:
        t = self.tally
        head: dict[str, Any]
        if self.granularity is Granularity.DAILY:
            head = {"date": self.bucket.key}
        elif self.granularity is Granularity.WEEKLY:
            head = {
                "week": self.bucket.key,
                "week_start": self.bucket.start_date.isoformat(),
                "week_end": self.bucket.end_date.isoformat(),
            }
        else:
            head = {"month": self.bucket.key, "month_name": self.bucket.label}

        body: dict[str, Any] = {
            "total_checkins": t.total_checkins,
            "payment_method_breakdown": t.method_counts(),
            "status_breakdown": t.status_counts(),
            "average_waiting_time": t.average_waiting_time,
            "attendance_rate": t.attendance_rate,
        }
        if self.granularity is Granularity.DAILY:
            body["no_shows"] = t.no_shows
        else:
            body["daily_average"] = self.daily_average
        if self.granularity is Granularity.MONTHLY:
            peak = t.peak_day
            body["peak_day"] = peak.isoformat() if peak is not None else None
        body.update(
            {
                "total_amount_collected": round_money(t.total_amount_collected),
                "amount_breakdown_by_payment_method": t.money_by_method(),
                "average_amount_per_checkin": round_money(t.average_amount_per_checkin),
            }
        )
        return {**head, **body}


def aggregate(
    records: Iterable[CheckinRecord],
    buckets: list[PeriodBucket],
    granularity: Granularity,
) -> list[BucketStats]:
    """One BucketStats per bucket, in bucket order; records outside every bucket are ignored."""
    index = {b.key: BucketStats(bucket=b, granularity=granularity) for b in buckets}
    for record in records:
        stats = index.get(assign_bucket(granularity, record.checkin_time))
        if stats is not None:
            stats.tally.add(record)
    return list(index.values())


def summarize_records(records: Iterable[CheckinRecord]) -> CheckinTally:
    tally = CheckinTally()
    for record in records:
        tally.add(record)
    return tally


@dataclass
class AppointmentBucketStats:
    """Appointment outcomes within one bucket."""

    bucket: PeriodBucket
    by_status: dict[AppointmentStatus, int] = field(
        default_factory=lambda: dict.fromkeys(AppointmentStatus, 0)
    )

    @property
    def total(self) -> int:
        return sum(self.by_status.values())

    @property
    def no_shows(self) -> int:
        return self.by_status[AppointmentStatus.NO_SHOW]

    @property
    def cancellations(self) -> int:
        return self.by_status[AppointmentStatus.CANCELLED]


def aggregate_appointments(
    appointments: Iterable[AppointmentRecord],
    buckets: list[PeriodBucket],
    granularity: Granularity,
) -> list[AppointmentBucketStats]:
    index = {b.key: AppointmentBucketStats(bucket=b) for b in buckets}
    for appt in appointments:
        stats = index.get(assign_bucket(granularity, appt.appointment_date))
        if stats is not None:
            stats.by_status[appt.status] += 1
    return list(index.values())
