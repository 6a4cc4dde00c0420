"""Period comparison, trend classification, peaks and outliers."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from clinicflow.models import AppointmentRecord, AppointmentStatus, CheckinRecord, Patient
from clinicflow.reporting.buckets import day_of
from clinicflow.rounding import round_half_up, round_money

if TYPE_CHECKING:
    from clinicflow.reporting.aggregator import BucketStats

__all__ = [
    "ProblemPatient",
    "TrendDirection",
    "WEEKDAYS_SUNDAY_FIRST",
    "classify_trend",
    "compare_range",
    "find_busiest_weekday",
    "find_peak",
    "find_problem_patients",
    "growth_trend",
    "percent_change",
]

DEFAULT_DEAD_BAND = 5.0

WEEKDAYS_SUNDAY_FIRST = (
    "sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday",
)  # fmt: skip


class TrendDirection(StrEnum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


def percent_change(current: float, previous: float) -> float:
    """``(current - previous) / previous * 100``; from zero, any growth counts as 100."""
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return (current - previous) / previous * 100


def compare_range(current: float, previous: float, *, places: int = 1) -> str:
    """Signed change label: ``"+6.0%"``, ``"-6.0%"``, ``"+100%"`` or ``"0%"``."""
    if previous == 0:
        return "+100%" if current > 0 else "0%"
    rounded = round_half_up(percent_change(current, previous), places) + 0.0
    sign = "+" if rounded >= 0 else ""
    return f"{sign}{rounded:.{places}f}%"


def classify_trend(percentage: float, dead_band: float = DEFAULT_DEAD_BAND) -> TrendDirection:
    """Changes within ``±dead_band`` (inclusive) are noise."""
    if percentage > dead_band:
        return TrendDirection.INCREASING
    if percentage < -dead_band:
        return TrendDirection.DECREASING
    return TrendDirection.STABLE


def growth_trend(values: Sequence[float]) -> float:
    """Unweighted mean of period-over-period growth, skipping zero predecessors."""
    rates = [
        (cur - prev) / prev * 100
        for prev, cur in zip(values, values[1:], strict=False)
        if prev > 0
    ]
    if not rates:
        return 0.0
    return round_money(sum(rates) / len(rates))


def find_peak(stats: Sequence[BucketStats]) -> BucketStats | None:
    """Busiest bucket, earliest on ties; None when every bucket is empty."""
    peak: BucketStats | None = None
    for entry in sorted(stats, key=lambda s: s.bucket.key):
        if entry.total_checkins > 0 and (peak is None or entry.total_checkins > peak.total_checkins):
            peak = entry
    return peak


def find_busiest_weekday(records: Iterable[CheckinRecord]) -> str | None:
    """Weekday with the most check-ins over the whole set, Sunday-first on ties."""
    counts: Counter[int] = Counter(
        (day_of(r.checkin_time).weekday() + 1) % 7 for r in records
    )
    if not counts:
        return None
    best = min(counts, key=lambda idx: (-counts[idx], idx))
    return WEEKDAYS_SUNDAY_FIRST[best]


@dataclass(frozen=True)
class ProblemPatient:
    patient_id: int
    name: str
    no_shows: int
    cancellations: int

    @property
    def total_missed(self) -> int:
        return self.no_shows + self.cancellations

    def to_dict(self) -> dict[str, Any]:
        return {
            "patientId": self.patient_id,
            "name": self.name,
            "noShows": self.no_shows,
            "cancellations": self.cancellations,
            "totalMissed": self.total_missed,
        }


def find_problem_patients(
    appointments: Iterable[AppointmentRecord],
    patients: Mapping[int, Patient],
    *,
    threshold: int = 2,
    limit: int = 10,
) -> list[ProblemPatient]:
    """Active patients with at least *threshold* missed appointments, worst first."""
    no_shows: Counter[int] = Counter()
    cancellations: Counter[int] = Counter()
    for appt in appointments:
        if appt.status is AppointmentStatus.NO_SHOW:
            no_shows[appt.patient_id] += 1
        elif appt.status is AppointmentStatus.CANCELLED:
            cancellations[appt.patient_id] += 1

    ranked: list[ProblemPatient] = []
    for pid in set(no_shows) | set(cancellations):
        patient = patients.get(pid)
        if patient is None or not patient.active:
            continue
        entry = ProblemPatient(
            patient_id=pid,
            name=patient.full_name,
            no_shows=no_shows[pid],
            cancellations=cancellations[pid],
        )
        if entry.total_missed >= threshold:
            ranked.append(entry)
    ranked.sort(key=lambda p: (-p.total_missed, p.patient_id))
    return ranked[:limit]
