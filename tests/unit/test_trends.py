"""Tests for period comparison and trend helpers."""

from __future__ import annotations

from datetime import UTC, date, datetime

import pytest

from clinicflow.models import AppointmentRecord, AppointmentStatus, CheckinRecord, Patient, PaymentMethod
from clinicflow.reporting.aggregator import aggregate
from clinicflow.reporting.buckets import Granularity, enumerate_buckets
from clinicflow.reporting.trends import (
    TrendDirection,
    classify_trend,
    compare_range,
    find_busiest_weekday,
    find_peak,
    find_problem_patients,
    growth_trend,
    percent_change,
)


def _checkin(cid: int, at: datetime) -> CheckinRecord:
    return CheckinRecord(id=cid, patient_id=1, checkin_time=at, payment_method=PaymentMethod.CASH)


class TestCompareRange:
    def test_growth_from_zero_is_plus_100(self) -> None:
        assert compare_range(5, 0) == "+100%"

    def test_both_zero(self) -> None:
        assert compare_range(0, 0) == "0%"

    @pytest.mark.parametrize(
        ("current", "previous", "expected"),
        [(106, 100, "+6.0%"), (94, 100, "-6.0%"), (100, 100, "+0.0%"), (1, 3, "-66.7%"), (0, 4, "-100.0%")],
    )
    def test_signed_one_decimal(self, current: int, previous: int, expected: str) -> None:
        assert compare_range(current, previous) == expected

    def test_whole_percent_variant(self) -> None:
        assert compare_range(7, 3, places=0) == "+133%"
        assert compare_range(2, 3, places=0) == "-33%"


class TestClassifyTrend:
    def test_six_percent_drop_is_decreasing(self) -> None:
        assert classify_trend(percent_change(94, 100)) is TrendDirection.DECREASING

    def test_band_edges_are_stable(self) -> None:
        assert classify_trend(5.0) is TrendDirection.STABLE
        assert classify_trend(-5.0) is TrendDirection.STABLE
        assert classify_trend(0.0) is TrendDirection.STABLE

    def test_outside_band(self) -> None:
        assert classify_trend(5.01) is TrendDirection.INCREASING
        assert classify_trend(-5.01) is TrendDirection.DECREASING

    def test_custom_band(self) -> None:
        assert classify_trend(8.0, dead_band=10.0) is TrendDirection.STABLE


class TestGrowthTrend:
    def test_mean_of_pairwise_rates(self) -> None:
        # +100% then -25%
        assert growth_trend([10, 20, 15]) == 37.5

    def test_skips_zero_denominators(self) -> None:
        # Only 10 -> 15 qualifies
        assert growth_trend([0, 10, 15]) == 50.0

    def test_no_qualifying_pair(self) -> None:
        assert growth_trend([0, 0, 0]) == 0.0
        assert growth_trend([7]) == 0.0
        assert growth_trend([]) == 0.0


class TestFindPeak:
    def test_earliest_bucket_wins_ties(self) -> None:
        records = [
            _checkin(1, datetime(2024, 3, 1, 9, tzinfo=UTC)),
            _checkin(2, datetime(2024, 3, 2, 9, tzinfo=UTC)),
            _checkin(3, datetime(2024, 3, 3, 9, tzinfo=UTC)),
            _checkin(4, datetime(2024, 3, 2, 10, tzinfo=UTC)),
            _checkin(5, datetime(2024, 3, 3, 10, tzinfo=UTC)),
        ]
        stats = aggregate(records, enumerate_buckets(Granularity.DAILY, date(2024, 3, 1), date(2024, 3, 3)), Granularity.DAILY)
        peak = find_peak(stats)
        assert peak is not None
        assert peak.bucket.key == "2024-03-02"
        assert peak.total_checkins == 2

    def test_all_empty_has_no_peak(self) -> None:
        stats = aggregate([], enumerate_buckets(Granularity.DAILY, date(2024, 3, 1), date(2024, 3, 3)), Granularity.DAILY)
        assert find_peak(stats) is None


class TestBusiestWeekday:
    def test_most_frequent_weekday(self) -> None:
        records = [
            _checkin(1, datetime(2024, 3, 11, 9, tzinfo=UTC)),  # monday
            _checkin(2, datetime(2024, 3, 13, 9, tzinfo=UTC)),  # wednesday
            _checkin(3, datetime(2024, 3, 20, 9, tzinfo=UTC)),  # wednesday
        ]
        assert find_busiest_weekday(records) == "wednesday"

    def test_ties_resolve_sunday_first(self) -> None:
        records = [
            _checkin(1, datetime(2024, 3, 16, 9, tzinfo=UTC)),  # saturday
            _checkin(2, datetime(2024, 3, 17, 9, tzinfo=UTC)),  # sunday
        ]
        assert find_busiest_weekday(records) == "sunday"

    def test_empty(self) -> None:
        assert find_busiest_weekday([]) is None


class TestProblemPatients:
    def setup_method(self) -> None:
        self.patients = {
            1: Patient(id=1, first_name="Sipho", last_name="Dlamini"),
            2: Patient(id=2, first_name="Mia", last_name="Naidoo"),
            3: Patient(id=3, first_name="Ruan", last_name="van Wyk", active=False),
            4: Patient(id=4, first_name="Aisha", last_name="Pillay"),
        }

    def _appts(self, *rows: tuple[int, AppointmentStatus]) -> list[AppointmentRecord]:
        at = datetime(2024, 3, 1, 9, tzinfo=UTC)
        return [
            AppointmentRecord(id=i, patient_id=pid, appointment_date=at, status=status)
            for i, (pid, status) in enumerate(rows, start=1)
        ]

    def test_threshold_ranking_and_inactive_exclusion(self) -> None:
        ns, cx, ok = AppointmentStatus.NO_SHOW, AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED
        appts = self._appts(
            (1, ns), (1, cx),
            (2, ns), (2, ns), (2, cx),
            (3, ns), (3, ns), (3, ns),
            (4, ns), (4, ok), (4, ok),
        )  # fmt: skip

        ranked = find_problem_patients(appts, self.patients)

        assert [p.patient_id for p in ranked] == [2, 1]
        assert ranked[0].to_dict() == {
            "patientId": 2,
            "name": "Mia Naidoo",
            "noShows": 2,
            "cancellations": 1,
            "totalMissed": 3,
        }

    def test_ties_ordered_by_patient_id_and_limited(self) -> None:
        ns = AppointmentStatus.NO_SHOW
        appts = self._appts((4, ns), (4, ns), (1, ns), (1, ns), (2, ns), (2, ns))
        ranked = find_problem_patients(appts, self.patients, limit=2)
        assert [p.patient_id for p in ranked] == [1, 2]
