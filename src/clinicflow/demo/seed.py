"""Synthetic clinic history for demos and local development.

Produces a patient roster, several months of check-ins and an appointment
book with realistic no-show and cancellation rates. Output is fully
determined by the seed, so dashboards built on it are reproducible.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import UTC, datetime, time, timedelta
from typing import TYPE_CHECKING, Any

from clinicflow.lifecycle import waiting_minutes
from clinicflow.models import (
    AppointmentRecord,
    AppointmentStatus,
    CheckinRecord,
    CheckinStatus,
    IdType,
    Patient,
    PaymentMethod,
)
from clinicflow.rounding import round_money

if TYPE_CHECKING:
    from clinicflow.storage.appointments import InMemoryAppointmentStore
    from clinicflow.storage.checkins import InMemoryCheckinStore
    from clinicflow.storage.patients import InMemoryPatientDirectory

__all__ = ["DemoHistory", "generate_history", "load_history"]


# ---------------------------------------------------------------------------
# Distributions
# ---------------------------------------------------------------------------

_FIRST_NAMES = ("Thandi", "Sipho", "Lerato", "Johan", "Aisha", "Pieter", "Naledi", "Kagiso", "Mia", "Ruan")
_LAST_NAMES = ("Nkosi", "Botha", "Dlamini", "van Wyk", "Naidoo", "Mokoena", "Smith", "Pillay")
_MEDICAL_AIDS = ("Discovery", "Bonitas", "Momentum", "Medshield")

_METHOD_WEIGHTS: dict[PaymentMethod, float] = {
    PaymentMethod.MEDICAL_AID: 0.5,
    PaymentMethod.CASH: 0.35,
    PaymentMethod.BOTH: 0.15,
}

# Past appointment outcomes
_OUTCOME_WEIGHTS: dict[AppointmentStatus, float] = {
    AppointmentStatus.COMPLETED: 0.78,
    AppointmentStatus.NO_SHOW: 0.12,
    AppointmentStatus.CANCELLED: 0.10,
}

_CHECKIN_CANCEL_RATE = 0.04
# Share of past check-ins never closed at the desk (reported as no-shows)
_STALE_WAITING_RATE = 0.03


@dataclass
class DemoHistory:
    patients: list[Patient] = field(default_factory=list)
    checkins: list[CheckinRecord] = field(default_factory=list)
    appointments: list[AppointmentRecord] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "patients": len(self.patients),
            "checkins": len(self.checkins),
            "appointments": len(self.appointments),
            "waiting": sum(1 for c in self.checkins if c.status is CheckinStatus.WAITING),
        }


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------


def _make_patient(index: int, rng: random.Random) -> Patient:
    insured = rng.random() < 0.65
    sa_citizen = rng.random() < 0.8
    return Patient(
        id=index + 1,
        first_name=rng.choice(_FIRST_NAMES),
        last_name=rng.choice(_LAST_NAMES),
        phone=f"+27 8{rng.randint(0, 9)} {rng.randint(100, 999)} {rng.randint(1000, 9999)}",
        email=f"patient{index + 1}@example.org",
        id_type=IdType.SA_ID if sa_citizen else IdType.PASSPORT,
        sa_id_number=f"{rng.randint(10**12, 10**13 - 1)}" if sa_citizen else None,
        passport_number=None if sa_citizen else f"P{rng.randint(10**7, 10**8 - 1)}",
        medical_aid=rng.choice(_MEDICAL_AIDS) if insured else None,
        medical_aid_number=f"MA{rng.randint(10**6, 10**7 - 1)}" if insured else None,
        # A few archived patients keep their history but cannot check in
        active=rng.random() > 0.05,
    )


def _pick_method(patient: Patient, rng: random.Random) -> PaymentMethod:
    if not patient.has_medical_aid:
        return PaymentMethod.CASH
    methods = list(_METHOD_WEIGHTS)
    return rng.choices(methods, weights=list(_METHOD_WEIGHTS.values()), k=1)[0]


def _arrival(day: datetime, rng: random.Random) -> datetime:
    """Desk hours 07:30-17:00."""
    return day + timedelta(minutes=450 + rng.randint(0, 570))


def generate_history(
    *,
    num_patients: int = 80,
    days: int = 180,
    checkins_per_day: tuple[int, int] = (4, 16),
    appointments_per_day: tuple[int, int] = (6, 18),
    seed: int | None = 42,
    end: datetime | None = None,
) -> DemoHistory:
    """Generate *days* of history ending on the UTC date of *end*.

    Parameters
    ----------
    num_patients:
        Size of the patient roster.
    days:
        Number of calendar days to cover, *end*'s date included.
    checkins_per_day / appointments_per_day:
        Inclusive bounds for daily volume (Sundays get a third).
    seed:
        Random seed for reproducibility (None for random).
    end:
        Last simulated moment. Check-ins on that day after *end* are not
        generated; the day's early arrivals stay waiting. Defaults to now.

    At most one check-in per patient is left waiting.
    """
    rng = random.Random(seed)  # noqa: S311
    end = end or datetime.now(UTC)
    if end.tzinfo is None:
        end = end.replace(tzinfo=UTC)
    end = end.astimezone(UTC)

    history = DemoHistory(patients=[_make_patient(i, rng) for i in range(num_patients)])
    active = [p for p in history.patients if p.active]
    waiting_patients: set[int] = set()
    checkin_id = 0
    appointment_id = 0

    first_day = datetime.combine(end.date() - timedelta(days=days - 1), time.min, tzinfo=UTC)
    for offset in range(days):
        day = first_day + timedelta(days=offset)
        is_today = day.date() == end.date()
        scale = 3 if day.weekday() == 6 else 1

        lo, hi = checkins_per_day
        for _ in range(rng.randint(lo, hi) // scale):
            arrival = _arrival(day, rng)
            if arrival > end:
                continue
            patient = rng.choice(active)
            method = _pick_method(patient, rng)
            amount = round_money(rng.uniform(150, 1200)) if method.requires_payment else None

            roll = rng.random()
            stays_waiting = is_today or roll < _STALE_WAITING_RATE
            if stays_waiting and patient.id in waiting_patients:
                continue
            checkin_id += 1
            if stays_waiting:
                waiting_patients.add(patient.id)
                record = CheckinRecord(
                    id=checkin_id,
                    patient_id=patient.id,
                    checkin_time=arrival,
                    payment_method=method,
                    amount=amount,
                    created_at=arrival,
                    updated_at=arrival,
                )
            elif roll < _STALE_WAITING_RATE + _CHECKIN_CANCEL_RATE:
                record = CheckinRecord(
                    id=checkin_id,
                    patient_id=patient.id,
                    checkin_time=arrival,
                    payment_method=method,
                    status=CheckinStatus.CANCELLED,
                    amount=amount,
                    created_at=arrival,
                    updated_at=arrival + timedelta(minutes=5),
                )
            else:
                seen = arrival + timedelta(minutes=rng.randint(3, 95), seconds=rng.randint(0, 59))
                record = CheckinRecord(
                    id=checkin_id,
                    patient_id=patient.id,
                    checkin_time=arrival,
                    payment_method=method,
                    status=CheckinStatus.ATTENDED,
                    amount=amount,
                    attended_at=seen,
                    waiting_time_minutes=waiting_minutes(arrival, seen),
                    created_at=arrival,
                    updated_at=seen,
                )
            history.checkins.append(record)

        lo, hi = appointments_per_day
        for _ in range(rng.randint(lo, hi) // scale):
            slot = _arrival(day, rng)
            if slot > end:
                status = AppointmentStatus.SCHEDULED
            else:
                outcomes = list(_OUTCOME_WEIGHTS)
                status = rng.choices(outcomes, weights=list(_OUTCOME_WEIGHTS.values()), k=1)[0]
            appointment_id += 1
            history.appointments.append(
                AppointmentRecord(
                    id=appointment_id,
                    patient_id=rng.choice(history.patients).id,
                    appointment_date=slot,
                    status=status,
                )
            )

    return history


def load_history(
    history: DemoHistory,
    *,
    checkins: InMemoryCheckinStore,
    patients: InMemoryPatientDirectory,
    appointments: InMemoryAppointmentStore,
) -> None:
    """Populate the in-memory stores."""
    for patient in history.patients:
        patients.add(patient)
    checkins.load(history.checkins)
    for appointment in history.appointments:
        appointments.add(appointment)
